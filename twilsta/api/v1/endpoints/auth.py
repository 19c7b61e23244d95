"""Auth endpoints: register, login, logout, refresh, password reset, email verification."""
import logging
from uuid import UUID

from fastapi import APIRouter, Depends, Request, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from twilsta.api.deps import get_access_token, get_current_user, get_db
from twilsta.api.errors import guarded
from twilsta.core.config import settings
from twilsta.core.exceptions import unauthorized
from twilsta.core.security import decode_token, revoked_tokens
from twilsta.models.user import User
from twilsta.schemas.common import ApiResponse, ok
from twilsta.schemas.password import ForgotPasswordRequest, ResetPasswordRequest, VerifyEmailRequest
from twilsta.schemas.user import LoginRequest, Token, TokenRefresh, UserCreate, UserResponse
from twilsta.services.auth_service import (
    authenticate_user,
    create_tokens_for_user,
    create_user,
    get_user_by_id_for_refresh,
    request_password_reset,
    reset_password,
    start_email_verification,
    user_to_response,
    verify_email,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _set_auth_cookies(response: Response, access_token: str, refresh_token: str) -> None:
    common = {"httponly": True, "secure": settings.COOKIE_SECURE, "samesite": "lax"}
    response.set_cookie(
        settings.ACCESS_TOKEN_COOKIE,
        access_token,
        max_age=settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60,
        **common,
    )
    response.set_cookie(
        settings.REFRESH_TOKEN_COOKIE,
        refresh_token,
        max_age=settings.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 3600,
        **common,
    )


def _clear_auth_cookies(response: Response) -> None:
    response.delete_cookie(settings.ACCESS_TOKEN_COOKIE)
    response.delete_cookie(settings.REFRESH_TOKEN_COOKIE)


def _issue(user: User, response: Response) -> Token:
    access_token, refresh_token = create_tokens_for_user(user)
    _set_auth_cookies(response, access_token, refresh_token)
    return Token(access_token=access_token, refresh_token=refresh_token, user=user_to_response(user))


def _revoke(payload: dict | None) -> None:
    if payload and payload.get("jti"):
        revoked_tokens.revoke(payload["jti"], float(payload.get("exp", 0)))


@router.post("/register", response_model=ApiResponse[Token], status_code=status.HTTP_201_CREATED)
@guarded("register", "REGISTRATION_ERROR", "Failed to register user")
async def register(
    data: UserCreate,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    user = await create_user(db, data)
    await start_email_verification(db, user)
    await db.commit()
    logger.info("user_registered user_id=%s", user.id)
    return ok(_issue(user, response), "User registered successfully")


@router.post("/login", response_model=ApiResponse[Token])
@guarded("login", "LOGIN_ERROR", "Failed to login")
async def login(
    data: LoginRequest,
    response: Response,
    db: AsyncSession = Depends(get_db),
):
    user = await authenticate_user(db, data.email, data.password)
    if not user:
        logger.warning("login_failed")
        raise unauthorized("INVALID_CREDENTIALS", "Invalid email or password")
    logger.info("login_success user_id=%s", user.id)
    return ok(_issue(user, response), "Login successful")


@router.post("/logout", response_model=ApiResponse[None])
@guarded("logout", "LOGOUT_ERROR", "Failed to logout")
async def logout(
    response: Response,
    token: str | None = Depends(get_access_token),
    current_user: User = Depends(get_current_user),
):
    _revoke(decode_token(token))
    _clear_auth_cookies(response)
    logger.info("logout user_id=%s", current_user.id)
    return ok(message="Logged out successfully")


@router.post("/refresh", response_model=ApiResponse[Token])
@guarded("refresh_token", "TOKEN_REFRESH_ERROR", "Failed to refresh token")
async def refresh_token(
    request: Request,
    response: Response,
    body: TokenRefresh | None = None,
    db: AsyncSession = Depends(get_db),
):
    raw = (body.refresh_token if body else None) or request.cookies.get(settings.REFRESH_TOKEN_COOKIE)
    if not raw:
        raise unauthorized("REFRESH_TOKEN_REQUIRED", "Refresh token is required")
    payload = decode_token(raw)
    if not payload or payload.get("type") != "refresh" or not payload.get("sub"):
        raise unauthorized("INVALID_REFRESH_TOKEN", "Invalid refresh token")
    if revoked_tokens.is_revoked(payload.get("jti")):
        raise unauthorized("INVALID_REFRESH_TOKEN", "Invalid refresh token")
    try:
        user_id = UUID(payload["sub"])
    except ValueError:
        raise unauthorized("INVALID_REFRESH_TOKEN", "Invalid refresh token")
    user = await get_user_by_id_for_refresh(db, user_id)
    if not user:
        raise unauthorized("INVALID_REFRESH_TOKEN", "Invalid refresh token")
    # Refresh tokens are single use.
    _revoke(payload)
    return ok(_issue(user, response), "Token refreshed successfully")


@router.post("/forgot-password", response_model=ApiResponse[None])
@guarded("forgot_password", "FORGOT_PASSWORD_ERROR", "Failed to process password reset request")
async def forgot_password(
    data: ForgotPasswordRequest,
    db: AsyncSession = Depends(get_db),
):
    await request_password_reset(db, data.email)
    await db.commit()
    return ok(message="If the email exists, a password reset link has been sent")


@router.post("/reset-password", response_model=ApiResponse[None])
@guarded("reset_password", "RESET_PASSWORD_ERROR", "Failed to reset password")
async def reset_password_endpoint(
    data: ResetPasswordRequest,
    db: AsyncSession = Depends(get_db),
):
    await reset_password(db, data.token, data.password)
    await db.commit()
    return ok(message="Password reset successfully")


@router.post("/verify-email", response_model=ApiResponse[UserResponse])
@guarded("verify_email", "EMAIL_VERIFICATION_ERROR", "Failed to verify email")
async def verify_email_endpoint(
    data: VerifyEmailRequest,
    db: AsyncSession = Depends(get_db),
):
    user = await verify_email(db, data.token)
    await db.commit()
    return ok(user_to_response(user), "Email verified successfully")


@router.get("/me", response_model=ApiResponse[UserResponse])
@guarded("get_me", "USER_FETCH_ERROR", "Failed to fetch user")
async def me(current_user: User = Depends(get_current_user)):
    return ok(user_to_response(current_user))
