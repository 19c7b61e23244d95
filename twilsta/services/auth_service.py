"""Authentication business logic."""
import logging
from datetime import timedelta
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from twilsta.core.config import settings
from twilsta.core.exceptions import AppError
from twilsta.core.security import (
    create_access_token,
    create_refresh_token,
    generate_url_token,
    get_password_hash,
    verify_password,
)
from twilsta.db.session import utcnow
from twilsta.models.token import VerificationToken
from twilsta.models.user import User
from twilsta.schemas.user import UserCreate, UserResponse
from twilsta.services.email_service import send_password_reset_email, send_verification_email

logger = logging.getLogger(__name__)

EMAIL_VERIFICATION = "EMAIL_VERIFICATION"
PASSWORD_RESET = "PASSWORD_RESET"


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower()))
    return result.scalar_one_or_none()


async def get_user_by_username(db: AsyncSession, username: str) -> User | None:
    result = await db.execute(select(User).where(User.username == username))
    return result.scalar_one_or_none()


async def create_user(db: AsyncSession, data: UserCreate) -> User:
    if await get_user_by_email(db, data.email) or await get_user_by_username(db, data.username):
        raise AppError(409, "USER_EXISTS", "User with this email or username already exists")
    user = User(
        username=data.username,
        email=data.email.lower(),
        password_hash=get_password_hash(data.password),
        full_name=data.full_name,
        phone=data.phone,
    )
    db.add(user)
    await db.flush()
    await db.refresh(user)
    return user


async def authenticate_user(db: AsyncSession, email: str, password: str) -> User | None:
    user = await get_user_by_email(db, email)
    if not user or not verify_password(password, user.password_hash):
        return None
    return user


def user_to_response(user: User) -> UserResponse:
    return UserResponse.model_validate(user)


def create_tokens_for_user(user: User) -> tuple[str, str]:
    return create_access_token(user.id), create_refresh_token(user.id)


async def get_user_by_id_for_refresh(db: AsyncSession, user_id: UUID) -> User | None:
    return await db.get(User, user_id)


async def issue_token(db: AsyncSession, user: User, token_type: str) -> VerificationToken:
    """Persist a one-time token, invalidating earlier unused ones of the same type."""
    ttl = settings.VERIFICATION_TOKEN_TTL_HOURS if token_type == EMAIL_VERIFICATION else settings.PASSWORD_RESET_TTL_HOURS
    await db.execute(
        update(VerificationToken)
        .where(
            VerificationToken.user_id == user.id,
            VerificationToken.type == token_type,
            VerificationToken.is_used.is_(False),
        )
        .values(is_used=True)
    )
    token = VerificationToken(
        user_id=user.id,
        token=generate_url_token(),
        type=token_type,
        expires_at=utcnow() + timedelta(hours=ttl),
    )
    db.add(token)
    await db.flush()
    return token


async def consume_token(db: AsyncSession, raw_token: str, token_type: str) -> User:
    """Mark a valid token used and return its user; 400 INVALID_TOKEN otherwise."""
    result = await db.execute(
        select(VerificationToken).where(
            VerificationToken.token == raw_token,
            VerificationToken.type == token_type,
        )
    )
    token = result.scalar_one_or_none()
    if token is None or token.is_used or token.expires_at <= utcnow():
        raise AppError(400, "INVALID_TOKEN", "Invalid or expired token")
    user = await db.get(User, token.user_id)
    if user is None:
        raise AppError(400, "INVALID_TOKEN", "Invalid or expired token")
    token.is_used = True
    return user


async def start_email_verification(db: AsyncSession, user: User) -> None:
    token = await issue_token(db, user, EMAIL_VERIFICATION)
    await send_verification_email(user.email, user.username, token.token)


async def verify_email(db: AsyncSession, raw_token: str) -> User:
    user = await consume_token(db, raw_token, EMAIL_VERIFICATION)
    user.is_verified = True
    logger.info("email_verified user_id=%s", user.id)
    return user


async def request_password_reset(db: AsyncSession, email: str) -> None:
    """Silent for unknown addresses so accounts cannot be enumerated."""
    user = await get_user_by_email(db, email)
    if user is None:
        logger.info("password_reset_unknown_email")
        return
    token = await issue_token(db, user, PASSWORD_RESET)
    await send_password_reset_email(user.email, user.username, token.token)
    logger.info("password_reset_requested user_id=%s", user.id)


async def reset_password(db: AsyncSession, raw_token: str, new_password: str) -> User:
    user = await consume_token(db, raw_token, PASSWORD_RESET)
    user.password_hash = get_password_hash(new_password)
    logger.info("password_reset user_id=%s", user.id)
    return user
