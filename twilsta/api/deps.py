"""API dependencies: auth guard, db session, pagination, rate limiting."""
from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends, Query, Request, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from twilsta.core.config import settings
from twilsta.core.exceptions import AppError, unauthorized
from twilsta.core.rate_limit import rate_limiter
from twilsta.core.security import decode_token, revoked_tokens
from twilsta.db.session import get_db
from twilsta.models.user import User

security = HTTPBearer(auto_error=False)

__all__ = [
    "get_db",
    "get_access_token",
    "get_current_user",
    "get_current_user_optional",
    "PageParams",
    "pagination",
    "rate_limit",
]


async def get_access_token(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str | None:
    """Bearer header first, then the access token cookie."""
    if credentials and credentials.credentials:
        return credentials.credentials
    return request.cookies.get(settings.ACCESS_TOKEN_COOKIE) or None


async def get_current_user(
    token: str | None = Depends(get_access_token),
    db: AsyncSession = Depends(get_db),
) -> User:
    if not token:
        raise unauthorized("NOT_AUTHENTICATED", "Authentication required")
    payload = decode_token(token)
    if not payload or payload.get("type") != "access" or not payload.get("sub"):
        raise unauthorized("INVALID_TOKEN", "Invalid or expired token")
    if revoked_tokens.is_revoked(payload.get("jti")):
        raise unauthorized("REVOKED_TOKEN", "Token has been revoked")
    try:
        user_id = UUID(payload["sub"])
    except ValueError:
        raise unauthorized("INVALID_TOKEN", "Invalid or expired token")
    user = await db.get(User, user_id)
    if user is None:
        raise unauthorized("USER_NOT_FOUND", "User no longer exists")
    return user


async def get_current_user_optional(
    token: str | None = Depends(get_access_token),
    db: AsyncSession = Depends(get_db),
) -> User | None:
    """Same resolution as get_current_user but never rejects."""
    if not token:
        return None
    try:
        return await get_current_user(token=token, db=db)
    except AppError:
        return None


@dataclass
class PageParams:
    page: int
    limit: int

    @property
    def skip(self) -> int:
        return (self.page - 1) * self.limit


def pagination(default_limit: int = 10, max_limit: int = 100):
    def dependency(
        page: int = Query(1, ge=1),
        limit: int = Query(default_limit, ge=1, le=max_limit),
    ) -> PageParams:
        return PageParams(page=page, limit=limit)

    return dependency


def rate_limit(scope: str, max_requests: int, window_seconds: int):
    """Per-identity fixed-window limit; identity is the user id or client address."""

    async def dependency(
        request: Request,
        response: Response,
        current_user: User | None = Depends(get_current_user_optional),
    ) -> None:
        identity = str(current_user.id) if current_user else (request.client.host if request.client else "anonymous")
        result = rate_limiter.hit(f"{scope}:{identity}", max_requests, window_seconds)
        headers = result.headers()
        request.state.rate_limit_headers = headers
        if not result.allowed:
            raise AppError(
                429,
                "RATE_LIMIT_EXCEEDED",
                "Too many requests, please try again later",
                headers={**headers, "Retry-After": str(result.retry_after)},
                retry_after=result.retry_after,
            )
        response.headers.update(headers)

    return dependency
