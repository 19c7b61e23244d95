"""Security utilities: password hashing, JWT tokens and token revocation."""
import secrets
import time
import uuid
from datetime import datetime, timedelta, timezone
from uuid import UUID

from jose import JWTError, jwt
from passlib.context import CryptContext

from twilsta.core.config import settings

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=settings.BCRYPT_ROUNDS)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def _encode(subject: str | UUID, token_type: str, expires_delta: timedelta) -> str:
    expire = datetime.now(timezone.utc) + expires_delta
    to_encode = {
        "sub": str(subject),
        "exp": expire,
        "type": token_type,
        "jti": uuid.uuid4().hex,
    }
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def create_access_token(subject: str | UUID) -> str:
    return _encode(subject, "access", timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES))


def create_refresh_token(subject: str | UUID) -> str:
    return _encode(subject, "refresh", timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS))


def decode_token(token: str) -> dict | None:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
        return payload
    except JWTError:
        return None


def generate_url_token() -> str:
    """Opaque token for email verification and password reset links."""
    return secrets.token_urlsafe(32)


class TokenRevocationList:
    """In-process set of revoked token ids (jti).

    Entries are kept until the token would have expired anyway. State lives in
    this process only: it is lost on restart and not shared between workers.
    """

    def __init__(self, clock=time.time):
        self._clock = clock
        self._revoked: dict[str, float] = {}

    def revoke(self, jti: str, expires_at: float) -> None:
        self._purge()
        self._revoked[jti] = expires_at

    def is_revoked(self, jti: str | None) -> bool:
        return jti is not None and jti in self._revoked

    def clear(self) -> None:
        self._revoked.clear()

    def _purge(self) -> None:
        now = self._clock()
        for jti in [k for k, exp in self._revoked.items() if exp <= now]:
            del self._revoked[jti]


revoked_tokens = TokenRevocationList()
