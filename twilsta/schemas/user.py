"""Pydantic schemas for User."""
import re
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, HttpUrl, field_validator

from twilsta.schemas.common import SafeText

USERNAME_PATTERN = r"^[A-Za-z0-9_.]+$"
PHONE_PATTERN = r"^\+?[1-9]\d{1,14}$"


def check_password_strength(value: str) -> str:
    if not re.search(r"[a-z]", value):
        raise ValueError("Password must contain a lowercase letter")
    if not re.search(r"[A-Z]", value):
        raise ValueError("Password must contain an uppercase letter")
    if not re.search(r"\d", value):
        raise ValueError("Password must contain a digit")
    if not re.search(r"[^A-Za-z0-9]", value):
        raise ValueError("Password must contain a special character")
    return value


class UserCreate(BaseModel):
    email: EmailStr
    username: str = Field(..., min_length=3, max_length=30, pattern=USERNAME_PATTERN)
    password: str = Field(..., min_length=8, max_length=128)
    full_name: str | None = Field(None, min_length=2, max_length=100)
    phone: str | None = Field(None, pattern=PHONE_PATTERN)

    @field_validator("password")
    @classmethod
    def strong_password(cls, value: str) -> str:
        return check_password_strength(value)


class UserUpdate(BaseModel):
    username: str | None = Field(None, min_length=3, max_length=30, pattern=USERNAME_PATTERN)
    full_name: str | None = Field(None, min_length=2, max_length=100)
    bio: SafeText | None = Field(None, max_length=500)
    website: HttpUrl | None = None
    phone: str | None = Field(None, pattern=PHONE_PATTERN)
    is_private: bool | None = None


class UserSummary(BaseModel):
    """Author card embedded in posts, comments, stories and messages."""

    id: UUID
    username: str
    full_name: str | None = None
    avatar_url: str | None = None
    is_verified: bool = False

    model_config = {"from_attributes": True}


class UserPublic(UserSummary):
    bio: str | None = None
    website: str | None = None
    is_private: bool = False
    posts_count: int = 0
    followers_count: int = 0
    following_count: int = 0
    created_at: datetime


class UserProfile(UserPublic):
    is_following: bool = False
    is_follower: bool = False
    is_requested: bool = False
    is_own_profile: bool = False


class UserResponse(UserPublic):
    """Own account, includes private contact fields."""

    email: str
    phone: str | None = None
    updated_at: datetime | None = None


class FollowUser(UserSummary):
    followed_at: datetime | None = None


class FollowRequestUser(UserSummary):
    requested_at: datetime | None = None


class Token(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserResponse


class TokenRefresh(BaseModel):
    refresh_token: str | None = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)
