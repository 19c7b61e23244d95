"""Pydantic schemas for Post."""
from datetime import datetime
from typing import Annotated
from uuid import UUID

from pydantic import BaseModel, Field, StringConstraints

from twilsta.schemas.common import SafeText
from twilsta.schemas.user import UserSummary

HashtagName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=50)]


class PostCreate(BaseModel):
    caption: SafeText | None = Field(None, max_length=2000)
    location: str | None = Field(None, max_length=100)
    comments_enabled: bool = True
    likes_enabled: bool = True
    hashtags: list[HashtagName] | None = Field(None, max_length=30)


class PostUpdate(BaseModel):
    caption: SafeText | None = Field(None, max_length=2000)
    location: str | None = Field(None, max_length=100)
    comments_enabled: bool | None = None
    likes_enabled: bool | None = None
    is_archived: bool | None = None
    hashtags: list[HashtagName] | None = Field(None, max_length=30)


class PostMediaResponse(BaseModel):
    id: UUID
    url: str
    type: str
    width: int | None = None
    height: int | None = None
    order: int = 0

    model_config = {"from_attributes": True}


class PostResponse(BaseModel):
    id: UUID
    user_id: UUID
    caption: str | None = None
    location: str | None = None
    is_archived: bool = False
    comments_enabled: bool = True
    likes_enabled: bool = True
    likes_count: int = 0
    comments_count: int = 0
    created_at: datetime
    updated_at: datetime | None = None
    user: UserSummary | None = None
    media: list[PostMediaResponse] = []
    hashtags: list[str] = []
    is_liked: bool = False

    model_config = {"from_attributes": True}
