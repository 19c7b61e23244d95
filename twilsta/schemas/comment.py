"""Pydantic schemas for Comment."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from twilsta.schemas.common import SafeText
from twilsta.schemas.user import UserSummary


class CommentCreate(BaseModel):
    content: SafeText = Field(..., min_length=1, max_length=500)
    parent_id: UUID | None = None


class CommentUpdate(BaseModel):
    content: SafeText = Field(..., min_length=1, max_length=500)


class ReplyCreate(CommentUpdate):
    pass


class CommentResponse(BaseModel):
    id: UUID
    post_id: UUID
    user_id: UUID
    content: str
    created_at: datetime
    updated_at: datetime | None = None
    parent_id: UUID | None = None
    user: UserSummary | None = None
    likes_count: int = 0
    replies_count: int = 0
    is_liked: bool = False

    model_config = {"from_attributes": True}
