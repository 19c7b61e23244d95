"""Pydantic schemas for Story."""
from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field

from twilsta.schemas.common import SafeText
from twilsta.schemas.user import UserSummary

Reaction = Literal["LIKE", "LOVE", "HAHA", "WOW", "SAD", "ANGRY"]


class StoryCreate(BaseModel):
    text: SafeText | None = Field(None, max_length=200)


class StoryReactionRequest(BaseModel):
    reaction: Reaction


class StoryResponse(BaseModel):
    id: UUID
    user_id: UUID
    media_url: str
    media_type: str
    text: str | None = None
    expires_at: datetime
    created_at: datetime
    user: UserSummary | None = None
    views_count: int = 0
    is_viewed: bool = False

    model_config = {"from_attributes": True}


class StoryViewer(UserSummary):
    viewed_at: datetime


class StoryReactionResponse(BaseModel):
    id: UUID
    story_id: UUID
    user_id: UUID
    reaction: str
    created_at: datetime

    model_config = {"from_attributes": True}
