"""Pydantic schemas for Hashtag."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


class HashtagResponse(BaseModel):
    id: UUID
    name: str
    posts_count: int = 0
    created_at: datetime | None = None

    model_config = {"from_attributes": True}
