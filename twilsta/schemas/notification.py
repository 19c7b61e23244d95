"""Pydantic schemas for Notification."""
from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from twilsta.schemas.user import UserSummary


class NotificationResponse(BaseModel):
    id: UUID
    user_id: UUID
    actor_id: UUID | None = None
    type: str
    title: str
    text: str
    data: dict | None = None
    is_read: bool = False
    created_at: datetime
    actor: UserSummary | None = None

    model_config = {"from_attributes": True}


class MarkReadRequest(BaseModel):
    ids: list[UUID] = Field(..., min_length=1, max_length=100)
