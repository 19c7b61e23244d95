"""Pydantic schemas for conversations and messages."""
from datetime import datetime
from typing import Literal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from twilsta.schemas.common import SafeText
from twilsta.schemas.user import UserSummary


class ConversationCreate(BaseModel):
    participants: list[UUID] = Field(..., min_length=1, max_length=50)
    type: Literal["direct", "group"] = "direct"
    name: str | None = Field(None, min_length=1, max_length=100)


class ConversationUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    avatar_url: str | None = None


class AddMembersRequest(BaseModel):
    user_ids: list[UUID] = Field(..., min_length=1, max_length=50)


class TransferAdminRequest(BaseModel):
    new_admin_id: UUID


class MemberResponse(BaseModel):
    user_id: UUID
    role: str
    joined_at: datetime | None = None
    left_at: datetime | None = None
    last_read_at: datetime | None = None
    user: UserSummary | None = None

    model_config = {"from_attributes": True}


class ConversationResponse(BaseModel):
    id: UUID
    type: str
    name: str | None = None
    avatar_url: str | None = None
    admin_id: UUID | None = None
    last_message_id: UUID | None = None
    last_message_at: datetime | None = None
    last_message_text: str | None = None
    created_at: datetime
    members: list[MemberResponse] = []
    unread_count: int = 0

    model_config = {"from_attributes": True}


class MessageCreate(BaseModel):
    content: SafeText = Field(..., min_length=1, max_length=1000)
    type: Literal["text", "image", "video", "audio", "file"] = "text"
    media_url: str | None = None
    reply_to_id: UUID | None = None


class MessageUpdate(BaseModel):
    content: SafeText = Field(..., min_length=1, max_length=1000)


class ReactionCreate(BaseModel):
    emoji: str = Field(..., min_length=1, max_length=16)

    @field_validator("emoji")
    @classmethod
    def strip_emoji(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Emoji is required")
        return value


class MessageReactionResponse(BaseModel):
    id: UUID
    message_id: UUID
    user_id: UUID
    emoji: str
    created_at: datetime

    model_config = {"from_attributes": True}


class MessageResponse(BaseModel):
    id: UUID
    conversation_id: UUID
    sender_id: UUID
    content: str | None = None
    message_type: str
    media_url: str | None = None
    reply_to_id: UUID | None = None
    is_edited: bool = False
    created_at: datetime
    updated_at: datetime | None = None
    sender: UserSummary | None = None
    reactions: list[MessageReactionResponse] = []

    model_config = {"from_attributes": True}
