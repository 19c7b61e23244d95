"""Notification model for likes, comments, follows and messages."""
import uuid

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, String, Text, Uuid
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from twilsta.db.session import Base, utcnow


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    actor_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=True)
    type = Column(String(20), nullable=False)  # LIKE | COMMENT | FOLLOW | FOLLOW_REQUEST | FOLLOW_ACCEPTED | MESSAGE | MENTION | STORY_VIEW
    title = Column(String(200), nullable=False)
    text = Column(Text, nullable=False)
    data = Column(JSON().with_variant(JSONB, "postgresql"), nullable=True)  # target ids
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    user = relationship("User", foreign_keys=[user_id], back_populates="notifications")
    actor = relationship("User", foreign_keys=[actor_id], back_populates="sent_notifications")
