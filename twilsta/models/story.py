"""Story models: 24h media stories with views and reactions."""
import uuid

from sqlalchemy import Column, DateTime, ForeignKey, String, UniqueConstraint, Uuid, Text
from sqlalchemy.orm import relationship

from twilsta.db.session import Base, utcnow

REACTIONS = ("LIKE", "LOVE", "HAHA", "WOW", "SAD", "ANGRY")


class Story(Base):
    __tablename__ = "stories"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    media_url = Column(Text, nullable=False)
    media_type = Column(String(10), nullable=False, default="IMAGE")  # IMAGE | VIDEO
    text = Column(String(200), nullable=True)
    expires_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, default=utcnow)

    user = relationship("User", back_populates="stories")
    views = relationship("StoryView", back_populates="story", cascade="all, delete-orphan")
    reactions = relationship("StoryReaction", back_populates="story", cascade="all, delete-orphan")


class StoryView(Base):
    __tablename__ = "story_views"
    __table_args__ = (UniqueConstraint("story_id", "user_id", name="uq_story_views_story_user"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    story_id = Column(Uuid, ForeignKey("stories.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime, default=utcnow)

    story = relationship("Story", back_populates="views")
    user = relationship("User", back_populates="story_views")


class StoryReaction(Base):
    __tablename__ = "story_reactions"
    __table_args__ = (UniqueConstraint("story_id", "user_id", name="uq_story_reactions_story_user"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    story_id = Column(Uuid, ForeignKey("stories.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    reaction = Column(String(10), nullable=False)  # one of REACTIONS
    created_at = Column(DateTime, default=utcnow)

    story = relationship("Story", back_populates="reactions")
    user = relationship("User", back_populates="story_reactions")
