"""Hashtag and post-hashtag join models."""
import uuid

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, Uuid
from sqlalchemy.orm import relationship

from twilsta.db.session import Base, utcnow


class Hashtag(Base):
    __tablename__ = "hashtags"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(50), unique=True, nullable=False, index=True)  # lowercase, no '#'
    posts_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow)

    post_hashtags = relationship("PostHashtag", back_populates="hashtag", cascade="all, delete-orphan")


class PostHashtag(Base):
    __tablename__ = "post_hashtags"

    post_id = Column(Uuid, ForeignKey("posts.id", ondelete="CASCADE"), primary_key=True)
    hashtag_id = Column(Uuid, ForeignKey("hashtags.id", ondelete="CASCADE"), primary_key=True)
    created_at = Column(DateTime, default=utcnow)

    post = relationship("Post", back_populates="post_hashtags")
    hashtag = relationship("Hashtag", back_populates="post_hashtags")
