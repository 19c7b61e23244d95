"""Post and post media models."""
import uuid

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text, Uuid
from sqlalchemy.orm import relationship

from twilsta.db.session import Base, utcnow


class Post(Base):
    __tablename__ = "posts"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    caption = Column(Text, nullable=True)
    location = Column(String(100), nullable=True)
    is_archived = Column(Boolean, default=False, nullable=False)
    comments_enabled = Column(Boolean, default=True, nullable=False)
    likes_enabled = Column(Boolean, default=True, nullable=False)
    likes_count = Column(Integer, default=0, nullable=False)
    comments_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="posts")
    media = relationship(
        "PostMedia",
        back_populates="post",
        order_by="PostMedia.order",
        cascade="all, delete-orphan",
    )
    comments = relationship("Comment", back_populates="post", cascade="all, delete-orphan")
    likes = relationship("Like", back_populates="post", cascade="all, delete-orphan")
    post_hashtags = relationship("PostHashtag", back_populates="post", cascade="all, delete-orphan")


class PostMedia(Base):
    __tablename__ = "post_media"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    post_id = Column(Uuid, ForeignKey("posts.id", ondelete="CASCADE"), nullable=False, index=True)
    url = Column(Text, nullable=False)
    type = Column(String(10), nullable=False, default="IMAGE")  # IMAGE | VIDEO | AUDIO
    width = Column(Integer, nullable=True)
    height = Column(Integer, nullable=True)
    order = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, default=utcnow)

    post = relationship("Post", back_populates="media")
