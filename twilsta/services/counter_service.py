"""Recompute denormalized counters from their join tables.

Mutations keep counters in step inside one transaction; this is the repair
path for rows written before that, or edited by hand.
"""
import logging
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from twilsta.models.comment import Comment
from twilsta.models.engagement import CommentLike, Follow, Like
from twilsta.models.hashtag import Hashtag, PostHashtag
from twilsta.models.post import Post
from twilsta.models.user import User

logger = logging.getLogger(__name__)


def _counters():
    """(label, model, column, correlated count) for every denormalized counter."""
    return [
        ("posts.likes_count", Post, "likes_count",
         select(func.count(Like.id)).where(Like.post_id == Post.id).scalar_subquery()),
        ("posts.comments_count", Post, "comments_count",
         select(func.count(Comment.id)).where(Comment.post_id == Post.id).scalar_subquery()),
        ("comments.likes_count", Comment, "likes_count",
         select(func.count(CommentLike.id)).where(CommentLike.comment_id == Comment.id).scalar_subquery()),
        ("users.posts_count", User, "posts_count",
         select(func.count(Post.id)).where(Post.user_id == User.id).scalar_subquery()),
        ("users.followers_count", User, "followers_count",
         select(func.count()).select_from(Follow).where(Follow.following_id == User.id).scalar_subquery()),
        ("users.following_count", User, "following_count",
         select(func.count()).select_from(Follow).where(Follow.follower_id == User.id).scalar_subquery()),
        ("hashtags.posts_count", Hashtag, "posts_count",
         select(func.count()).select_from(PostHashtag).where(PostHashtag.hashtag_id == Hashtag.id).scalar_subquery()),
    ]


async def find_drift(db: AsyncSession) -> dict[str, int]:
    """Number of rows whose counter disagrees with its join table, per counter."""
    drift = {}
    for label, model, column, actual in _counters():
        drift[label] = await db.scalar(
            select(func.count()).select_from(model).where(getattr(model, column) != actual)
        ) or 0
    return drift


async def reconcile_counters(db: AsyncSession) -> dict[str, int]:
    """Rewrite every counter from its join table; returns the drift that was fixed."""
    drift = await find_drift(db)
    for label, model, column, actual in _counters():
        if drift[label]:
            await db.execute(
                update(model)
                .where(getattr(model, column) != actual)
                .values({column: actual})
                .execution_options(synchronize_session=False)
            )
            logger.warning("counter_drift_fixed counter=%s rows=%s", label, drift[label])
    return drift


async def recount_posts(db: AsyncSession, post_ids: list[UUID]) -> None:
    """Refresh like and comment counters for specific posts."""
    if not post_ids:
        return
    await db.execute(
        update(Post)
        .where(Post.id.in_(post_ids))
        .values(
            likes_count=select(func.count(Like.id)).where(Like.post_id == Post.id).scalar_subquery(),
            comments_count=select(func.count(Comment.id)).where(Comment.post_id == Post.id).scalar_subquery(),
        )
        .execution_options(synchronize_session=False)
    )


async def recount_comments(db: AsyncSession, comment_ids: list[UUID]) -> None:
    if not comment_ids:
        return
    await db.execute(
        update(Comment)
        .where(Comment.id.in_(comment_ids))
        .values(likes_count=select(func.count(CommentLike.id)).where(CommentLike.comment_id == Comment.id).scalar_subquery())
        .execution_options(synchronize_session=False)
    )


async def recount_users(db: AsyncSession, user_ids: list[UUID]) -> None:
    """Refresh post and follow counters for specific users."""
    if not user_ids:
        return
    await db.execute(
        update(User)
        .where(User.id.in_(user_ids))
        .values(
            posts_count=select(func.count(Post.id)).where(Post.user_id == User.id).scalar_subquery(),
            followers_count=select(func.count()).select_from(Follow).where(Follow.following_id == User.id).scalar_subquery(),
            following_count=select(func.count()).select_from(Follow).where(Follow.follower_id == User.id).scalar_subquery(),
        )
        .execution_options(synchronize_session=False)
    )


async def recount_hashtags(db: AsyncSession, hashtag_ids: list[UUID]) -> None:
    if not hashtag_ids:
        return
    await db.execute(
        update(Hashtag)
        .where(Hashtag.id.in_(hashtag_ids))
        .values(posts_count=select(func.count()).select_from(PostHashtag).where(PostHashtag.hashtag_id == Hashtag.id).scalar_subquery())
        .execution_options(synchronize_session=False)
    )
