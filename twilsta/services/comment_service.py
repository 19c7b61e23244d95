"""Comment business logic: threads, replies and comment likes."""
import logging
from uuid import UUID

from sqlalchemy import delete, desc, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from twilsta.core.exceptions import access_denied, bad_request, not_found
from twilsta.models.comment import Comment
from twilsta.models.engagement import CommentLike
from twilsta.models.post import Post
from twilsta.models.user import User
from twilsta.schemas.comment import CommentResponse
from twilsta.services.notification_service import create_notification, display_name

logger = logging.getLogger(__name__)


def _preview(text: str, size: int = 50) -> str:
    return text[:size] + "..." if len(text) > size else text


def ensure_comments_enabled(post: Post) -> None:
    if not post.comments_enabled:
        raise bad_request("COMMENTS_DISABLED", "Comments are disabled for this post")


async def get_comment_or_404(db: AsyncSession, comment_id: UUID, *, fresh: bool = False) -> Comment:
    stmt = (
        select(Comment)
        .where(Comment.id == comment_id)
        .options(selectinload(Comment.user), selectinload(Comment.post))
    )
    if fresh:
        stmt = stmt.execution_options(populate_existing=True)
    comment = (await db.execute(stmt)).scalar_one_or_none()
    if comment is None:
        raise not_found("comment")
    return comment


async def add_comment(db: AsyncSession, post: Post, user: User, content: str, parent_id: UUID | None = None) -> Comment:
    """Create a comment (or a reply when parent_id is set) and bump comments_count."""
    ensure_comments_enabled(post)
    parent = None
    if parent_id is not None:
        parent = await get_comment_or_404(db, parent_id)
        if parent.post_id != post.id:
            raise bad_request("INVALID_PARENT", "Parent comment belongs to another post")
        # Replies stay one level deep.
        if parent.parent_id is not None:
            parent = await get_comment_or_404(db, parent.parent_id)

    comment = Comment(
        user_id=user.id,
        post_id=post.id,
        parent_id=parent.id if parent else None,
        content=content,
    )
    db.add(comment)
    await db.flush()
    await db.execute(update(Post).where(Post.id == post.id).values(comments_count=Post.comments_count + 1))

    preview = _preview(content)
    if parent is not None:
        await create_notification(
            db,
            user_id=parent.user_id,
            actor_id=user.id,
            notification_type="COMMENT",
            title="New reply",
            text=f'{display_name(user)} replied to your comment: "{preview}"',
            data={"post_id": post.id, "comment_id": comment.id},
        )
    else:
        await create_notification(
            db,
            user_id=post.user_id,
            actor_id=user.id,
            notification_type="COMMENT",
            title="New comment",
            text=f'{display_name(user)} commented: "{preview}"',
            data={"post_id": post.id, "comment_id": comment.id},
        )
    logger.info(
        "comment_created user_id=%s post_id=%s comment_id=%s parent_id=%s",
        user.id, post.id, comment.id, comment.parent_id,
    )
    return comment


async def reply_to_comment(db: AsyncSession, parent: Comment, user: User, content: str) -> Comment:
    return await add_comment(db, parent.post, user, content, parent_id=parent.id)


async def update_comment(db: AsyncSession, comment: Comment, user: User, content: str) -> Comment:
    if comment.user_id != user.id:
        raise access_denied("You can only edit your own comments")
    comment.content = content
    await db.flush()
    logger.info("comment_updated user_id=%s comment_id=%s", user.id, comment.id)
    return comment


async def delete_comment(db: AsyncSession, comment: Comment, user: User) -> None:
    """Delete a comment with its replies; comments_count drops by all of them."""
    if comment.user_id != user.id:
        raise access_denied("You can only delete your own comments")
    replies = await db.scalar(select(func.count(Comment.id)).where(Comment.parent_id == comment.id)) or 0
    removed = 1 + replies
    post_id = comment.post_id
    await db.delete(comment)
    await db.flush()
    await db.execute(
        update(Post)
        .where(Post.id == post_id)
        .values(comments_count=Post.comments_count - removed)
    )
    await db.execute(update(Post).where(Post.id == post_id, Post.comments_count < 0).values(comments_count=0))
    logger.info("comment_deleted user_id=%s comment_id=%s post_id=%s removed=%s", user.id, comment.id, post_id, removed)


async def like_comment(db: AsyncSession, comment: Comment, user: User) -> None:
    ensure_comments_enabled(comment.post)
    existing = await db.execute(
        select(CommentLike.id).where(CommentLike.comment_id == comment.id, CommentLike.user_id == user.id)
    )
    if existing.first() is not None:
        raise bad_request("ALREADY_LIKED", "Comment already liked")
    db.add(CommentLike(user_id=user.id, comment_id=comment.id))
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise bad_request("ALREADY_LIKED", "Comment already liked")
    await db.execute(update(Comment).where(Comment.id == comment.id).values(likes_count=Comment.likes_count + 1))
    await create_notification(
        db,
        user_id=comment.user_id,
        actor_id=user.id,
        notification_type="LIKE",
        title="New like",
        text=f"{display_name(user)} liked your comment",
        data={"post_id": comment.post_id, "comment_id": comment.id},
    )
    logger.info("comment_liked user_id=%s comment_id=%s", user.id, comment.id)


async def unlike_comment(db: AsyncSession, comment: Comment, user: User) -> None:
    ensure_comments_enabled(comment.post)
    result = await db.execute(
        delete(CommentLike).where(CommentLike.comment_id == comment.id, CommentLike.user_id == user.id)
    )
    if not result.rowcount:
        raise bad_request("NOT_LIKED", "Comment not liked")
    await db.execute(
        update(Comment)
        .where(Comment.id == comment.id, Comment.likes_count > 0)
        .values(likes_count=Comment.likes_count - 1)
    )
    logger.info("comment_unliked user_id=%s comment_id=%s", user.id, comment.id)


async def get_user_liked_comment_ids(db: AsyncSession, user_id: UUID, comment_ids: list[UUID]) -> set[UUID]:
    if not comment_ids:
        return set()
    result = await db.execute(
        select(CommentLike.comment_id).where(
            CommentLike.comment_id.in_(comment_ids),
            CommentLike.user_id == user_id,
        )
    )
    return {r[0] for r in result.all() if r[0]}


async def _replies_counts(db: AsyncSession, comment_ids: list[UUID]) -> dict[UUID, int]:
    if not comment_ids:
        return {}
    result = await db.execute(
        select(Comment.parent_id, func.count(Comment.id))
        .where(Comment.parent_id.in_(comment_ids))
        .group_by(Comment.parent_id)
    )
    return {parent_id: count for parent_id, count in result.all()}


async def list_comments(
    db: AsyncSession,
    post_id: UUID,
    *,
    parent_id: UUID | None = None,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[Comment], int]:
    """Top-level comments newest first, or a comment's replies oldest first."""
    if parent_id is None:
        where = (Comment.post_id == post_id) & Comment.parent_id.is_(None)
        order = desc(Comment.created_at)
    else:
        where = Comment.parent_id == parent_id
        order = Comment.created_at
    total = await db.scalar(select(func.count(Comment.id)).where(where))
    result = await db.execute(
        select(Comment).where(where).order_by(order).offset(skip).limit(limit).options(selectinload(Comment.user))
    )
    return list(result.scalars().all()), total or 0


async def comments_to_response(db: AsyncSession, comments: list[Comment], viewer_id: UUID | None) -> list[CommentResponse]:
    ids = [c.id for c in comments]
    liked = await get_user_liked_comment_ids(db, viewer_id, ids) if viewer_id else set()
    replies = await _replies_counts(db, ids)
    return [comment_to_response(c, is_liked=c.id in liked, replies_count=replies.get(c.id, 0)) for c in comments]


def comment_to_response(comment: Comment, is_liked: bool = False, replies_count: int = 0) -> CommentResponse:
    response = CommentResponse.model_validate(comment)
    response.is_liked = is_liked
    response.replies_count = replies_count
    return response
