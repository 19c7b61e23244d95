"""Post business logic: create, edit, archive, like, media and feeds."""
import logging
from uuid import UUID

from sqlalchemy import and_, delete, desc, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from twilsta.core.exceptions import access_denied, bad_request, not_found
from twilsta.core.text import merge_hashtags
from twilsta.models.engagement import Follow, Like
from twilsta.models.post import Post, PostMedia
from twilsta.models.user import User
from twilsta.schemas.post import PostCreate, PostResponse, PostUpdate
from twilsta.services.hashtag_service import attach_hashtags, detach_hashtags, hashtag_names_for_posts
from twilsta.services.notification_service import create_notification, display_name
from twilsta.services.storage_service import StoredMedia, delete_media_quietly

logger = logging.getLogger(__name__)

MAX_MEDIA_PER_POST = 10


def _post_query():
    return select(Post).options(selectinload(Post.user), selectinload(Post.media))


async def get_post_or_404(db: AsyncSession, post_id: UUID, *, fresh: bool = False) -> Post:
    stmt = _post_query().where(Post.id == post_id)
    if fresh:
        stmt = stmt.execution_options(populate_existing=True)
    post = (await db.execute(stmt)).scalar_one_or_none()
    if post is None:
        raise not_found("post")
    return post


def ensure_owner(post: Post, user: User, message: str = "You can only modify your own posts") -> None:
    if post.user_id != user.id:
        raise access_denied(message)


async def create_post(db: AsyncSession, user: User, data: PostCreate, media: list[StoredMedia]) -> Post:
    post = Post(
        user_id=user.id,
        caption=data.caption,
        location=data.location,
        comments_enabled=data.comments_enabled,
        likes_enabled=data.likes_enabled,
    )
    db.add(post)
    await db.flush()
    for order, item in enumerate(media):
        db.add(PostMedia(post_id=post.id, url=item.url, type=item.media_type, width=item.width, height=item.height, order=order))
    await attach_hashtags(db, post.id, merge_hashtags(data.hashtags, data.caption))
    await db.execute(update(User).where(User.id == user.id).values(posts_count=User.posts_count + 1))
    await db.flush()
    logger.info("post_created user_id=%s post_id=%s media=%s", user.id, post.id, len(media))
    return post


async def update_post(db: AsyncSession, post: Post, data: PostUpdate) -> Post:
    fields = data.model_dump(exclude_unset=True)
    hashtags = fields.pop("hashtags", None)
    for key, value in fields.items():
        if key in ("comments_enabled", "likes_enabled", "is_archived") and value is None:
            continue
        setattr(post, key, value)
    if "caption" in fields or hashtags is not None:
        await detach_hashtags(db, post.id)
        await attach_hashtags(db, post.id, merge_hashtags(hashtags, post.caption))
    await db.flush()
    logger.info("post_updated user_id=%s post_id=%s fields=%s", post.user_id, post.id, sorted(data.model_fields_set))
    return post


async def delete_post(db: AsyncSession, post: Post) -> None:
    """Delete a post. Media removal is best-effort and never blocks the delete."""
    for item in list(post.media):
        delete_media_quietly(item.url, context=f"post_delete:{post.id}")
    await detach_hashtags(db, post.id)
    await db.delete(post)
    await db.execute(
        update(User).where(User.id == post.user_id, User.posts_count > 0).values(posts_count=User.posts_count - 1)
    )
    await db.flush()
    logger.info("post_deleted user_id=%s post_id=%s", post.user_id, post.id)


async def archive_post(db: AsyncSession, post: Post) -> Post:
    if post.is_archived:
        raise bad_request("POST_ALREADY_ARCHIVED", "Post is already archived")
    post.is_archived = True
    await db.flush()
    logger.info("post_archived user_id=%s post_id=%s", post.user_id, post.id)
    return post


async def unarchive_post(db: AsyncSession, post: Post) -> Post:
    if not post.is_archived:
        raise bad_request("POST_NOT_ARCHIVED", "Post is not archived")
    post.is_archived = False
    await db.flush()
    logger.info("post_unarchived user_id=%s post_id=%s", post.user_id, post.id)
    return post


async def add_media(db: AsyncSession, post: Post, item: StoredMedia) -> PostMedia:
    if len(post.media) >= MAX_MEDIA_PER_POST:
        delete_media_quietly(item.url, context=f"post_media_rollback:{post.id}")
        raise bad_request("MEDIA_LIMIT_EXCEEDED", f"A post can have at most {MAX_MEDIA_PER_POST} media items")
    next_order = max((m.order for m in post.media), default=-1) + 1
    media = PostMedia(post_id=post.id, url=item.url, type=item.media_type, width=item.width, height=item.height, order=next_order)
    db.add(media)
    await db.flush()
    logger.info("post_media_added user_id=%s post_id=%s media_id=%s", post.user_id, post.id, media.id)
    return media


async def remove_media(db: AsyncSession, post: Post, media_id: UUID) -> None:
    media = next((m for m in post.media if m.id == media_id), None)
    if media is None:
        raise not_found("media")
    if len(post.media) == 1:
        raise bad_request("LAST_MEDIA", "A post must keep at least one media item")
    url = media.url
    await db.execute(delete(PostMedia).where(PostMedia.id == media_id))
    await db.flush()
    delete_media_quietly(url, context=f"post_media_remove:{post.id}")
    logger.info("post_media_removed user_id=%s post_id=%s media_id=%s", post.user_id, post.id, media_id)


async def like_post(db: AsyncSession, post: Post, user: User) -> None:
    """Insert the like and bump likes_count in the same transaction."""
    if not post.likes_enabled:
        raise bad_request("LIKES_DISABLED", "Likes are disabled for this post")
    existing = await db.execute(select(Like.id).where(Like.post_id == post.id, Like.user_id == user.id))
    if existing.first() is not None:
        raise bad_request("ALREADY_LIKED", "Post already liked")
    db.add(Like(user_id=user.id, post_id=post.id))
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        raise bad_request("ALREADY_LIKED", "Post already liked")
    await db.execute(update(Post).where(Post.id == post.id).values(likes_count=Post.likes_count + 1))
    await create_notification(
        db,
        user_id=post.user_id,
        actor_id=user.id,
        notification_type="LIKE",
        title="New like",
        text=f"{display_name(user)} liked your post",
        data={"post_id": post.id},
    )
    logger.info("post_liked user_id=%s post_id=%s", user.id, post.id)


async def unlike_post(db: AsyncSession, post: Post, user: User) -> None:
    result = await db.execute(delete(Like).where(Like.post_id == post.id, Like.user_id == user.id))
    if not result.rowcount:
        raise bad_request("NOT_LIKED", "Post not liked")
    await db.execute(
        update(Post).where(Post.id == post.id, Post.likes_count > 0).values(likes_count=Post.likes_count - 1)
    )
    logger.info("post_unliked user_id=%s post_id=%s", user.id, post.id)


async def get_user_liked_post_ids(
    db: AsyncSession,
    user_id: UUID,
    post_ids: list[UUID],
) -> set[UUID]:
    """Return set of post IDs that the user has liked."""
    if not post_ids:
        return set()
    result = await db.execute(
        select(Like.post_id).where(
            Like.user_id == user_id,
            Like.post_id.in_(post_ids),
        )
    )
    return set(row[0] for row in result.all() if row[0])


async def _page(db: AsyncSession, where, skip: int, limit: int) -> tuple[list[Post], int]:
    total = await db.scalar(select(func.count(Post.id)).where(where))
    result = await db.execute(
        _post_query().where(where).order_by(desc(Post.created_at), desc(Post.id)).offset(skip).limit(limit)
    )
    return list(result.scalars().all()), total or 0


async def get_user_posts(
    db: AsyncSession,
    author_id: UUID,
    *,
    include_archived: bool = False,
    skip: int = 0,
    limit: int = 10,
) -> tuple[list[Post], int]:
    where = Post.user_id == author_id
    if not include_archived:
        where = and_(where, Post.is_archived.is_(False))
    return await _page(db, where, skip, limit)


async def get_feed_posts(db: AsyncSession, user_id: UUID, *, skip: int = 0, limit: int = 10) -> tuple[list[Post], int]:
    """Own and followed users' non-archived posts, newest first."""
    following = select(Follow.following_id).where(Follow.follower_id == user_id)
    where = and_(Post.is_archived.is_(False), or_(Post.user_id == user_id, Post.user_id.in_(following)))
    return await _page(db, where, skip, limit)


async def get_posts_by_ids(db: AsyncSession, post_ids: list[UUID]) -> list[Post]:
    """Load posts keeping the order of ``post_ids``."""
    if not post_ids:
        return []
    result = await db.execute(_post_query().where(Post.id.in_(post_ids)))
    by_id = {p.id: p for p in result.scalars().all()}
    return [by_id[i] for i in post_ids if i in by_id]


async def posts_to_response(db: AsyncSession, posts: list[Post], viewer_id: UUID | None) -> list[PostResponse]:
    ids = [p.id for p in posts]
    liked = await get_user_liked_post_ids(db, viewer_id, ids) if viewer_id else set()
    tags = await hashtag_names_for_posts(db, ids)
    return [post_to_response(p, is_liked=p.id in liked, hashtags=tags.get(p.id, [])) for p in posts]


def post_to_response(post: Post, is_liked: bool = False, hashtags: list[str] | None = None) -> PostResponse:
    response = PostResponse.model_validate(post)
    response.is_liked = is_liked
    response.hashtags = hashtags or []
    return response


async def require_owned_post(db: AsyncSession, post_id: UUID, user: User) -> Post:
    post = await get_post_or_404(db, post_id)
    ensure_owner(post, user)
    return post
