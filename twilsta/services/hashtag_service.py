"""Hashtag attachment, trending and search."""
from uuid import UUID

from sqlalchemy import and_, delete, desc, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from twilsta.core.exceptions import not_found
from twilsta.core.text import normalize_hashtag
from twilsta.models.engagement import Follow
from twilsta.models.hashtag import Hashtag, PostHashtag
from twilsta.models.post import Post
from twilsta.models.user import User


async def attach_hashtags(db: AsyncSession, post_id: UUID, names: list[str]) -> list[Hashtag]:
    """Link ``names`` to a post, creating missing tags and bumping posts_count."""
    if not names:
        return []
    result = await db.execute(select(Hashtag).where(Hashtag.name.in_(names)))
    existing = {tag.name: tag for tag in result.scalars().all()}
    tags = []
    for name in names:
        tag = existing.get(name)
        if tag is None:
            tag = Hashtag(name=name, posts_count=0)
            db.add(tag)
            await db.flush()
        tags.append(tag)
        db.add(PostHashtag(post_id=post_id, hashtag_id=tag.id))
    await db.execute(
        update(Hashtag)
        .where(Hashtag.id.in_([t.id for t in tags]))
        .values(posts_count=Hashtag.posts_count + 1)
    )
    return tags


async def detach_hashtags(db: AsyncSession, post_id: UUID) -> None:
    tag_ids = list((await db.scalars(select(PostHashtag.hashtag_id).where(PostHashtag.post_id == post_id))).all())
    if not tag_ids:
        return
    await db.execute(delete(PostHashtag).where(PostHashtag.post_id == post_id))
    await db.execute(
        update(Hashtag)
        .where(Hashtag.id.in_(tag_ids), Hashtag.posts_count > 0)
        .values(posts_count=Hashtag.posts_count - 1)
    )


async def hashtag_names_for_posts(db: AsyncSession, post_ids: list[UUID]) -> dict[UUID, list[str]]:
    if not post_ids:
        return {}
    result = await db.execute(
        select(PostHashtag.post_id, Hashtag.name)
        .join(Hashtag, Hashtag.id == PostHashtag.hashtag_id)
        .where(PostHashtag.post_id.in_(post_ids))
        .order_by(Hashtag.name)
    )
    names: dict[UUID, list[str]] = {}
    for post_id, name in result.all():
        names.setdefault(post_id, []).append(name)
    return names


async def get_trending(db: AsyncSession, *, skip: int = 0, limit: int = 10) -> tuple[list[Hashtag], int]:
    where = Hashtag.posts_count > 0
    total = await db.scalar(select(func.count(Hashtag.id)).where(where))
    result = await db.execute(
        select(Hashtag).where(where).order_by(desc(Hashtag.posts_count), Hashtag.name).offset(skip).limit(limit)
    )
    return list(result.scalars().all()), total or 0


async def search_hashtags(db: AsyncSession, query: str, *, skip: int = 0, limit: int = 10) -> tuple[list[Hashtag], int]:
    term = normalize_hashtag(query)
    where = Hashtag.name.contains(term, autoescape=True)
    total = await db.scalar(select(func.count(Hashtag.id)).where(where))
    result = await db.execute(
        select(Hashtag).where(where).order_by(desc(Hashtag.posts_count), Hashtag.name).offset(skip).limit(limit)
    )
    return list(result.scalars().all()), total or 0


async def get_suggestions(db: AsyncSession, user_id: UUID, *, limit: int = 10) -> list[Hashtag]:
    """Popular tags the user has not used in their 50 most recent posts."""
    recent_posts = (
        select(Post.id).where(Post.user_id == user_id).order_by(desc(Post.created_at)).limit(50).subquery()
    )
    used = select(PostHashtag.hashtag_id).where(PostHashtag.post_id.in_(select(recent_posts.c.id)))
    result = await db.execute(
        select(Hashtag)
        .where(Hashtag.posts_count > 0, Hashtag.id.not_in(used))
        .order_by(desc(Hashtag.posts_count), Hashtag.name)
        .limit(limit)
    )
    return list(result.scalars().all())


async def get_hashtag_or_404(db: AsyncSession, name: str) -> Hashtag:
    result = await db.execute(select(Hashtag).where(Hashtag.name == normalize_hashtag(name)))
    tag = result.scalar_one_or_none()
    if tag is None:
        raise not_found("hashtag")
    return tag


async def get_hashtag_posts(
    db: AsyncSession,
    tag: Hashtag,
    viewer_id: UUID | None,
    *,
    skip: int = 0,
    limit: int = 10,
) -> tuple[list[UUID], int]:
    """Ids of visible, non-archived posts carrying ``tag``, newest first."""
    visible = User.is_private.is_(False)
    if viewer_id is not None:
        following = select(Follow.following_id).where(Follow.follower_id == viewer_id)
        visible = or_(User.is_private.is_(False), Post.user_id == viewer_id, Post.user_id.in_(following))
    where = and_(PostHashtag.hashtag_id == tag.id, Post.is_archived.is_(False), visible)
    base = (
        select(Post.id)
        .join(PostHashtag, PostHashtag.post_id == Post.id)
        .join(User, User.id == Post.user_id)
        .where(where)
    )
    total = await db.scalar(select(func.count()).select_from(base.subquery()))
    result = await db.execute(base.order_by(desc(Post.created_at)).offset(skip).limit(limit))
    return list(result.scalars().all()), total or 0
