"""Story business logic: 24h stories, views and reactions."""
import logging
from datetime import timedelta
from uuid import UUID

from sqlalchemy import desc, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from twilsta.core.config import settings
from twilsta.core.exceptions import access_denied, not_found
from twilsta.db.session import utcnow
from twilsta.models.engagement import Follow
from twilsta.models.story import Story, StoryReaction, StoryView
from twilsta.models.user import User
from twilsta.schemas.story import StoryResponse, StoryViewer
from twilsta.services.notification_service import create_notification, display_name
from twilsta.services.storage_service import StoredMedia, delete_media_quietly

logger = logging.getLogger(__name__)


async def create_story(db: AsyncSession, user: User, media: StoredMedia, text: str | None) -> Story:
    story = Story(
        user_id=user.id,
        media_url=media.url,
        media_type=media.media_type,
        text=text,
        expires_at=utcnow() + timedelta(hours=settings.STORY_TTL_HOURS),
    )
    db.add(story)
    await db.flush()
    logger.info("story_created user_id=%s story_id=%s", user.id, story.id)
    return story


async def get_story_or_404(db: AsyncSession, story_id: UUID, *, fresh: bool = False) -> Story:
    stmt = select(Story).where(Story.id == story_id).options(selectinload(Story.user))
    if fresh:
        stmt = stmt.execution_options(populate_existing=True)
    story = (await db.execute(stmt)).scalar_one_or_none()
    if story is None:
        raise not_found("story")
    return story


async def _active_stories(db: AsyncSession, where) -> list[Story]:
    result = await db.execute(
        select(Story)
        .where(where, Story.expires_at > utcnow())
        .order_by(desc(Story.created_at))
        .options(selectinload(Story.user))
    )
    return list(result.scalars().all())


async def get_user_stories(db: AsyncSession, user_id: UUID) -> list[Story]:
    return await _active_stories(db, Story.user_id == user_id)


async def get_feed_stories(db: AsyncSession, user_id: UUID) -> list[Story]:
    """Unexpired stories of followed users, newest first."""
    following = select(Follow.following_id).where(Follow.follower_id == user_id)
    return await _active_stories(db, Story.user_id.in_(following))


async def delete_story(db: AsyncSession, story: Story, user: User) -> None:
    if story.user_id != user.id:
        raise access_denied("You can only delete your own stories")
    url = story.media_url
    await db.delete(story)
    await db.flush()
    delete_media_quietly(url, context=f"story_delete:{story.id}")
    logger.info("story_deleted user_id=%s story_id=%s", user.id, story.id)


async def view_story(db: AsyncSession, story: Story, user: User) -> bool:
    """Record a view once per user. Owners viewing their own story are not counted."""
    if story.expires_at <= utcnow():
        raise not_found("story")
    if story.user_id == user.id:
        return False
    existing = await db.execute(
        select(StoryView.id).where(StoryView.story_id == story.id, StoryView.user_id == user.id)
    )
    if existing.first() is not None:
        return False
    db.add(StoryView(story_id=story.id, user_id=user.id))
    try:
        await db.flush()
    except IntegrityError:
        await db.rollback()
        return False
    await create_notification(
        db,
        user_id=story.user_id,
        actor_id=user.id,
        notification_type="STORY_VIEW",
        title="Story view",
        text=f"{display_name(user)} viewed your story",
        data={"story_id": story.id},
    )
    return True


async def get_viewers(db: AsyncSession, story: Story, user: User) -> list[StoryViewer]:
    if story.user_id != user.id:
        raise access_denied("Only the story owner can see its viewers")
    result = await db.execute(
        select(User, StoryView.created_at)
        .join(StoryView, StoryView.user_id == User.id)
        .where(StoryView.story_id == story.id)
        .order_by(desc(StoryView.created_at))
    )
    viewers = []
    for viewer, viewed_at in result.all():
        viewers.append(StoryViewer(
            id=viewer.id,
            username=viewer.username,
            full_name=viewer.full_name,
            avatar_url=viewer.avatar_url,
            is_verified=viewer.is_verified,
            viewed_at=viewed_at,
        ))
    return viewers


async def react_to_story(db: AsyncSession, story: Story, user: User, reaction: str) -> StoryReaction:
    """One reaction per user per story; reacting again replaces it."""
    if story.expires_at <= utcnow():
        raise not_found("story")
    result = await db.execute(
        select(StoryReaction).where(StoryReaction.story_id == story.id, StoryReaction.user_id == user.id)
    )
    existing = result.scalar_one_or_none()
    if existing is not None:
        existing.reaction = reaction
        await db.flush()
        return existing
    story_reaction = StoryReaction(story_id=story.id, user_id=user.id, reaction=reaction)
    db.add(story_reaction)
    await db.flush()
    logger.info("story_reacted user_id=%s story_id=%s reaction=%s", user.id, story.id, reaction)
    return story_reaction


async def stories_to_response(db: AsyncSession, stories: list[Story], viewer_id: UUID) -> list[StoryResponse]:
    ids = [s.id for s in stories]
    if not ids:
        return []
    viewed = set(
        (await db.scalars(
            select(StoryView.story_id).where(StoryView.story_id.in_(ids), StoryView.user_id == viewer_id)
        )).all()
    )
    counts = dict(
        (await db.execute(
            select(StoryView.story_id, func.count(StoryView.id)).where(StoryView.story_id.in_(ids)).group_by(StoryView.story_id)
        )).all()
    )
    responses = []
    for story in stories:
        response = StoryResponse.model_validate(story)
        response.is_viewed = story.id in viewed
        response.views_count = counts.get(story.id, 0)
        responses.append(response)
    return responses
