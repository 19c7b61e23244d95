"""Stories: 24h media with views and reactions."""
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from twilsta.api.deps import get_current_user, get_db, rate_limit
from twilsta.api.errors import guarded
from twilsta.models.user import User
from twilsta.schemas.common import ApiResponse, ok
from twilsta.schemas.story import (
    StoryCreate,
    StoryReactionRequest,
    StoryReactionResponse,
    StoryResponse,
    StoryViewer,
)
from twilsta.services.storage_service import STORY_UPLOAD, save_upload
from twilsta.services.story_service import (
    create_story,
    delete_story,
    get_feed_stories,
    get_story_or_404,
    get_user_stories,
    get_viewers,
    react_to_story,
    stories_to_response,
    view_story,
)
from twilsta.services.user_service import ensure_can_view, get_user_or_404

router = APIRouter(prefix="/stories", tags=["stories"])


def story_form(text: str | None = Form(None)) -> StoryCreate:
    try:
        return StoryCreate(text=text)
    except ValidationError as e:
        raise RequestValidationError(e.errors())


async def _visible_story(db: AsyncSession, story_id: UUID, viewer: User):
    story = await get_story_or_404(db, story_id)
    await ensure_can_view(db, story.user, viewer.id)
    return story


@router.post(
    "",
    response_model=ApiResponse[StoryResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("create_story", 10, 15 * 60))],
)
@guarded("create_story", "STORY_CREATE_ERROR", "Failed to create story")
async def create(
    data: StoryCreate = Depends(story_form),
    file: UploadFile | None = File(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    media = await save_upload(file, STORY_UPLOAD, "story", current_user.id)
    story = await create_story(db, current_user, media, data.text)
    await db.commit()
    story = await get_story_or_404(db, story.id, fresh=True)
    return ok((await stories_to_response(db, [story], current_user.id))[0], "Story created successfully")


@router.get("/me", response_model=ApiResponse[list[StoryResponse]])
@guarded("get_my_stories", "STORIES_FETCH_ERROR", "Failed to fetch stories")
async def my_stories(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    stories = await get_user_stories(db, current_user.id)
    return ok(await stories_to_response(db, stories, current_user.id))


@router.get("/feed", response_model=ApiResponse[list[StoryResponse]])
@guarded("get_stories_feed", "STORIES_FEED_ERROR", "Failed to fetch stories feed")
async def stories_feed(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    stories = await get_feed_stories(db, current_user.id)
    return ok(await stories_to_response(db, stories, current_user.id))


@router.get("/user/{user_id}", response_model=ApiResponse[list[StoryResponse]])
@guarded("get_user_stories", "STORIES_FETCH_ERROR", "Failed to fetch stories")
async def user_stories(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    owner = await get_user_or_404(db, user_id)
    await ensure_can_view(db, owner, current_user.id)
    stories = await get_user_stories(db, user_id)
    return ok(await stories_to_response(db, stories, current_user.id))


@router.delete("/{story_id}", response_model=ApiResponse[None])
@guarded("delete_story", "STORY_DELETE_ERROR", "Failed to delete story")
async def delete(
    story_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    story = await get_story_or_404(db, story_id)
    await delete_story(db, story, current_user)
    await db.commit()
    return ok(message="Story deleted successfully")


@router.post("/{story_id}/view", response_model=ApiResponse[None])
@guarded("view_story", "STORY_VIEW_ERROR", "Failed to view story")
async def view(
    story_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    story = await _visible_story(db, story_id, current_user)
    recorded = await view_story(db, story, current_user)
    await db.commit()
    return ok(message="Story viewed successfully" if recorded else "Story already viewed")


@router.get("/{story_id}/viewers", response_model=ApiResponse[list[StoryViewer]])
@guarded("get_story_viewers", "STORY_VIEWERS_ERROR", "Failed to fetch story viewers")
async def viewers(
    story_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    story = await get_story_or_404(db, story_id)
    return ok(await get_viewers(db, story, current_user))


@router.post("/{story_id}/react", response_model=ApiResponse[StoryReactionResponse])
@guarded("react_to_story", "STORY_REACTION_ERROR", "Failed to react to story")
async def react(
    story_id: UUID,
    data: StoryReactionRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    story = await _visible_story(db, story_id, current_user)
    reaction = await react_to_story(db, story, current_user, data.reaction)
    await db.commit()
    await db.refresh(reaction)
    return ok(StoryReactionResponse.model_validate(reaction), "Reaction added successfully")
