"""Hashtags: trending, search, suggestions and tagged posts."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from twilsta.api.deps import PageParams, get_current_user, get_current_user_optional, get_db, pagination
from twilsta.api.errors import guarded
from twilsta.models.user import User
from twilsta.schemas.common import ApiResponse, Page, ok, paginated
from twilsta.schemas.hashtag import HashtagResponse
from twilsta.schemas.post import PostResponse
from twilsta.services.hashtag_service import (
    get_hashtag_or_404,
    get_hashtag_posts,
    get_suggestions,
    get_trending,
    search_hashtags,
)
from twilsta.services.post_service import get_posts_by_ids, posts_to_response

router = APIRouter(prefix="/hashtags", tags=["hashtags"])


@router.get("", response_model=ApiResponse[Page[HashtagResponse]])
@guarded("get_trending_hashtags", "HASHTAGS_FETCH_ERROR", "Failed to fetch hashtags")
async def trending(
    page: PageParams = Depends(pagination()),
    db: AsyncSession = Depends(get_db),
):
    tags, total = await get_trending(db, skip=page.skip, limit=page.limit)
    return ok(paginated([HashtagResponse.model_validate(t) for t in tags], total, page.page, page.limit))


@router.get("/search", response_model=ApiResponse[Page[HashtagResponse]])
@guarded("search_hashtags", "HASHTAG_SEARCH_ERROR", "Failed to search hashtags")
async def search(
    q: str = Query(..., min_length=1, max_length=50),
    page: PageParams = Depends(pagination()),
    db: AsyncSession = Depends(get_db),
):
    tags, total = await search_hashtags(db, q, skip=page.skip, limit=page.limit)
    return ok(paginated([HashtagResponse.model_validate(t) for t in tags], total, page.page, page.limit))


@router.get("/suggestions", response_model=ApiResponse[list[HashtagResponse]])
@guarded("get_hashtag_suggestions", "HASHTAG_SUGGESTIONS_ERROR", "Failed to fetch hashtag suggestions")
async def suggestions(
    limit: int = Query(10, ge=1, le=50),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    tags = await get_suggestions(db, current_user.id, limit=limit)
    return ok([HashtagResponse.model_validate(t) for t in tags])


@router.get("/{name}", response_model=ApiResponse[HashtagResponse])
@guarded("get_hashtag", "HASHTAG_FETCH_ERROR", "Failed to fetch hashtag")
async def get_hashtag(
    name: str,
    db: AsyncSession = Depends(get_db),
):
    return ok(HashtagResponse.model_validate(await get_hashtag_or_404(db, name)))


@router.get("/{name}/posts", response_model=ApiResponse[Page[PostResponse]])
@guarded("get_hashtag_posts", "HASHTAG_POSTS_ERROR", "Failed to fetch hashtag posts")
async def hashtag_posts(
    name: str,
    page: PageParams = Depends(pagination()),
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    tag = await get_hashtag_or_404(db, name)
    viewer_id = current_user.id if current_user else None
    post_ids, total = await get_hashtag_posts(db, tag, viewer_id, skip=page.skip, limit=page.limit)
    posts = await get_posts_by_ids(db, post_ids)
    items = await posts_to_response(db, posts, viewer_id)
    return ok(paginated(items, total, page.page, page.limit))
