"""Posts CRUD, archive, media, likes and post comments."""
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from twilsta.api.deps import PageParams, get_current_user, get_current_user_optional, get_db, pagination, rate_limit
from twilsta.api.errors import guarded
from twilsta.core.exceptions import not_found
from twilsta.models.user import User
from twilsta.schemas.comment import CommentCreate, CommentResponse
from twilsta.schemas.common import ApiResponse, Page, ok, paginated
from twilsta.schemas.post import PostCreate, PostResponse, PostUpdate
from twilsta.services import comment_service
from twilsta.services.post_service import (
    add_media,
    archive_post,
    create_post,
    delete_post,
    get_feed_posts,
    get_post_or_404,
    get_user_posts,
    like_post,
    posts_to_response,
    remove_media,
    require_owned_post,
    unarchive_post,
    unlike_post,
    update_post,
)
from twilsta.services.storage_service import POST_UPLOAD, save_upload
from twilsta.services.user_service import ensure_can_view, get_user_or_404

router = APIRouter(prefix="/posts", tags=["posts"])

WINDOW = 15 * 60


def post_form(
    caption: str | None = Form(None),
    location: str | None = Form(None),
    comments_enabled: bool = Form(True),
    likes_enabled: bool = Form(True),
    hashtags: list[str] | None = Form(None),
) -> PostCreate:
    """Build PostCreate from multipart fields; hashtags may repeat or be comma separated."""
    if hashtags:
        hashtags = [tag.strip() for value in hashtags for tag in value.split(",") if tag.strip()]
    try:
        return PostCreate(
            caption=caption,
            location=location,
            comments_enabled=comments_enabled,
            likes_enabled=likes_enabled,
            hashtags=hashtags or None,
        )
    except ValidationError as e:
        raise RequestValidationError(e.errors())


async def _visible_post(db: AsyncSession, post_id: UUID, viewer: User | None):
    post = await get_post_or_404(db, post_id)
    viewer_id = viewer.id if viewer else None
    if post.is_archived and post.user_id != viewer_id:
        raise not_found("post")
    await ensure_can_view(db, post.user, viewer_id)
    return post


async def _respond(db: AsyncSession, post_id: UUID, viewer: User) -> PostResponse:
    post = await get_post_or_404(db, post_id, fresh=True)
    return (await posts_to_response(db, [post], viewer.id))[0]


@router.post(
    "",
    response_model=ApiResponse[PostResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("create_post", 10, WINDOW))],
)
@guarded("create_post", "POST_CREATE_ERROR", "Failed to create post")
async def create_post_endpoint(
    data: PostCreate = Depends(post_form),
    file: UploadFile | None = File(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    media = await save_upload(file, POST_UPLOAD, "post", current_user.id)
    post = await create_post(db, current_user, data, [media])
    await db.commit()
    return ok(await _respond(db, post.id, current_user), "Post created successfully")


@router.get("/feed", response_model=ApiResponse[Page[PostResponse]])
@guarded("get_feed", "FEED_FETCH_ERROR", "Failed to fetch feed")
async def get_feed(
    page: PageParams = Depends(pagination()),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    posts, total = await get_feed_posts(db, current_user.id, skip=page.skip, limit=page.limit)
    items = await posts_to_response(db, posts, current_user.id)
    return ok(paginated(items, total, page.page, page.limit))


@router.get("/me", response_model=ApiResponse[Page[PostResponse]])
@guarded("get_my_posts", "POSTS_FETCH_ERROR", "Failed to fetch posts")
async def get_my_posts(
    page: PageParams = Depends(pagination()),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    posts, total = await get_user_posts(
        db, current_user.id, include_archived=True, skip=page.skip, limit=page.limit
    )
    items = await posts_to_response(db, posts, current_user.id)
    return ok(paginated(items, total, page.page, page.limit))


@router.get("/user/{user_id}", response_model=ApiResponse[Page[PostResponse]])
@guarded("get_user_posts", "POSTS_FETCH_ERROR", "Failed to fetch posts")
async def get_posts_of_user(
    user_id: UUID,
    page: PageParams = Depends(pagination()),
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    owner = await get_user_or_404(db, user_id)
    viewer_id = current_user.id if current_user else None
    await ensure_can_view(db, owner, viewer_id)
    posts, total = await get_user_posts(db, user_id, skip=page.skip, limit=page.limit)
    items = await posts_to_response(db, posts, viewer_id)
    return ok(paginated(items, total, page.page, page.limit))


@router.get("/{post_id}", response_model=ApiResponse[PostResponse])
@guarded("get_post", "POST_FETCH_ERROR", "Failed to fetch post")
async def get_post(
    post_id: UUID,
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    post = await _visible_post(db, post_id, current_user)
    items = await posts_to_response(db, [post], current_user.id if current_user else None)
    return ok(items[0])


@router.put(
    "/{post_id}",
    response_model=ApiResponse[PostResponse],
    dependencies=[Depends(rate_limit("update_post", 20, WINDOW))],
)
@guarded("update_post", "POST_UPDATE_ERROR", "Failed to update post")
async def update_post_endpoint(
    post_id: UUID,
    data: PostUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    post = await require_owned_post(db, post_id, current_user)
    await update_post(db, post, data)
    await db.commit()
    return ok(await _respond(db, post_id, current_user), "Post updated successfully")


@router.delete("/{post_id}", response_model=ApiResponse[None])
@guarded("delete_post", "POST_DELETE_ERROR", "Failed to delete post")
async def delete_post_endpoint(
    post_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    post = await require_owned_post(db, post_id, current_user)
    await delete_post(db, post)
    await db.commit()
    return ok(message="Post deleted successfully")


@router.post("/{post_id}/archive", response_model=ApiResponse[PostResponse])
@guarded("archive_post", "POST_ARCHIVE_ERROR", "Failed to archive post")
async def archive(
    post_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    post = await require_owned_post(db, post_id, current_user)
    await archive_post(db, post)
    await db.commit()
    return ok(await _respond(db, post_id, current_user), "Post archived successfully")


@router.delete("/{post_id}/archive", response_model=ApiResponse[PostResponse])
@guarded("unarchive_post", "POST_UNARCHIVE_ERROR", "Failed to unarchive post")
async def unarchive(
    post_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    post = await require_owned_post(db, post_id, current_user)
    await unarchive_post(db, post)
    await db.commit()
    return ok(await _respond(db, post_id, current_user), "Post unarchived successfully")


@router.post(
    "/{post_id}/media",
    response_model=ApiResponse[PostResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("add_media", 20, WINDOW))],
)
@guarded("add_media", "MEDIA_ADD_ERROR", "Failed to add media")
async def add_post_media(
    post_id: UUID,
    file: UploadFile | None = File(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    post = await require_owned_post(db, post_id, current_user)
    media = await save_upload(file, POST_UPLOAD, "post", current_user.id)
    await add_media(db, post, media)
    await db.commit()
    return ok(await _respond(db, post_id, current_user), "Media added successfully")


@router.delete("/{post_id}/media/{media_id}", response_model=ApiResponse[PostResponse])
@guarded("remove_media", "MEDIA_REMOVE_ERROR", "Failed to remove media")
async def remove_post_media(
    post_id: UUID,
    media_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    post = await require_owned_post(db, post_id, current_user)
    await remove_media(db, post, media_id)
    await db.commit()
    return ok(await _respond(db, post_id, current_user), "Media removed successfully")


@router.post("/{post_id}/like", response_model=ApiResponse[PostResponse])
@guarded("like_post", "POST_LIKE_ERROR", "Failed to like post")
async def like(
    post_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    post = await _visible_post(db, post_id, current_user)
    await like_post(db, post, current_user)
    await db.commit()
    return ok(await _respond(db, post_id, current_user), "Post liked successfully")


@router.delete("/{post_id}/like", response_model=ApiResponse[PostResponse])
@guarded("unlike_post", "POST_UNLIKE_ERROR", "Failed to unlike post")
async def unlike(
    post_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    post = await get_post_or_404(db, post_id)
    await unlike_post(db, post, current_user)
    await db.commit()
    return ok(await _respond(db, post_id, current_user), "Post unliked successfully")


@router.get("/{post_id}/comments", response_model=ApiResponse[Page[CommentResponse]])
@guarded("get_comments", "COMMENTS_FETCH_ERROR", "Failed to fetch comments")
async def get_comments(
    post_id: UUID,
    page: PageParams = Depends(pagination(default_limit=20)),
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    post = await _visible_post(db, post_id, current_user)
    comment_service.ensure_comments_enabled(post)
    comments, total = await comment_service.list_comments(db, post.id, skip=page.skip, limit=page.limit)
    items = await comment_service.comments_to_response(db, comments, current_user.id if current_user else None)
    return ok(paginated(items, total, page.page, page.limit))


@router.post(
    "/{post_id}/comments",
    response_model=ApiResponse[CommentResponse],
    status_code=status.HTTP_201_CREATED,
)
@guarded("create_comment", "COMMENT_CREATE_ERROR", "Failed to create comment")
async def create_comment(
    post_id: UUID,
    data: CommentCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    post = await _visible_post(db, post_id, current_user)
    comment = await comment_service.add_comment(db, post, current_user, data.content, data.parent_id)
    await db.commit()
    comment = await comment_service.get_comment_or_404(db, comment.id, fresh=True)
    return ok(comment_service.comment_to_response(comment), "Comment created successfully")
