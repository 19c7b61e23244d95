"""Comment edit/delete, replies and comment likes."""
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from twilsta.api.deps import PageParams, get_current_user, get_current_user_optional, get_db, pagination, rate_limit
from twilsta.api.errors import guarded
from twilsta.core.exceptions import not_found
from twilsta.models.user import User
from twilsta.schemas.comment import CommentResponse, CommentUpdate, ReplyCreate
from twilsta.schemas.common import ApiResponse, Page, ok, paginated
from twilsta.services.comment_service import (
    comment_to_response,
    comments_to_response,
    delete_comment,
    get_comment_or_404,
    like_comment,
    list_comments,
    reply_to_comment,
    unlike_comment,
    update_comment,
)
from twilsta.services.user_service import ensure_can_view, get_user_or_404

router = APIRouter(prefix="/comments", tags=["comments"])

WINDOW = 15 * 60


async def _respond(db: AsyncSession, comment_id: UUID, viewer: User) -> CommentResponse:
    comment = await get_comment_or_404(db, comment_id, fresh=True)
    return (await comments_to_response(db, [comment], viewer.id))[0]


async def _visible_comment(db: AsyncSession, comment_id: UUID, viewer: User | None):
    comment = await get_comment_or_404(db, comment_id)
    viewer_id = viewer.id if viewer else None
    if comment.post.is_archived and comment.post.user_id != viewer_id:
        raise not_found("post")
    author = await get_user_or_404(db, comment.post.user_id)
    await ensure_can_view(db, author, viewer_id)
    return comment


@router.put(
    "/{comment_id}",
    response_model=ApiResponse[CommentResponse],
    dependencies=[Depends(rate_limit("update_comment", 20, WINDOW))],
)
@guarded("update_comment", "COMMENT_UPDATE_ERROR", "Failed to update comment")
async def update_comment_endpoint(
    comment_id: UUID,
    data: CommentUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    comment = await get_comment_or_404(db, comment_id)
    await update_comment(db, comment, current_user, data.content)
    await db.commit()
    return ok(await _respond(db, comment_id, current_user), "Comment updated successfully")


@router.delete("/{comment_id}", response_model=ApiResponse[None])
@guarded("delete_comment", "COMMENT_DELETE_ERROR", "Failed to delete comment")
async def delete_comment_endpoint(
    comment_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    comment = await get_comment_or_404(db, comment_id)
    await delete_comment(db, comment, current_user)
    await db.commit()
    return ok(message="Comment deleted successfully")


@router.post(
    "/{comment_id}/reply",
    response_model=ApiResponse[CommentResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("reply_comment", 20, WINDOW))],
)
@guarded("reply_comment", "COMMENT_REPLY_ERROR", "Failed to reply to comment")
async def reply(
    comment_id: UUID,
    data: ReplyCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    parent = await _visible_comment(db, comment_id, current_user)
    comment = await reply_to_comment(db, parent, current_user, data.content)
    await db.commit()
    comment = await get_comment_or_404(db, comment.id, fresh=True)
    return ok(comment_to_response(comment), "Reply created successfully")


@router.get("/{comment_id}/replies", response_model=ApiResponse[Page[CommentResponse]])
@guarded("get_replies", "REPLIES_FETCH_ERROR", "Failed to fetch replies")
async def get_replies(
    comment_id: UUID,
    page: PageParams = Depends(pagination(default_limit=20)),
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    comment = await _visible_comment(db, comment_id, current_user)
    replies, total = await list_comments(
        db, comment.post_id, parent_id=comment.id, skip=page.skip, limit=page.limit
    )
    items = await comments_to_response(db, replies, current_user.id if current_user else None)
    return ok(paginated(items, total, page.page, page.limit))


@router.post("/{comment_id}/like", response_model=ApiResponse[CommentResponse])
@guarded("like_comment", "COMMENT_LIKE_ERROR", "Failed to like comment")
async def like(
    comment_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    comment = await _visible_comment(db, comment_id, current_user)
    await like_comment(db, comment, current_user)
    await db.commit()
    return ok(await _respond(db, comment_id, current_user), "Comment liked successfully")


@router.delete("/{comment_id}/like", response_model=ApiResponse[CommentResponse])
@guarded("unlike_comment", "COMMENT_UNLIKE_ERROR", "Failed to unlike comment")
async def unlike(
    comment_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    comment = await get_comment_or_404(db, comment_id)
    await unlike_comment(db, comment, current_user)
    await db.commit()
    return ok(await _respond(db, comment_id, current_user), "Comment unliked successfully")
