"""User profile, avatar and follow endpoints."""
from uuid import UUID

from fastapi import APIRouter, Depends, File, Response, UploadFile
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from twilsta.api.deps import PageParams, get_access_token, get_current_user, get_current_user_optional, get_db, pagination
from twilsta.api.errors import guarded
from twilsta.core.config import settings
from twilsta.core.exceptions import not_found
from twilsta.core.security import decode_token, revoked_tokens
from twilsta.models.user import User
from twilsta.schemas.common import ApiResponse, Page, ok, paginated
from twilsta.schemas.password import ChangePasswordRequest
from twilsta.schemas.user import FollowRequestUser, FollowUser, UserProfile, UserResponse, UserUpdate
from twilsta.services.auth_service import user_to_response
from twilsta.services.storage_service import AVATAR_UPLOAD, save_upload
from twilsta.services.user_service import (
    accept_follow_request,
    build_profile,
    cancel_follow_request,
    change_password,
    delete_account,
    ensure_can_view,
    follow_user,
    get_user_or_404,
    list_follow_requests,
    list_follows,
    reject_follow_request,
    remove_avatar,
    set_avatar,
    unfollow_user,
    update_profile,
)

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=ApiResponse[UserResponse])
@guarded("get_me", "USER_FETCH_ERROR", "Failed to fetch user")
async def get_me(current_user: User = Depends(get_current_user)):
    return ok(user_to_response(current_user))


@router.put("/me", response_model=ApiResponse[UserResponse])
@guarded("update_profile", "PROFILE_UPDATE_ERROR", "Failed to update profile")
async def update_me(
    data: UserUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await update_profile(db, current_user, data)
    await db.commit()
    await db.refresh(user)
    return ok(user_to_response(user), "Profile updated successfully")


@router.delete("/me", response_model=ApiResponse[None])
@guarded("delete_account", "ACCOUNT_DELETE_ERROR", "Failed to delete account")
async def delete_me(
    response: Response,
    token: str | None = Depends(get_access_token),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await delete_account(db, current_user)
    await db.commit()
    payload = decode_token(token) if token else None
    if payload and payload.get("jti"):
        revoked_tokens.revoke(payload["jti"], float(payload.get("exp", 0)))
    response.delete_cookie(settings.ACCESS_TOKEN_COOKIE)
    response.delete_cookie(settings.REFRESH_TOKEN_COOKIE)
    return ok(message="Account deleted successfully")


@router.post("/me/avatar", response_model=ApiResponse[UserResponse])
@guarded("upload_avatar", "AVATAR_UPLOAD_ERROR", "Failed to upload avatar")
async def upload_avatar(
    file: UploadFile | None = File(None),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    media = await save_upload(file, AVATAR_UPLOAD, "avatar", current_user.id)
    user = await set_avatar(db, current_user, media)
    await db.commit()
    await db.refresh(user)
    return ok(user_to_response(user), "Avatar updated successfully")


@router.delete("/me/avatar", response_model=ApiResponse[UserResponse])
@guarded("delete_avatar", "AVATAR_DELETE_ERROR", "Failed to delete avatar")
async def delete_avatar(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    user = await remove_avatar(db, current_user)
    await db.commit()
    await db.refresh(user)
    return ok(user_to_response(user), "Avatar deleted successfully")


@router.post("/me/change-password", response_model=ApiResponse[None])
@guarded("change_password", "PASSWORD_CHANGE_ERROR", "Failed to change password")
async def change_password_endpoint(
    data: ChangePasswordRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await change_password(db, current_user, data.current_password, data.new_password)
    await db.commit()
    return ok(message="Password updated successfully")


@router.get("/me/follow-requests", response_model=ApiResponse[Page[FollowRequestUser]])
@guarded("get_follow_requests", "FOLLOW_REQUESTS_FETCH_ERROR", "Failed to fetch follow requests")
async def get_follow_requests(
    page: PageParams = Depends(pagination()),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """People waiting for the current user to accept their follow."""
    items, total = await list_follow_requests(db, current_user.id, skip=page.skip, limit=page.limit)
    return ok(paginated(items, total, page.page, page.limit))


@router.post("/me/follow-requests/{requester_id}/accept", response_model=ApiResponse[UserProfile])
@guarded("accept_follow_request", "FOLLOW_REQUEST_ERROR", "Failed to accept follow request")
async def accept_request(
    requester_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    requester = await accept_follow_request(db, current_user, requester_id)
    await db.commit()
    await db.refresh(requester)
    return ok(await build_profile(db, requester, current_user.id), "Follow request accepted")


@router.post("/me/follow-requests/{requester_id}/reject", response_model=ApiResponse[None])
@guarded("reject_follow_request", "FOLLOW_REQUEST_ERROR", "Failed to reject follow request")
async def reject_request(
    requester_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await reject_follow_request(db, current_user, requester_id)
    await db.commit()
    return ok(message="Follow request rejected")


@router.get("/username/{username}", response_model=ApiResponse[UserProfile])
@guarded("get_user_by_username", "USER_FETCH_ERROR", "Failed to fetch user")
async def get_user_by_username(
    username: str,
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    user = (await db.execute(select(User).where(User.username == username))).scalar_one_or_none()
    if user is None:
        raise not_found("user")
    return ok(await build_profile(db, user, current_user.id if current_user else None))


@router.get("/{user_id}", response_model=ApiResponse[UserProfile])
@guarded("get_user", "USER_FETCH_ERROR", "Failed to fetch user")
async def get_user(
    user_id: UUID,
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    user = await get_user_or_404(db, user_id)
    return ok(await build_profile(db, user, current_user.id if current_user else None))


@router.post("/{user_id}/follow", response_model=ApiResponse[UserProfile])
@guarded("follow_user", "FOLLOW_ERROR", "Failed to follow user")
async def follow(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    _, requested = await follow_user(db, current_user, user_id)
    await db.commit()
    target = await get_user_or_404(db, user_id)
    await db.refresh(target)
    message = "Follow request sent" if requested else "User followed successfully"
    return ok(await build_profile(db, target, current_user.id), message)


@router.delete("/{user_id}/follow", response_model=ApiResponse[UserProfile])
@guarded("unfollow_user", "UNFOLLOW_ERROR", "Failed to unfollow user")
async def unfollow(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await unfollow_user(db, current_user, user_id)
    await db.commit()
    target = await get_user_or_404(db, user_id)
    await db.refresh(target)
    return ok(await build_profile(db, target, current_user.id), "User unfollowed successfully")


@router.delete("/{user_id}/follow-request", response_model=ApiResponse[UserProfile])
@guarded("cancel_follow_request", "FOLLOW_REQUEST_ERROR", "Failed to cancel follow request")
async def cancel_request(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    target = await cancel_follow_request(db, current_user, user_id)
    await db.commit()
    return ok(await build_profile(db, target, current_user.id), "Follow request cancelled")


async def _follow_page(db: AsyncSession, user_id: UUID, viewer: User | None, page: PageParams, *, followers: bool) -> Page[FollowUser]:
    owner = await get_user_or_404(db, user_id)
    await ensure_can_view(db, owner, viewer.id if viewer else None)
    items, total = await list_follows(db, user_id, followers=followers, skip=page.skip, limit=page.limit)
    return paginated(items, total, page.page, page.limit)


@router.get("/{user_id}/followers", response_model=ApiResponse[Page[FollowUser]])
@guarded("get_followers", "FOLLOWERS_FETCH_ERROR", "Failed to fetch followers")
async def get_followers(
    user_id: UUID,
    page: PageParams = Depends(pagination()),
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    return ok(await _follow_page(db, user_id, current_user, page, followers=True))


@router.get("/{user_id}/following", response_model=ApiResponse[Page[FollowUser]])
@guarded("get_following", "FOLLOWING_FETCH_ERROR", "Failed to fetch following")
async def get_following(
    user_id: UUID,
    page: PageParams = Depends(pagination()),
    current_user: User | None = Depends(get_current_user_optional),
    db: AsyncSession = Depends(get_db),
):
    return ok(await _follow_page(db, user_id, current_user, page, followers=False))
