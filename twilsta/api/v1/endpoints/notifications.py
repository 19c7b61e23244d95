"""Notifications API."""
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from twilsta.api.deps import PageParams, get_current_user, get_db, pagination
from twilsta.api.errors import guarded
from twilsta.models.user import User
from twilsta.schemas.common import ApiResponse, Page, ok, paginated
from twilsta.schemas.notification import MarkReadRequest, NotificationResponse
from twilsta.services.notification_service import get_notifications, get_unread_count, mark_all_read, mark_one_read, mark_read

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("", response_model=ApiResponse[Page[NotificationResponse]])
@guarded("get_notifications", "NOTIFICATIONS_FETCH_ERROR", "Failed to fetch notifications")
async def list_notifications(
    page: PageParams = Depends(pagination(default_limit=20)),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    items, total = await get_notifications(db, current_user.id, skip=page.skip, limit=page.limit)
    data = [NotificationResponse.model_validate(n) for n in items]
    return ok(paginated(data, total, page.page, page.limit))


@router.get("/unread-count", response_model=ApiResponse[dict])
@guarded("get_unread_count", "NOTIFICATIONS_FETCH_ERROR", "Failed to fetch unread count")
async def unread_count(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return ok({"count": await get_unread_count(db, current_user.id)})


@router.post("/read", response_model=ApiResponse[dict])
@guarded("mark_notifications_read", "NOTIFICATIONS_UPDATE_ERROR", "Failed to mark notifications as read")
async def read_many(
    data: MarkReadRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    updated = await mark_read(db, current_user.id, data.ids)
    await db.commit()
    return ok({"updated": updated}, "Notifications marked as read")


@router.post("/read-all", response_model=ApiResponse[dict])
@guarded("mark_all_notifications_read", "NOTIFICATIONS_UPDATE_ERROR", "Failed to mark notifications as read")
async def read_all(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    updated = await mark_all_read(db, current_user.id)
    await db.commit()
    return ok({"updated": updated}, "All notifications marked as read")


@router.post("/{notification_id}/read", response_model=ApiResponse[NotificationResponse])
@guarded("mark_notification_read", "NOTIFICATIONS_UPDATE_ERROR", "Failed to mark notification as read")
async def read_one(
    notification_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    notification = await mark_one_read(db, current_user.id, notification_id)
    await db.commit()
    return ok(NotificationResponse.model_validate(notification), "Notification marked as read")
