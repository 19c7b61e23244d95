"""Notification creation and queries."""
import logging
from uuid import UUID

from sqlalchemy import desc, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from twilsta.core.exceptions import not_found
from twilsta.models.notification import Notification
from twilsta.models.user import User
from twilsta.workers.notifications import send_push_notification

logger = logging.getLogger(__name__)


def display_name(user: User) -> str:
    return user.full_name or user.username


async def create_notification(
    db: AsyncSession,
    *,
    user_id: UUID,
    actor_id: UUID | None,
    notification_type: str,
    title: str,
    text: str,
    data: dict | None = None,
) -> Notification | None:
    """Create a notification. Skips if actor is the same as user (no self-notify)."""
    if user_id == actor_id:
        return None
    notification = Notification(
        user_id=user_id,
        actor_id=actor_id,
        type=notification_type,
        title=title,
        text=text,
        data={k: str(v) for k, v in (data or {}).items()},
    )
    db.add(notification)
    send_push_notification.delay(str(user_id), title, text, notification.data)
    return notification


async def get_notifications(
    db: AsyncSession,
    user_id: UUID,
    *,
    skip: int = 0,
    limit: int = 20,
) -> tuple[list[Notification], int]:
    """Notifications for user, most recent first, with the total count."""
    total = await db.scalar(select(func.count(Notification.id)).where(Notification.user_id == user_id))
    result = await db.execute(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(desc(Notification.created_at))
        .offset(skip)
        .limit(limit)
        .options(selectinload(Notification.actor))
    )
    return list(result.scalars().all()), total or 0


async def get_unread_count(db: AsyncSession, user_id: UUID) -> int:
    result = await db.execute(
        select(func.count(Notification.id)).where(
            Notification.user_id == user_id,
            Notification.is_read.is_(False),
        )
    )
    return result.scalar() or 0


async def mark_all_read(db: AsyncSession, user_id: UUID) -> int:
    """Mark all notifications as read. Returns count updated."""
    stmt = (
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True)
    )
    result = await db.execute(stmt)
    return result.rowcount or 0


async def mark_read(db: AsyncSession, user_id: UUID, notification_ids: list[UUID]) -> int:
    """Mark the given notifications as read. Other users' ids are ignored."""
    stmt = (
        update(Notification)
        .where(
            Notification.id.in_(notification_ids),
            Notification.user_id == user_id,
            Notification.is_read.is_(False),
        )
        .values(is_read=True)
    )
    result = await db.execute(stmt)
    return result.rowcount or 0


async def mark_one_read(db: AsyncSession, user_id: UUID, notification_id: UUID) -> Notification:
    result = await db.execute(
        select(Notification)
        .where(Notification.id == notification_id, Notification.user_id == user_id)
        .options(selectinload(Notification.actor))
    )
    notification = result.scalar_one_or_none()
    if notification is None:
        raise not_found("notification")
    notification.is_read = True
    await db.flush()
    return notification
