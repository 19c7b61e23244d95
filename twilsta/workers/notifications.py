"""Celery tasks for push notifications."""
import logging

from twilsta.core.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task
def send_push_notification(user_id: str, title: str, body: str, data: dict | None = None) -> dict:
    # Placeholder: FCM/APNs
    logger.info("push_notification user_id=%s title=%s", user_id, title)
    return {"user_id": user_id, "title": title, "body": body, "data": data or {}}
