"""Celery application for background tasks (push notifications)."""
from celery import Celery

from twilsta.core.config import settings

celery_app = Celery(
    "twilsta",
    broker=settings.CELERY_BROKER_URL,
    include=["twilsta.workers.notifications"],
)
celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_always_eager=settings.CELERY_TASK_ALWAYS_EAGER,
    task_eager_propagates=True,
)
