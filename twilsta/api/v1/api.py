"""V1 API router aggregation."""
from fastapi import APIRouter

from twilsta.api.v1.endpoints import (
    auth,
    comments,
    conversations,
    hashtags,
    messages,
    notifications,
    posts,
    stories,
    users,
)

api_router = APIRouter(prefix="/v1")
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(posts.router)
api_router.include_router(comments.router)
api_router.include_router(stories.router)
api_router.include_router(conversations.router)
api_router.include_router(messages.router)
api_router.include_router(hashtags.router)
api_router.include_router(notifications.router)
