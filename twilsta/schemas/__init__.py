from twilsta.schemas.common import ApiResponse, ErrorResponse, Page, Pagination
from twilsta.schemas.user import (
    UserCreate,
    UserUpdate,
    UserResponse,
    UserPublic,
    UserProfile,
    UserSummary,
    Token,
    LoginRequest,
)
from twilsta.schemas.post import PostCreate, PostUpdate, PostResponse
from twilsta.schemas.comment import CommentCreate, CommentUpdate, CommentResponse
from twilsta.schemas.story import StoryCreate, StoryResponse
from twilsta.schemas.conversation import ConversationCreate, ConversationResponse, MessageCreate, MessageResponse
from twilsta.schemas.hashtag import HashtagResponse
from twilsta.schemas.notification import NotificationResponse
