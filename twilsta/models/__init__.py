from twilsta.models.user import User
from twilsta.models.post import Post, PostMedia
from twilsta.models.comment import Comment
from twilsta.models.engagement import Follow, FollowRequest, Like, CommentLike
from twilsta.models.hashtag import Hashtag, PostHashtag
from twilsta.models.story import Story, StoryView, StoryReaction
from twilsta.models.conversation import Conversation, ConversationMember, Message, MessageReaction
from twilsta.models.notification import Notification
from twilsta.models.token import VerificationToken

__all__ = [
    "User",
    "Post",
    "PostMedia",
    "Comment",
    "Follow",
    "FollowRequest",
    "Like",
    "CommentLike",
    "Hashtag",
    "PostHashtag",
    "Story",
    "StoryView",
    "StoryReaction",
    "Conversation",
    "ConversationMember",
    "Message",
    "MessageReaction",
    "Notification",
    "VerificationToken",
]
