"""User profile, follow graph and private-account visibility."""
import logging
from uuid import UUID

from sqlalchemy import delete, desc, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from twilsta.core.exceptions import AppError, access_denied, not_found
from twilsta.core.security import get_password_hash, verify_password
from twilsta.models.comment import Comment
from twilsta.models.engagement import CommentLike, Follow, FollowRequest, Like
from twilsta.models.hashtag import PostHashtag
from twilsta.models.post import Post, PostMedia
from twilsta.models.story import Story
from twilsta.models.user import User
from twilsta.schemas.user import FollowRequestUser, FollowUser, UserProfile, UserUpdate
from twilsta.services.counter_service import recount_comments, recount_hashtags, recount_posts, recount_users
from twilsta.services.notification_service import create_notification, display_name
from twilsta.services.storage_service import StoredMedia, delete_media_quietly

logger = logging.getLogger(__name__)


async def get_user_or_404(db: AsyncSession, user_id: UUID) -> User:
    user = await db.get(User, user_id)
    if user is None:
        raise not_found("user")
    return user


async def is_following(db: AsyncSession, follower_id: UUID, following_id: UUID) -> bool:
    result = await db.execute(
        select(Follow).where(
            Follow.follower_id == follower_id,
            Follow.following_id == following_id,
        )
    )
    return result.scalar_one_or_none() is not None


async def get_follow_request(db: AsyncSession, requester_id: UUID, target_id: UUID) -> FollowRequest | None:
    result = await db.execute(
        select(FollowRequest).where(
            FollowRequest.requester_id == requester_id,
            FollowRequest.target_id == target_id,
        )
    )
    return result.scalar_one_or_none()


async def can_view_content(db: AsyncSession, owner: User, viewer_id: UUID | None) -> bool:
    """Public accounts are open; private ones need the owner or a follower."""
    if not owner.is_private:
        return True
    if viewer_id is None:
        return False
    if owner.id == viewer_id:
        return True
    return await is_following(db, viewer_id, owner.id)


async def ensure_can_view(db: AsyncSession, owner: User, viewer_id: UUID | None) -> None:
    if not await can_view_content(db, owner, viewer_id):
        raise access_denied("This account is private")


async def build_profile(db: AsyncSession, user: User, viewer_id: UUID | None) -> UserProfile:
    profile = UserProfile.model_validate(user)
    if viewer_id is not None:
        profile.is_own_profile = viewer_id == user.id
        if not profile.is_own_profile:
            profile.is_following = await is_following(db, viewer_id, user.id)
            profile.is_follower = await is_following(db, user.id, viewer_id)
            if not profile.is_following:
                profile.is_requested = await get_follow_request(db, viewer_id, user.id) is not None
    return profile


async def update_profile(db: AsyncSession, user: User, data: UserUpdate) -> User:
    fields = data.model_dump(exclude_unset=True)
    new_username = fields.get("username")
    if new_username and new_username != user.username:
        taken = await db.scalar(select(func.count(User.id)).where(User.username == new_username))
        if taken:
            raise AppError(409, "USERNAME_EXISTS", "Username already taken")
    if "website" in fields and fields["website"] is not None:
        fields["website"] = str(fields["website"])
    for key, value in fields.items():
        setattr(user, key, value)
    await db.flush()
    return user


async def _add_follow(db: AsyncSession, follower_id: UUID, target_id: UUID) -> None:
    db.add(Follow(follower_id=follower_id, following_id=target_id))
    await db.execute(update(User).where(User.id == follower_id).values(following_count=User.following_count + 1))
    await db.execute(update(User).where(User.id == target_id).values(followers_count=User.followers_count + 1))


async def follow_user(db: AsyncSession, follower: User, target_id: UUID) -> tuple[User, bool]:
    """Follow ``target_id``; returns (target, requested).

    Private accounts get a pending FollowRequest instead of a Follow. No
    counters move until the target accepts it.
    """
    if follower.id == target_id:
        raise AppError(400, "CANNOT_FOLLOW_SELF", "You cannot follow yourself")
    target = await get_user_or_404(db, target_id)
    if await is_following(db, follower.id, target_id):
        raise AppError(400, "ALREADY_FOLLOWING", "You already follow this user")

    pending = await get_follow_request(db, follower.id, target_id)
    if target.is_private:
        if pending is not None:
            raise AppError(400, "FOLLOW_ALREADY_REQUESTED", "Follow request already sent")
        db.add(FollowRequest(requester_id=follower.id, target_id=target_id))
        await create_notification(
            db,
            user_id=target_id,
            actor_id=follower.id,
            notification_type="FOLLOW_REQUEST",
            title="Follow request",
            text=f"{display_name(follower)} requested to follow you",
            data={"user_id": follower.id},
        )
        await db.flush()
        logger.info("follow_requested requester_id=%s target_id=%s", follower.id, target_id)
        return target, True

    # Account went public while a request was pending.
    if pending is not None:
        await db.delete(pending)
    await _add_follow(db, follower.id, target_id)
    await create_notification(
        db,
        user_id=target_id,
        actor_id=follower.id,
        notification_type="FOLLOW",
        title="New follower",
        text=f"{display_name(follower)} started following you",
        data={"user_id": follower.id},
    )
    logger.info("user_followed follower_id=%s following_id=%s", follower.id, target_id)
    return target, False


async def cancel_follow_request(db: AsyncSession, requester: User, target_id: UUID) -> User:
    target = await get_user_or_404(db, target_id)
    pending = await get_follow_request(db, requester.id, target_id)
    if pending is None:
        raise not_found("follow request")
    await db.delete(pending)
    await db.flush()
    logger.info("follow_request_cancelled requester_id=%s target_id=%s", requester.id, target_id)
    return target


async def list_follow_requests(
    db: AsyncSession, user_id: UUID, *, skip: int, limit: int
) -> tuple[list[FollowRequestUser], int]:
    """Pending requests to follow ``user_id``, newest first."""
    total = await db.scalar(select(func.count()).select_from(FollowRequest).where(FollowRequest.target_id == user_id))
    result = await db.execute(
        select(User, FollowRequest.created_at)
        .join(FollowRequest, FollowRequest.requester_id == User.id)
        .where(FollowRequest.target_id == user_id)
        .order_by(desc(FollowRequest.created_at))
        .offset(skip)
        .limit(limit)
    )
    items = []
    for user, requested_at in result.all():
        item = FollowRequestUser.model_validate(user)
        item.requested_at = requested_at
        items.append(item)
    return items, total or 0


async def accept_follow_request(db: AsyncSession, target: User, requester_id: UUID) -> User:
    """Turn a pending request into a Follow and notify the requester."""
    pending = await get_follow_request(db, requester_id, target.id)
    if pending is None:
        raise not_found("follow request")
    requester = await get_user_or_404(db, requester_id)

    await db.delete(pending)
    if not await is_following(db, requester_id, target.id):
        await _add_follow(db, requester_id, target.id)
    await create_notification(
        db,
        user_id=requester_id,
        actor_id=target.id,
        notification_type="FOLLOW_ACCEPTED",
        title="Follow request accepted",
        text=f"{display_name(target)} accepted your follow request",
        data={"user_id": target.id},
    )
    await db.flush()
    logger.info("follow_request_accepted requester_id=%s target_id=%s", requester_id, target.id)
    return requester


async def reject_follow_request(db: AsyncSession, target: User, requester_id: UUID) -> None:
    result = await db.execute(
        delete(FollowRequest).where(
            FollowRequest.requester_id == requester_id,
            FollowRequest.target_id == target.id,
        )
    )
    if not result.rowcount:
        raise not_found("follow request")
    logger.info("follow_request_rejected requester_id=%s target_id=%s", requester_id, target.id)


async def unfollow_user(db: AsyncSession, follower: User, target_id: UUID) -> User:
    target = await get_user_or_404(db, target_id)
    result = await db.execute(
        select(Follow).where(Follow.follower_id == follower.id, Follow.following_id == target_id)
    )
    follow = result.scalar_one_or_none()
    if follow is None:
        raise AppError(400, "NOT_FOLLOWING", "You do not follow this user")

    await db.delete(follow)
    await db.execute(
        update(User).where(User.id == follower.id, User.following_count > 0).values(following_count=User.following_count - 1)
    )
    await db.execute(
        update(User).where(User.id == target_id, User.followers_count > 0).values(followers_count=User.followers_count - 1)
    )
    logger.info("user_unfollowed follower_id=%s following_id=%s", follower.id, target_id)
    return target


async def list_follows(
    db: AsyncSession,
    user_id: UUID,
    *,
    followers: bool,
    skip: int,
    limit: int,
) -> tuple[list[FollowUser], int]:
    """Followers of ``user_id`` (followers=True) or the accounts it follows."""
    if followers:
        join_on, where = Follow.follower_id == User.id, Follow.following_id == user_id
    else:
        join_on, where = Follow.following_id == User.id, Follow.follower_id == user_id
    total = await db.scalar(select(func.count()).select_from(Follow).where(where))
    result = await db.execute(
        select(User, Follow.created_at)
        .join(Follow, join_on)
        .where(where)
        .order_by(desc(Follow.created_at))
        .offset(skip)
        .limit(limit)
    )
    items = []
    for user, followed_at in result.all():
        item = FollowUser.model_validate(user)
        item.followed_at = followed_at
        items.append(item)
    return items, total or 0


async def delete_account(db: AsyncSession, user: User) -> None:
    """Delete the user and everything they own, then fix the counters they touched."""
    user_id = user.id
    avatar_url = user.avatar_url

    related_users = set((await db.scalars(select(Follow.following_id).where(Follow.follower_id == user_id))).all())
    related_users |= set((await db.scalars(select(Follow.follower_id).where(Follow.following_id == user_id))).all())
    liked_posts = set((await db.scalars(select(Like.post_id).where(Like.user_id == user_id))).all())
    commented_posts = set((await db.scalars(select(Comment.post_id).where(Comment.user_id == user_id))).all())
    liked_comments = set((await db.scalars(select(CommentLike.comment_id).where(CommentLike.user_id == user_id))).all())
    own_tags = set(
        (await db.scalars(
            select(PostHashtag.hashtag_id).join(Post, Post.id == PostHashtag.post_id).where(Post.user_id == user_id)
        )).all()
    )
    media_urls = list((await db.scalars(
        select(PostMedia.url).join(Post, Post.id == PostMedia.post_id).where(Post.user_id == user_id)
    )).all())
    media_urls += list((await db.scalars(select(Story.media_url).where(Story.user_id == user_id))).all())

    await db.delete(user)
    await db.flush()

    await recount_users(db, list(related_users - {user_id}))
    await recount_posts(db, list(liked_posts | commented_posts))
    await recount_comments(db, list(liked_comments))
    await recount_hashtags(db, list(own_tags))

    for url in [avatar_url, *media_urls]:
        delete_media_quietly(url, context=f"account_delete:{user_id}")
    logger.info("account_deleted user_id=%s", user_id)


async def change_password(db: AsyncSession, user: User, current_password: str, new_password: str) -> None:
    if not verify_password(current_password, user.password_hash):
        raise AppError(400, "INVALID_PASSWORD", "Current password is incorrect")
    user.password_hash = get_password_hash(new_password)
    await db.flush()
    logger.info("password_changed user_id=%s", user.id)


async def set_avatar(db: AsyncSession, user: User, media: StoredMedia) -> User:
    """Point the profile at a new avatar; the previous file is removed best-effort."""
    previous = user.avatar_url
    user.avatar_url = media.url
    await db.flush()
    if previous and previous != media.url:
        delete_media_quietly(previous, context=f"avatar_replace:{user.id}")
    logger.info("avatar_updated user_id=%s", user.id)
    return user


async def remove_avatar(db: AsyncSession, user: User) -> User:
    if not user.avatar_url:
        raise AppError(404, "NO_AVATAR", "No avatar to delete")
    previous = user.avatar_url
    user.avatar_url = None
    await db.flush()
    delete_media_quietly(previous, context=f"avatar_delete:{user.id}")
    logger.info("avatar_deleted user_id=%s", user.id)
    return user
