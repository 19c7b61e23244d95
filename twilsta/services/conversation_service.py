"""Conversation business logic: direct and group chats and their membership."""
import logging
from uuid import UUID

from sqlalchemy import and_, desc, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from twilsta.core.exceptions import access_denied, bad_request, not_found
from twilsta.db.session import utcnow
from twilsta.models.conversation import Conversation, ConversationMember, Message
from twilsta.models.user import User
from twilsta.schemas.conversation import ConversationCreate, ConversationResponse, ConversationUpdate, MemberResponse

logger = logging.getLogger(__name__)

ADMIN = "ADMIN"
MEMBER = "MEMBER"


def _conversation_query():
    return select(Conversation).options(
        selectinload(Conversation.members).selectinload(ConversationMember.user)
    )


async def get_membership(db: AsyncSession, conversation_id: UUID, user_id: UUID) -> ConversationMember | None:
    """Active membership of ``user_id`` in the conversation, if any."""
    result = await db.execute(
        select(ConversationMember).where(
            ConversationMember.conversation_id == conversation_id,
            ConversationMember.user_id == user_id,
            ConversationMember.left_at.is_(None),
        )
    )
    return result.scalar_one_or_none()


async def require_membership(db: AsyncSession, conversation_id: UUID, user_id: UUID) -> ConversationMember:
    membership = await get_membership(db, conversation_id, user_id)
    if membership is None:
        raise access_denied("You are not a member of this conversation")
    return membership


async def require_admin(db: AsyncSession, conversation_id: UUID, user_id: UUID, message: str) -> ConversationMember:
    membership = await get_membership(db, conversation_id, user_id)
    if membership is None or membership.role != ADMIN:
        raise access_denied(message)
    return membership


async def get_conversation_or_404(db: AsyncSession, conversation_id: UUID, *, fresh: bool = False) -> Conversation:
    stmt = _conversation_query().where(Conversation.id == conversation_id)
    if fresh:
        stmt = stmt.execution_options(populate_existing=True)
    conversation = (await db.execute(stmt)).scalar_one_or_none()
    if conversation is None:
        raise not_found("conversation")
    return conversation


async def get_conversation_for_member(db: AsyncSession, conversation_id: UUID, user_id: UUID) -> Conversation:
    """Members see the conversation; everyone else gets a 404."""
    conversation = await get_conversation_or_404(db, conversation_id, fresh=True)
    if await get_membership(db, conversation_id, user_id) is None:
        raise not_found("conversation")
    return conversation


async def _find_direct(db: AsyncSession, user_id: UUID, other_id: UUID) -> Conversation | None:
    mine = select(ConversationMember.conversation_id).where(ConversationMember.user_id == user_id)
    theirs = select(ConversationMember.conversation_id).where(ConversationMember.user_id == other_id)
    result = await db.execute(
        select(Conversation.id)
        .where(Conversation.type == "DIRECT", Conversation.id.in_(mine), Conversation.id.in_(theirs))
        .limit(1)
    )
    conversation_id = result.scalar_one_or_none()
    if conversation_id is None:
        return None
    return await get_conversation_or_404(db, conversation_id)


async def _existing_user_ids(db: AsyncSession, user_ids: list[UUID]) -> set[UUID]:
    if not user_ids:
        return set()
    result = await db.scalars(select(User.id).where(User.id.in_(user_ids)))
    return set(result.all())


async def create_conversation(db: AsyncSession, user: User, data: ConversationCreate) -> tuple[Conversation, bool]:
    """Create a conversation. Returns ``(conversation, created)``.

    A direct conversation with the same peer is reused instead of duplicated.
    """
    participants = list(dict.fromkeys(p for p in data.participants if p != user.id))
    if data.type == "direct" and (len(data.participants) != 1 or len(participants) != 1):
        raise bad_request("INVALID_PARTICIPANTS", "Direct conversations must have exactly one other participant")
    if not participants:
        raise bad_request("INVALID_PARTICIPANTS", "A conversation needs at least one other participant")
    found = await _existing_user_ids(db, participants)
    if len(found) != len(participants):
        raise bad_request("INVALID_PARTICIPANTS", "One or more participants do not exist")

    if data.type == "direct":
        existing = await _find_direct(db, user.id, participants[0])
        if existing is not None:
            return existing, False

    is_group = data.type == "group"
    conversation = Conversation(
        type="GROUP" if is_group else "DIRECT",
        name=data.name if is_group else None,
        admin_id=user.id if is_group else None,
    )
    db.add(conversation)
    await db.flush()
    db.add(ConversationMember(conversation_id=conversation.id, user_id=user.id, role=ADMIN if is_group else MEMBER))
    for participant in participants:
        db.add(ConversationMember(conversation_id=conversation.id, user_id=participant, role=MEMBER))
    await db.flush()
    logger.info(
        "conversation_created user_id=%s conversation_id=%s type=%s members=%s",
        user.id, conversation.id, conversation.type, len(participants) + 1,
    )
    return conversation, True


async def list_conversations(
    db: AsyncSession,
    user_id: UUID,
    *,
    skip: int = 0,
    limit: int = 10,
) -> tuple[list[Conversation], int]:
    """Conversations the user is an active member of, latest activity first."""
    active = select(ConversationMember.conversation_id).where(
        ConversationMember.user_id == user_id,
        ConversationMember.left_at.is_(None),
    )
    where = Conversation.id.in_(active)
    total = await db.scalar(select(func.count(Conversation.id)).where(where))
    result = await db.execute(
        _conversation_query()
        .where(where)
        .order_by(desc(func.coalesce(Conversation.last_message_at, Conversation.created_at)))
        .offset(skip)
        .limit(limit)
    )
    return list(result.scalars().all()), total or 0


async def update_conversation(db: AsyncSession, conversation: Conversation, user: User, data: ConversationUpdate) -> Conversation:
    await require_admin(db, conversation.id, user.id, "Only admins can update the conversation")
    for key, value in data.model_dump(exclude_unset=True).items():
        setattr(conversation, key, value)
    await db.flush()
    logger.info("conversation_updated user_id=%s conversation_id=%s", user.id, conversation.id)
    return conversation


async def delete_conversation(db: AsyncSession, conversation: Conversation, user: User) -> None:
    await require_admin(db, conversation.id, user.id, "Only admins can delete the conversation")
    await db.delete(conversation)
    await db.flush()
    logger.info("conversation_deleted user_id=%s conversation_id=%s", user.id, conversation.id)


async def add_members(db: AsyncSession, conversation: Conversation, user: User, user_ids: list[UUID]) -> int:
    """Add users to a group. Active members are skipped; former members rejoin."""
    if conversation.type != "GROUP":
        raise bad_request("INVALID_CONVERSATION_TYPE", "Members can only be added to group conversations")
    await require_admin(db, conversation.id, user.id, "Only admins can add members")
    wanted = list(dict.fromkeys(user_ids))
    found = await _existing_user_ids(db, wanted)
    if len(found) != len(wanted):
        raise bad_request("INVALID_PARTICIPANTS", "One or more users do not exist")

    result = await db.execute(
        select(ConversationMember).where(
            ConversationMember.conversation_id == conversation.id,
            ConversationMember.user_id.in_(wanted),
        )
    )
    existing = {m.user_id: m for m in result.scalars().all()}
    added = 0
    for user_id in wanted:
        membership = existing.get(user_id)
        if membership is None:
            db.add(ConversationMember(conversation_id=conversation.id, user_id=user_id, role=MEMBER))
            added += 1
        elif membership.left_at is not None:
            membership.left_at = None
            membership.joined_at = utcnow()
            membership.role = MEMBER
            added += 1
    await db.flush()
    logger.info("conversation_members_added user_id=%s conversation_id=%s added=%s", user.id, conversation.id, added)
    return added


async def remove_member(db: AsyncSession, conversation: Conversation, user: User, member_id: UUID) -> None:
    """Admins remove anyone; any member may remove themselves (leave)."""
    if member_id != user.id:
        await require_admin(db, conversation.id, user.id, "Only admins can remove members")
    membership = await get_membership(db, conversation.id, member_id)
    if membership is None:
        raise not_found("member")
    membership.left_at = utcnow()

    # A leaving admin hands the group to the longest-standing member.
    if membership.role == ADMIN:
        membership.role = MEMBER
        result = await db.execute(
            select(ConversationMember)
            .where(
                ConversationMember.conversation_id == conversation.id,
                ConversationMember.left_at.is_(None),
                ConversationMember.user_id != member_id,
            )
            .order_by(ConversationMember.joined_at)
            .limit(1)
        )
        successor = result.scalar_one_or_none()
        conversation.admin_id = successor.user_id if successor else None
        if successor is not None:
            successor.role = ADMIN
    await db.flush()
    logger.info(
        "conversation_member_removed user_id=%s conversation_id=%s member_id=%s",
        user.id, conversation.id, member_id,
    )


async def transfer_admin(db: AsyncSession, conversation: Conversation, user: User, new_admin_id: UUID) -> None:
    current = await require_admin(db, conversation.id, user.id, "Only admins can transfer admin role")
    target = await get_membership(db, conversation.id, new_admin_id)
    if target is None or new_admin_id == user.id:
        raise bad_request("INVALID_MEMBER", "New admin must be an active member of the conversation")
    current.role = MEMBER
    target.role = ADMIN
    conversation.admin_id = new_admin_id
    await db.flush()
    logger.info(
        "conversation_admin_transferred user_id=%s conversation_id=%s new_admin_id=%s",
        user.id, conversation.id, new_admin_id,
    )


async def unread_counts(db: AsyncSession, user_id: UUID, conversation_ids: list[UUID]) -> dict[UUID, int]:
    """Messages from others newer than the user's read marker, per conversation."""
    if not conversation_ids:
        return {}
    result = await db.execute(
        select(Message.conversation_id, func.count(Message.id))
        .join(
            ConversationMember,
            and_(
                ConversationMember.conversation_id == Message.conversation_id,
                ConversationMember.user_id == user_id,
            ),
        )
        .where(
            Message.conversation_id.in_(conversation_ids),
            Message.is_deleted.is_(False),
            Message.sender_id != user_id,
            or_(ConversationMember.last_read_at.is_(None), Message.created_at > ConversationMember.last_read_at),
        )
        .group_by(Message.conversation_id)
    )
    return dict(result.all())


def conversation_to_response(conversation: Conversation, unread_count: int = 0) -> ConversationResponse:
    response = ConversationResponse.model_validate(conversation)
    response.members = [
        MemberResponse.model_validate(m) for m in conversation.members if m.left_at is None
    ]
    response.unread_count = unread_count
    return response


async def conversations_to_response(db: AsyncSession, conversations: list[Conversation], user_id: UUID) -> list[ConversationResponse]:
    counts = await unread_counts(db, user_id, [c.id for c in conversations])
    return [conversation_to_response(c, counts.get(c.id, 0)) for c in conversations]
