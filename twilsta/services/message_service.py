"""Message business logic: send, edit, soft delete, reactions and read markers."""
import logging
from uuid import UUID

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from twilsta.core.exceptions import access_denied, bad_request, not_found
from twilsta.db.session import utcnow
from twilsta.models.conversation import Conversation, ConversationMember, Message, MessageReaction
from twilsta.models.user import User
from twilsta.schemas.conversation import MessageCreate
from twilsta.services.conversation_service import get_conversation_or_404, require_membership
from twilsta.services.notification_service import create_notification, display_name

logger = logging.getLogger(__name__)


def _message_query():
    return select(Message).options(selectinload(Message.sender), selectinload(Message.reactions))


async def get_message_or_404(db: AsyncSession, message_id: UUID, *, fresh: bool = False) -> Message:
    """Load a non-deleted message."""
    stmt = _message_query().where(Message.id == message_id, Message.is_deleted.is_(False))
    if fresh:
        stmt = stmt.execution_options(populate_existing=True)
    message = (await db.execute(stmt)).scalar_one_or_none()
    if message is None:
        raise not_found("message")
    return message


def _mark_read(membership: ConversationMember, message_id: UUID) -> None:
    membership.last_read_message_id = message_id
    membership.last_read_at = utcnow()


async def list_messages(
    db: AsyncSession,
    conversation_id: UUID,
    user: User,
    *,
    skip: int = 0,
    limit: int = 50,
) -> tuple[list[Message], int]:
    """Newest first. Reading the first page moves the caller's read marker."""
    await get_conversation_or_404(db, conversation_id)
    membership = await require_membership(db, conversation_id, user.id)
    where = (Message.conversation_id == conversation_id) & Message.is_deleted.is_(False)
    total = await db.scalar(select(func.count(Message.id)).where(where))
    result = await db.execute(
        _message_query().where(where).order_by(desc(Message.created_at), desc(Message.id)).offset(skip).limit(limit)
    )
    messages = list(result.scalars().all())
    if messages and skip == 0:
        _mark_read(membership, messages[0].id)
        await db.flush()
    return messages, total or 0


async def send_message(db: AsyncSession, conversation_id: UUID, user: User, data: MessageCreate) -> Message:
    conversation = await get_conversation_or_404(db, conversation_id)
    membership = await require_membership(db, conversation_id, user.id)
    if data.reply_to_id is not None:
        target = await db.get(Message, data.reply_to_id)
        if target is None or target.conversation_id != conversation_id or target.is_deleted:
            raise bad_request("INVALID_REPLY", "Reply target must be a message in this conversation")

    message = Message(
        conversation_id=conversation_id,
        sender_id=user.id,
        content=data.content,
        message_type=data.type.upper(),
        media_url=data.media_url,
        reply_to_id=data.reply_to_id,
    )
    db.add(message)
    await db.flush()
    conversation.last_message_id = message.id
    conversation.last_message_at = message.created_at
    conversation.last_message_text = message.content or ""
    _mark_read(membership, message.id)

    preview = message.content if len(message.content or "") <= 50 else message.content[:50] + "..."
    title = conversation.name if conversation.type == "GROUP" and conversation.name else "New message"
    for member in conversation.members:
        if member.left_at is not None or member.user_id == user.id:
            continue
        await create_notification(
            db,
            user_id=member.user_id,
            actor_id=user.id,
            notification_type="MESSAGE",
            title=title,
            text=f"{display_name(user)}: {preview}",
            data={"conversation_id": conversation_id, "message_id": message.id},
        )
    await db.flush()
    logger.info("message_sent user_id=%s conversation_id=%s message_id=%s", user.id, conversation_id, message.id)
    return message


def _ensure_sender(message: Message, user: User, action: str) -> None:
    if message.sender_id != user.id:
        raise access_denied(f"You can only {action} your own messages")


async def edit_message(db: AsyncSession, message: Message, user: User, content: str) -> Message:
    _ensure_sender(message, user, "edit")
    message.content = content
    message.is_edited = True
    conversation = await db.get(Conversation, message.conversation_id)
    if conversation is not None and conversation.last_message_id == message.id:
        conversation.last_message_text = content
    await db.flush()
    logger.info("message_edited user_id=%s message_id=%s", user.id, message.id)
    return message


async def delete_message(db: AsyncSession, message: Message, user: User) -> None:
    """Soft delete. The conversation preview falls back to the newest remaining message."""
    _ensure_sender(message, user, "delete")
    message.is_deleted = True
    await db.flush()
    conversation = await db.get(Conversation, message.conversation_id)
    if conversation is not None and conversation.last_message_id == message.id:
        result = await db.execute(
            select(Message)
            .where(Message.conversation_id == conversation.id, Message.is_deleted.is_(False))
            .order_by(desc(Message.created_at), desc(Message.id))
            .limit(1)
        )
        latest = result.scalar_one_or_none()
        conversation.last_message_id = latest.id if latest else None
        conversation.last_message_at = latest.created_at if latest else None
        conversation.last_message_text = latest.content if latest else None
        await db.flush()
    logger.info("message_deleted user_id=%s message_id=%s", user.id, message.id)


async def react_to_message(db: AsyncSession, message: Message, user: User, emoji: str) -> MessageReaction:
    await require_membership(db, message.conversation_id, user.id)
    existing = await db.execute(
        select(MessageReaction.id).where(
            MessageReaction.message_id == message.id,
            MessageReaction.user_id == user.id,
            MessageReaction.emoji == emoji,
        )
    )
    if existing.first() is not None:
        raise bad_request("ALREADY_REACTED", "You already reacted with this emoji")
    reaction = MessageReaction(message_id=message.id, user_id=user.id, emoji=emoji)
    db.add(reaction)
    await db.flush()
    logger.info("message_reacted user_id=%s message_id=%s", user.id, message.id)
    return reaction


async def remove_reaction(db: AsyncSession, message_id: UUID, reaction_id: UUID, user: User) -> None:
    reaction = await db.get(MessageReaction, reaction_id)
    if reaction is None or reaction.message_id != message_id:
        raise not_found("reaction")
    if reaction.user_id != user.id:
        raise access_denied("You can only remove your own reactions")
    await db.delete(reaction)
    await db.flush()
    logger.info("message_reaction_removed user_id=%s message_id=%s", user.id, message_id)


async def mark_as_read(db: AsyncSession, message: Message, user: User) -> None:
    membership = await require_membership(db, message.conversation_id, user.id)
    _mark_read(membership, message.id)
    await db.flush()
