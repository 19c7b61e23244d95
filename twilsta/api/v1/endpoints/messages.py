"""Messages inside conversations: send, edit, delete, react, read."""
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from twilsta.api.deps import PageParams, get_current_user, get_db, pagination
from twilsta.api.errors import guarded
from twilsta.models.user import User
from twilsta.schemas.common import ApiResponse, Page, ok, paginated
from twilsta.schemas.conversation import (
    MessageCreate,
    MessageReactionResponse,
    MessageResponse,
    MessageUpdate,
    ReactionCreate,
)
from twilsta.services import message_service as messages

router = APIRouter(tags=["messages"])


@router.get("/conversations/{conversation_id}/messages", response_model=ApiResponse[Page[MessageResponse]])
@guarded("get_messages", "MESSAGES_FETCH_ERROR", "Failed to fetch messages")
async def list_messages(
    conversation_id: UUID,
    page: PageParams = Depends(pagination(default_limit=50)),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    items, total = await messages.list_messages(db, conversation_id, current_user, skip=page.skip, limit=page.limit)
    data = [MessageResponse.model_validate(m) for m in items]
    await db.commit()
    return ok(paginated(data, total, page.page, page.limit))


@router.post(
    "/conversations/{conversation_id}/messages",
    response_model=ApiResponse[MessageResponse],
    status_code=status.HTTP_201_CREATED,
)
@guarded("send_message", "MESSAGE_SEND_ERROR", "Failed to send message")
async def send_message(
    conversation_id: UUID,
    data: MessageCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    message = await messages.send_message(db, conversation_id, current_user, data)
    await db.commit()
    message = await messages.get_message_or_404(db, message.id, fresh=True)
    return ok(MessageResponse.model_validate(message), "Message sent successfully")


@router.put("/messages/{message_id}", response_model=ApiResponse[MessageResponse])
@guarded("edit_message", "MESSAGE_EDIT_ERROR", "Failed to edit message")
async def edit_message(
    message_id: UUID,
    data: MessageUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    message = await messages.get_message_or_404(db, message_id)
    await messages.edit_message(db, message, current_user, data.content)
    await db.commit()
    message = await messages.get_message_or_404(db, message_id, fresh=True)
    return ok(MessageResponse.model_validate(message), "Message edited successfully")


@router.delete("/messages/{message_id}", response_model=ApiResponse[None])
@guarded("delete_message", "MESSAGE_DELETE_ERROR", "Failed to delete message")
async def delete_message(
    message_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    message = await messages.get_message_or_404(db, message_id)
    await messages.delete_message(db, message, current_user)
    await db.commit()
    return ok(message="Message deleted successfully")


@router.post(
    "/messages/{message_id}/react",
    response_model=ApiResponse[MessageReactionResponse],
    status_code=status.HTTP_201_CREATED,
)
@guarded("react_to_message", "MESSAGE_REACTION_ERROR", "Failed to react to message")
async def react(
    message_id: UUID,
    data: ReactionCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    message = await messages.get_message_or_404(db, message_id)
    reaction = await messages.react_to_message(db, message, current_user, data.emoji)
    await db.commit()
    await db.refresh(reaction)
    return ok(MessageReactionResponse.model_validate(reaction), "Reaction added successfully")


@router.delete("/messages/{message_id}/react/{reaction_id}", response_model=ApiResponse[None])
@guarded("remove_reaction", "REMOVE_REACTION_ERROR", "Failed to remove reaction")
async def remove_reaction(
    message_id: UUID,
    reaction_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await messages.remove_reaction(db, message_id, reaction_id, current_user)
    await db.commit()
    return ok(message="Reaction removed successfully")


@router.post("/messages/{message_id}/read", response_model=ApiResponse[None])
@guarded("mark_message_read", "MARK_READ_ERROR", "Failed to mark message as read")
async def mark_read(
    message_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    message = await messages.get_message_or_404(db, message_id)
    await messages.mark_as_read(db, message, current_user)
    await db.commit()
    return ok(message="Message marked as read")
