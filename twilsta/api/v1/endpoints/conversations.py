"""Conversations: direct and group chats and their membership."""
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from twilsta.api.deps import PageParams, get_current_user, get_db, pagination
from twilsta.api.errors import guarded
from twilsta.models.user import User
from twilsta.schemas.common import ApiResponse, Page, ok, paginated
from twilsta.schemas.conversation import (
    AddMembersRequest,
    ConversationCreate,
    ConversationResponse,
    ConversationUpdate,
    TransferAdminRequest,
)
from twilsta.services import conversation_service as conversations

router = APIRouter(prefix="/conversations", tags=["conversations"])


async def _respond(db: AsyncSession, conversation_id: UUID, user: User) -> ConversationResponse:
    conversation = await conversations.get_conversation_or_404(db, conversation_id, fresh=True)
    return (await conversations.conversations_to_response(db, [conversation], user.id))[0]


@router.get("", response_model=ApiResponse[Page[ConversationResponse]])
@guarded("get_conversations", "CONVERSATIONS_FETCH_ERROR", "Failed to fetch conversations")
async def list_conversations(
    page: PageParams = Depends(pagination()),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    items, total = await conversations.list_conversations(db, current_user.id, skip=page.skip, limit=page.limit)
    data = await conversations.conversations_to_response(db, items, current_user.id)
    return ok(paginated(data, total, page.page, page.limit))


@router.post("", response_model=ApiResponse[ConversationResponse], status_code=status.HTTP_201_CREATED)
@guarded("create_conversation", "CONVERSATION_CREATE_ERROR", "Failed to create conversation")
async def create_conversation(
    data: ConversationCreate,
    response: Response,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    conversation, created = await conversations.create_conversation(db, current_user, data)
    await db.commit()
    if not created:
        response.status_code = status.HTTP_200_OK
        return ok(await _respond(db, conversation.id, current_user), "Conversation already exists")
    return ok(await _respond(db, conversation.id, current_user), "Conversation created successfully")


@router.get("/{conversation_id}", response_model=ApiResponse[ConversationResponse])
@guarded("get_conversation", "CONVERSATION_FETCH_ERROR", "Failed to fetch conversation")
async def get_conversation(
    conversation_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    conversation = await conversations.get_conversation_for_member(db, conversation_id, current_user.id)
    return ok((await conversations.conversations_to_response(db, [conversation], current_user.id))[0])


@router.put("/{conversation_id}", response_model=ApiResponse[ConversationResponse])
@guarded("update_conversation", "CONVERSATION_UPDATE_ERROR", "Failed to update conversation")
async def update_conversation(
    conversation_id: UUID,
    data: ConversationUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    conversation = await conversations.get_conversation_or_404(db, conversation_id)
    await conversations.update_conversation(db, conversation, current_user, data)
    await db.commit()
    return ok(await _respond(db, conversation_id, current_user), "Conversation updated successfully")


@router.delete("/{conversation_id}", response_model=ApiResponse[None])
@guarded("delete_conversation", "CONVERSATION_DELETE_ERROR", "Failed to delete conversation")
async def delete_conversation(
    conversation_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    conversation = await conversations.get_conversation_or_404(db, conversation_id)
    await conversations.delete_conversation(db, conversation, current_user)
    await db.commit()
    return ok(message="Conversation deleted successfully")


@router.post("/{conversation_id}/members", response_model=ApiResponse[ConversationResponse])
@guarded("add_members", "ADD_MEMBERS_ERROR", "Failed to add members")
async def add_members(
    conversation_id: UUID,
    data: AddMembersRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    conversation = await conversations.get_conversation_or_404(db, conversation_id)
    added = await conversations.add_members(db, conversation, current_user, data.user_ids)
    await db.commit()
    return ok(await _respond(db, conversation_id, current_user), f"{added} member(s) added successfully")


@router.delete("/{conversation_id}/members/{user_id}", response_model=ApiResponse[None])
@guarded("remove_member", "REMOVE_MEMBER_ERROR", "Failed to remove member")
async def remove_member(
    conversation_id: UUID,
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    conversation = await conversations.get_conversation_or_404(db, conversation_id)
    await conversations.remove_member(db, conversation, current_user, user_id)
    await db.commit()
    message = "Left conversation successfully" if user_id == current_user.id else "Member removed successfully"
    return ok(message=message)


@router.put("/{conversation_id}/admin", response_model=ApiResponse[ConversationResponse])
@guarded("transfer_admin", "TRANSFER_ADMIN_ERROR", "Failed to transfer admin role")
async def transfer_admin(
    conversation_id: UUID,
    data: TransferAdminRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    conversation = await conversations.get_conversation_or_404(db, conversation_id)
    await conversations.transfer_admin(db, conversation, current_user, data.new_admin_id)
    await db.commit()
    return ok(await _respond(db, conversation_id, current_user), "Admin role transferred successfully")
