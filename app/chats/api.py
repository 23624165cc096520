from datetime import datetime
from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.models import User
from app.chats.schemas import (
    AddParticipantRequest,
    ChatCreate,
    ChatMessageResponse,
    ChatResponse,
    ChatUnreadCountResponse,
    MessageCreate,
    MessageUpdate,
)
from app.chats.services import DEFAULT_POLL_TIMEOUT_MS, ChatService, serialize_chat
from app.common.schemas import MessageResponse
from app.db.session import get_db

router = APIRouter(prefix="/chats", tags=["chats"])


# ===============================
# CHATS
# ===============================
@router.get("", response_model=List[ChatResponse])
async def list_my_chats(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await ChatService(db).list_user_chats(current_user.id)


@router.post("", response_model=ChatResponse, status_code=status.HTTP_201_CREATED)
async def create_chat(
    data: ChatCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return serialize_chat(await ChatService(db).create_chat(current_user, data))


@router.post("/direct/{user_id}", response_model=ChatResponse)
async def open_direct_chat(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return serialize_chat(await ChatService(db).get_or_create_direct_chat(current_user, user_id))


@router.post("/direct/{user_id}/messages", response_model=ChatMessageResponse, status_code=status.HTTP_201_CREATED)
async def send_direct_message(
    user_id: UUID,
    data: MessageCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Send a message to a user, opening the 1:1 chat on first contact."""
    return await ChatService(db).send_direct_message(current_user, user_id, data.content)


@router.get("/event/{event_id}", response_model=ChatResponse)
async def get_event_chat(
    event_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = ChatService(db)
    chat = await service.get_event_chat(event_id, current_user.id)
    return serialize_chat(chat, unread_count=await service.unread_count(chat.id, current_user.id))


# ===============================
# SINGLE MESSAGES
# ===============================
@router.get("/messages/{message_id}", response_model=ChatMessageResponse)
async def get_message(
    message_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await ChatService(db).get_message(message_id, current_user.id)


@router.patch("/messages/{message_id}", response_model=ChatMessageResponse)
async def edit_message(
    message_id: UUID,
    data: MessageUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await ChatService(db).edit_message(message_id, current_user.id, data.content)


@router.delete("/messages/{message_id}", response_model=ChatMessageResponse)
async def delete_message(
    message_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await ChatService(db).delete_message(message_id, current_user.id)


# ===============================
# CHAT BY ID
# ===============================
@router.get("/{chat_id}", response_model=ChatResponse)
async def get_chat(
    chat_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    service = ChatService(db)
    chat = await service.get_chat_for_user(chat_id, current_user.id)
    return serialize_chat(chat, unread_count=await service.unread_count(chat.id, current_user.id))


@router.get("/{chat_id}/messages", response_model=List[ChatMessageResponse])
async def get_messages(
    chat_id: UUID,
    limit: int = Query(50, ge=1, le=200),
    before: Optional[datetime] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await ChatService(db).get_messages(chat_id, current_user.id, limit=limit, before=before)


@router.post("/{chat_id}/messages", response_model=ChatMessageResponse, status_code=status.HTTP_201_CREATED)
async def send_message(
    chat_id: UUID,
    data: MessageCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await ChatService(db).send_message(
        chat_id, current_user, data.content, reply_to_message_id=data.reply_to_message_id
    )


@router.get("/{chat_id}/messages/poll", response_model=List[ChatMessageResponse])
async def poll_new_messages(
    chat_id: UUID,
    after: datetime,
    timeout: int = Query(DEFAULT_POLL_TIMEOUT_MS, ge=0, description="Milliseconds to wait"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await ChatService(db).poll_new_messages(chat_id, current_user.id, after, timeout_ms=timeout)


@router.get("/{chat_id}/unread-count", response_model=ChatUnreadCountResponse)
async def unread_count(
    chat_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    count = await ChatService(db).unread_count(chat_id, current_user.id)
    return ChatUnreadCountResponse(chat_id=chat_id, count=count)


@router.post("/{chat_id}/read", response_model=MessageResponse)
async def mark_read(
    chat_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await ChatService(db).mark_read(chat_id, current_user.id)
    return MessageResponse(message="Chat marked as read")


@router.post("/{chat_id}/participants", response_model=ChatResponse)
async def add_participant(
    chat_id: UUID,
    data: AddParticipantRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return serialize_chat(await ChatService(db).add_participant(chat_id, current_user.id, data.user_id))


@router.delete("/{chat_id}/participants/{user_id}", response_model=MessageResponse)
async def remove_participant(
    chat_id: UUID,
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await ChatService(db).remove_participant(chat_id, current_user.id, user_id)
    return MessageResponse(message="You left the chat")
