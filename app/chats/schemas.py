from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field, model_validator

from app.chats.models import ChatType
from app.common.schemas import CamelModel, UserSummary


# ===========================
# MESSAGES
# ===========================
class MessageCreate(CamelModel):
    content: str = Field(..., min_length=1, max_length=5000)
    reply_to_message_id: Optional[UUID] = None


class MessageUpdate(CamelModel):
    content: str = Field(..., min_length=1, max_length=5000)


class ChatMessageResponse(CamelModel):
    id: UUID
    chat_id: UUID
    sender_id: UUID
    sender: Optional[UserSummary] = None
    content: str
    reply_to_message_id: Optional[UUID] = None
    is_system: bool = False
    is_edited: bool = False
    is_deleted: bool = False
    created_at: datetime
    updated_at: datetime

    @model_validator(mode="after")
    def hide_deleted_content(self):
        # Deleted rows keep their text in the database; clients never see it
        if self.is_deleted:
            self.content = ""
        return self


# ===========================
# CHATS
# ===========================
class ChatCreate(CamelModel):
    type: ChatType = ChatType.USER
    participant_ids: List[UUID] = Field(default_factory=list)
    event_id: Optional[UUID] = None


class ChatParticipantResponse(CamelModel):
    user_id: UUID
    user: Optional[UserSummary] = None
    last_read_at: Optional[datetime] = None
    joined_at: datetime


class ChatResponse(CamelModel):
    id: UUID
    type: str
    event_id: Optional[UUID] = None
    is_direct: bool = False
    participants: List[ChatParticipantResponse] = Field(default_factory=list)
    last_message: Optional[ChatMessageResponse] = None
    unread_count: int = 0
    created_at: datetime
    updated_at: datetime


class AddParticipantRequest(CamelModel):
    user_id: UUID


class ChatUnreadCountResponse(CamelModel):
    chat_id: UUID
    count: int
