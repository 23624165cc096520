from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import Field

from app.common.schemas import CamelModel, UserSummary


class FriendRequestCreate(CamelModel):
    receiver_id: UUID
    comment: Optional[str] = Field(default=None, max_length=500)


class FriendRequestResponse(CamelModel):
    id: UUID
    sender_id: UUID
    receiver_id: UUID
    comment: Optional[str] = None
    created_at: datetime
    sender: Optional[UserSummary] = None
    receiver: Optional[UserSummary] = None


class FriendResponse(CamelModel):
    friend_id: UUID
    friend: UserSummary
    created_at: datetime


class RelationshipStatus(str, Enum):
    NONE = "none"
    FRIENDS = "friends"
    REQUEST_SENT = "request_sent"
    REQUEST_RECEIVED = "request_received"


class RelationshipStatusResponse(CamelModel):
    user_id: UUID
    status: RelationshipStatus
