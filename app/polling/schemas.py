from typing import List

from pydantic import Field

from app.chats.schemas import ChatResponse
from app.common.schemas import CamelModel
from app.friends.schemas import FriendRequestResponse
from app.notifications.schemas import NotificationResponse
from app.participation.schemas import ParticipationRequestResponse


class PollResponse(CamelModel):
    """Everything a client without a socket refreshes in one round trip."""
    chats: List[ChatResponse] = Field(default_factory=list)
    incoming_friend_requests: List[FriendRequestResponse] = Field(default_factory=list)
    incoming_event_requests: List[ParticipationRequestResponse] = Field(default_factory=list)
    notifications: List[NotificationResponse] = Field(default_factory=list)
