import logging

from sqlalchemy.ext.asyncio import AsyncSession

from app.chats.services import ChatService
from app.friends.schemas import FriendRequestResponse
from app.friends.services import FriendService
from app.notifications.schemas import NotificationResponse
from app.notifications.services import NotificationService
from app.participation.schemas import ParticipationRequestResponse
from app.participation.services import ParticipationService
from app.polling.schemas import PollResponse

logger = logging.getLogger(__name__)


class PollingService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def snapshot(self, user_id) -> PollResponse:
        chats = await ChatService(self.db).list_user_chats(user_id)
        friend_requests = await FriendService(self.db).get_received_requests(user_id)
        event_requests = await ParticipationService(self.db).get_incoming_applications(user_id)
        notifications = await NotificationService(self.db).latest(user_id)
        logger.debug(
            f"Poll for user {user_id}: chats={len(chats)}, friend_requests={len(friend_requests)}, "
            f"event_requests={len(event_requests)}, notifications={len(notifications)}"
        )
        return PollResponse(
            chats=chats,
            incoming_friend_requests=[FriendRequestResponse.model_validate(r) for r in friend_requests],
            incoming_event_requests=[ParticipationRequestResponse.model_validate(r) for r in event_requests],
            notifications=[NotificationResponse.model_validate(n) for n in notifications],
        )
