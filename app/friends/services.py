import logging
from typing import List, Optional

from sqlalchemy import and_, delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.common.exceptions import BadRequestError, ConflictError, NotFoundError
from app.common.side_effects import run_side_effect
from app.friends.models import Friend, FriendRequest
from app.friends.schemas import RelationshipStatus
from app.notifications.models import NotificationType
from app.notifications.services import notify
from app.realtime.gateway import gateway

logger = logging.getLogger(__name__)


class FriendService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ===========================
    # LOOKUPS
    # ===========================
    async def are_friends(self, user_id, other_id) -> bool:
        result = await self.db.execute(
            select(Friend.id).where(
                or_(
                    and_(Friend.user_id == user_id, Friend.friend_id == other_id),
                    and_(Friend.user_id == other_id, Friend.friend_id == user_id),
                )
            )
        )
        return result.first() is not None

    async def _get_request(self, sender_id, receiver_id) -> Optional[FriendRequest]:
        result = await self.db.execute(
            select(FriendRequest).where(
                FriendRequest.sender_id == sender_id,
                FriendRequest.receiver_id == receiver_id,
            ).execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def _push(self, user_id, payload: dict) -> None:
        await run_side_effect("friend update push", lambda: gateway.send_friend_update(user_id, payload))

    # ===========================
    # REQUEST WORKFLOW
    # ===========================
    async def send_request(self, sender: User, receiver_id, comment: Optional[str] = None) -> FriendRequest:
        if sender.id == receiver_id:
            raise BadRequestError("You cannot send a friend request to yourself")

        receiver = await self.db.get(User, receiver_id)
        if not receiver:
            raise NotFoundError("User not found")

        if await self.are_friends(sender.id, receiver_id):
            raise ConflictError("Already friends")

        existing = await self.db.execute(
            select(FriendRequest.id).where(
                or_(
                    and_(FriendRequest.sender_id == sender.id, FriendRequest.receiver_id == receiver_id),
                    and_(FriendRequest.sender_id == receiver_id, FriendRequest.receiver_id == sender.id),
                )
            )
        )
        if existing.first() is not None:
            raise ConflictError("A friend request between these users already exists")

        request = FriendRequest(sender_id=sender.id, receiver_id=receiver_id, comment=comment)
        self.db.add(request)
        await self.db.commit()
        request = await self._get_request(sender.id, receiver_id)
        logger.info(f"Friend request sent: {sender.id} -> {receiver_id}")

        await notify(
            receiver_id,
            NotificationType.FRIEND_REQUEST_RECEIVED,
            actor_id=sender.id,
            message=f"{sender.public_name} sent you a friend request",
        )
        await self._push(receiver_id, {"type": "request_received", "userId": str(sender.id)})
        return request

    async def accept_request(self, receiver: User, sender_id) -> None:
        """Only the receiver can accept: the request is looked up by (sender, receiver=caller)."""
        request = await self._get_request(sender_id, receiver.id)
        if not request:
            raise NotFoundError("Friend request not found")

        if await self.are_friends(sender_id, receiver.id):
            raise ConflictError("Already friends")

        self.db.add_all([
            Friend(user_id=sender_id, friend_id=receiver.id),
            Friend(user_id=receiver.id, friend_id=sender_id),
        ])
        await self.db.delete(request)
        # Both edges and the request removal land in one commit
        await self.db.commit()
        logger.info(f"Friend request accepted: {sender_id} -> {receiver.id}")

        await notify(
            sender_id,
            NotificationType.FRIEND_REQUEST_ACCEPTED,
            actor_id=receiver.id,
            message=f"{receiver.public_name} accepted your friend request",
        )
        await self._push(sender_id, {"type": "friend_added", "userId": str(receiver.id)})
        await self._push(receiver.id, {"type": "friend_added", "userId": str(sender_id)})

    async def reject_request(self, receiver: User, sender_id) -> None:
        request = await self._get_request(sender_id, receiver.id)
        if not request:
            raise NotFoundError("Friend request not found")

        await self.db.delete(request)
        await self.db.commit()
        logger.info(f"Friend request rejected: {sender_id} -> {receiver.id}")

        await notify(
            sender_id,
            NotificationType.FRIEND_REQUEST_REJECTED,
            actor_id=receiver.id,
            message=f"{receiver.public_name} declined your friend request",
        )
        await self._push(sender_id, {"type": "request_rejected", "userId": str(receiver.id)})

    async def cancel_request(self, sender: User, receiver_id) -> None:
        request = await self._get_request(sender.id, receiver_id)
        if not request:
            raise NotFoundError("Friend request not found")

        await self.db.delete(request)
        await self.db.commit()
        logger.info(f"Friend request cancelled: {sender.id} -> {receiver_id}")

        await self._push(receiver_id, {"type": "request_cancelled", "userId": str(sender.id)})

    async def remove_friend(self, user: User, friend_id) -> None:
        if not await self.are_friends(user.id, friend_id):
            raise NotFoundError("Friend not found")

        await self.db.execute(
            delete(Friend).where(
                or_(
                    and_(Friend.user_id == user.id, Friend.friend_id == friend_id),
                    and_(Friend.user_id == friend_id, Friend.friend_id == user.id),
                )
            )
        )
        await self.db.commit()
        logger.info(f"Friendship removed: {user.id} <-> {friend_id}")

        await notify(
            friend_id,
            NotificationType.FRIEND_REMOVED,
            actor_id=user.id,
            message=f"{user.public_name} removed you from friends",
        )
        await self._push(friend_id, {"type": "friend_removed", "userId": str(user.id)})
        await self._push(user.id, {"type": "friend_removed", "userId": str(friend_id)})

    # ===========================
    # QUERIES
    # ===========================
    async def get_friends(self, user_id) -> List[Friend]:
        result = await self.db.execute(
            select(Friend).where(Friend.user_id == user_id).order_by(Friend.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_friend_ids(self, user_id) -> List:
        result = await self.db.execute(select(Friend.friend_id).where(Friend.user_id == user_id))
        return list(result.scalars().all())

    async def get_sent_requests(self, user_id) -> List[FriendRequest]:
        result = await self.db.execute(
            select(FriendRequest)
            .where(FriendRequest.sender_id == user_id)
            .order_by(FriendRequest.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_received_requests(self, user_id) -> List[FriendRequest]:
        result = await self.db.execute(
            select(FriendRequest)
            .where(FriendRequest.receiver_id == user_id)
            .order_by(FriendRequest.created_at.desc())
        )
        return list(result.scalars().all())

    async def get_relationship_status(self, user_id, other_id) -> RelationshipStatus:
        if await self.are_friends(user_id, other_id):
            return RelationshipStatus.FRIENDS
        if await self._get_request(user_id, other_id):
            return RelationshipStatus.REQUEST_SENT
        if await self._get_request(other_id, user_id):
            return RelationshipStatus.REQUEST_RECEIVED
        return RelationshipStatus.NONE
