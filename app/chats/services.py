import asyncio
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.chats.models import Chat, ChatParticipant, ChatType, Message, direct_chat_key
from app.chats.schemas import ChatCreate, ChatMessageResponse, ChatResponse
from app.chats.signals import message_signal
from app.common.exceptions import BadRequestError, NotFoundError, PermissionDeniedError
from app.common.side_effects import run_side_effect
from app.config import settings
from app.db.session import AsyncSessionLocal
from app.events.models import Event
from app.notifications.models import NotificationType
from app.notifications.services import notify
from app.realtime.gateway import gateway
from app.utils.datetime_utils import ensure_utc, utcnow

logger = logging.getLogger(__name__)

DEFAULT_POLL_TIMEOUT_MS = 30000
# Re-query at least this often while waiting, for writes made by other workers
POLL_RECHECK_SECONDS = 5.0


def serialize_message(message: Message) -> dict:
    return ChatMessageResponse.model_validate(message).model_dump(mode="json", by_alias=True)


def serialize_chat(chat: Chat, last_message: Optional[Message] = None, unread_count: int = 0) -> ChatResponse:
    response = ChatResponse.model_validate(chat)
    response.last_message = ChatMessageResponse.model_validate(last_message) if last_message else None
    response.unread_count = unread_count
    return response


class ChatService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ===========================
    # LOOKUPS
    # ===========================
    async def get_chat(self, chat_id) -> Chat:
        result = await self.db.execute(
            select(Chat).where(Chat.id == chat_id).execution_options(populate_existing=True)
        )
        chat = result.scalars().first()
        if not chat:
            raise NotFoundError("Chat not found")
        return chat

    async def get_chat_for_user(self, chat_id, user_id) -> Chat:
        chat = await self.get_chat(chat_id)
        if not chat.has_participant(user_id):
            raise PermissionDeniedError("You are not a participant of this chat")
        return chat

    async def get_event_chat(self, event_id, user_id) -> Chat:
        chat = await self._find_event_chat(event_id)
        if not chat:
            raise NotFoundError("Event chat not found")
        if not chat.has_participant(user_id):
            raise PermissionDeniedError("You are not a participant of this chat")
        return chat

    async def _find_event_chat(self, event_id) -> Optional[Chat]:
        result = await self.db.execute(
            select(Chat).where(Chat.event_id == event_id).execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def _get_participant(self, chat_id, user_id) -> Optional[ChatParticipant]:
        result = await self.db.execute(
            select(ChatParticipant).where(
                ChatParticipant.chat_id == chat_id,
                ChatParticipant.user_id == user_id,
            )
        )
        return result.scalars().first()

    async def _get_message(self, message_id) -> Message:
        result = await self.db.execute(
            select(Message).where(Message.id == message_id).execution_options(populate_existing=True)
        )
        message = result.scalars().first()
        if not message:
            raise NotFoundError("Message not found")
        return message

    async def find_direct_chat(self, user_id, other_id) -> Optional[Chat]:
        """The 1:1 chat between two users, whichever of them opened it."""
        result = await self.db.execute(
            select(Chat)
            .where(Chat.direct_key == direct_chat_key(user_id, other_id))
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    # ===========================
    # CHAT CREATION
    # ===========================
    async def _ensure_users_exist(self, user_ids) -> None:
        if not user_ids:
            return
        result = await self.db.execute(select(func.count(User.id)).where(User.id.in_(user_ids)))
        if result.scalar_one() != len(set(user_ids)):
            raise BadRequestError("Some participants do not exist")

    async def get_or_create_direct_chat(self, user: User, other_id) -> Chat:
        if other_id == user.id:
            raise BadRequestError("You cannot start a chat with yourself")
        await self._ensure_users_exist([other_id])

        chat = await self.find_direct_chat(user.id, other_id)
        if chat:
            # Either side may have left the chat; opening it again brings them back
            missing = [uid for uid in (user.id, other_id) if not chat.has_participant(uid)]
            if not missing:
                return chat
            for uid in missing:
                chat.participants.append(ChatParticipant(user_id=uid))
            await self.db.commit()
            logger.info(f"Direct chat {chat.id} reopened for {missing}")
            return await self.get_chat(chat.id)

        chat = Chat(
            type=ChatType.USER.value,
            direct_key=direct_chat_key(user.id, other_id),
            participants=[ChatParticipant(user_id=user.id), ChatParticipant(user_id=other_id)],
        )
        self.db.add(chat)
        await self.db.commit()
        logger.info(f"Direct chat created: id={chat.id}, users={user.id},{other_id}")
        return await self.get_chat(chat.id)

    async def create_chat(self, user: User, data: ChatCreate) -> Chat:
        others = [uid for uid in dict.fromkeys(data.participant_ids) if uid != user.id]
        await self._ensure_users_exist(others)

        if data.type == ChatType.USER:
            if not others:
                raise BadRequestError("A chat needs at least one other participant")
            if len(others) == 1:
                return await self.get_or_create_direct_chat(user, others[0])

            chat = Chat(
                type=ChatType.USER.value,
                participants=[ChatParticipant(user_id=uid) for uid in [user.id, *others]],
            )
            self.db.add(chat)
            await self.db.commit()
            logger.info(f"Group chat created: id={chat.id} by {user.id}")
            return await self.get_chat(chat.id)

        return await self._create_event_chat(user, data.event_id, others)

    async def _create_event_chat(self, user: User, event_id, others) -> Chat:
        if event_id is None:
            raise BadRequestError("eventId is required for an event chat")
        event = await self.db.get(Event, event_id)
        if not event:
            raise NotFoundError("Event not found")
        if event.creator_id != user.id and not event.has_participant(user.id):
            raise PermissionDeniedError("Only event participants can open the event chat")

        chat = await self._find_event_chat(event.id)
        if chat:
            missing = [uid for uid in others if not chat.has_participant(uid)]
            for uid in missing:
                chat.participants.append(ChatParticipant(user_id=uid))
            if missing:
                await self.db.commit()
                logger.info(f"Event chat {chat.id}: added participants {missing}")
            return await self.get_chat(chat.id)

        member_ids = list(dict.fromkeys([event.creator_id, user.id, *[p.id for p in event.participants], *others]))
        chat = Chat(
            type=ChatType.EVENT.value,
            event_id=event.id,
            participants=[ChatParticipant(user_id=uid) for uid in member_ids],
        )
        self.db.add(chat)
        await self.db.commit()
        logger.info(f"Event chat created: id={chat.id}, event_id={event.id}, members={len(member_ids)}")
        return await self.get_chat(chat.id)

    # ===========================
    # CHAT LISTING / UNREAD
    # ===========================
    async def _last_message(self, chat_id) -> Optional[Message]:
        result = await self.db.execute(
            select(Message)
            .where(Message.chat_id == chat_id)
            .order_by(Message.created_at.desc())
            .limit(1)
        )
        return result.scalars().first()

    async def list_user_chats(self, user_id) -> List[ChatResponse]:
        chat_ids = select(ChatParticipant.chat_id).where(ChatParticipant.user_id == user_id)
        result = await self.db.execute(select(Chat).where(Chat.id.in_(chat_ids)))
        chats = result.scalars().all()

        items = []
        for chat in chats:
            last_message = await self._last_message(chat.id)
            unread = await self.unread_count(chat.id, user_id)
            items.append(serialize_chat(chat, last_message, unread))

        def last_activity(item: ChatResponse) -> datetime:
            moment = item.last_message.created_at if item.last_message else item.updated_at
            return ensure_utc(moment)

        items.sort(key=last_activity, reverse=True)
        return items

    async def unread_count(self, chat_id, user_id) -> int:
        """Messages from others after my last read; all of them if I never read the chat."""
        participant = await self._get_participant(chat_id, user_id)
        if participant is None:
            raise PermissionDeniedError("You are not a participant of this chat")

        query = select(func.count(Message.id)).where(
            Message.chat_id == chat_id,
            Message.sender_id != user_id,
        )
        if participant.last_read_at is not None:
            query = query.where(Message.created_at > ensure_utc(participant.last_read_at))
        return (await self.db.execute(query)).scalar_one()

    async def mark_read(self, chat_id, user_id) -> None:
        participant = await self._get_participant(chat_id, user_id)
        if participant is None:
            raise PermissionDeniedError("You are not a participant of this chat")
        participant.last_read_at = utcnow()
        await self.db.commit()

    # ===========================
    # MESSAGES
    # ===========================
    async def send_message(
        self,
        chat_id,
        sender: User,
        content: str,
        reply_to_message_id=None,
    ) -> Message:
        chat = await self.get_chat_for_user(chat_id, sender.id)

        if reply_to_message_id is not None:
            replied = await self.db.get(Message, reply_to_message_id)
            if not replied or replied.chat_id != chat.id:
                raise BadRequestError("Replied message does not belong to this chat")

        message = Message(
            chat_id=chat.id,
            sender_id=sender.id,
            content=content,
            reply_to_message_id=reply_to_message_id,
        )
        chat.updated_at = utcnow()
        self.db.add(message)
        await self.db.commit()
        message = await self._get_message(message.id)
        logger.info(f"Message sent: id={message.id}, chat_id={chat.id}, sender_id={sender.id}")

        message_signal.publish(chat.id)
        payload = serialize_message(message)
        recipients = [uid for uid in chat.participant_ids() if uid != sender.id]

        for recipient_id in recipients:
            await notify(
                recipient_id,
                NotificationType.MESSAGE_RECEIVED,
                actor_id=sender.id,
                chat_id=chat.id,
                event_id=chat.event_id,
                message=content[:100],
            )
        for participant_id in chat.participant_ids():
            await run_side_effect(
                "chat message push",
                lambda pid=participant_id: gateway.send_chat_message(pid, payload),
            )
        return message

    async def send_direct_message(self, sender: User, other_id, content: str) -> Message:
        chat = await self.get_or_create_direct_chat(sender, other_id)
        return await self.send_message(chat.id, sender, content)

    async def post_system_message(self, chat_id, author_id, content: str) -> Message:
        """Server-generated message, e.g. "X joined the event"."""
        chat = await self.get_chat(chat_id)
        message = Message(chat_id=chat.id, sender_id=author_id, content=content, is_system=True)
        chat.updated_at = utcnow()
        self.db.add(message)
        await self.db.commit()
        message = await self._get_message(message.id)

        message_signal.publish(chat.id)
        payload = serialize_message(message)
        for participant_id in chat.participant_ids():
            await run_side_effect(
                "system message push",
                lambda pid=participant_id: gateway.send_message(pid, payload),
            )
        return message

    async def get_messages(self, chat_id, user_id, limit: int = 50, before: Optional[datetime] = None) -> List[Message]:
        await self.get_chat_for_user(chat_id, user_id)

        query = select(Message).where(Message.chat_id == chat_id)
        if before is not None:
            query = query.where(Message.created_at < ensure_utc(before))
        result = await self.db.execute(query.order_by(Message.created_at.desc()).limit(limit))
        messages = list(result.scalars().all())
        messages.reverse()

        await self.mark_read(chat_id, user_id)
        return messages

    async def get_message(self, message_id, user_id) -> Message:
        message = await self._get_message(message_id)
        await self.get_chat_for_user(message.chat_id, user_id)
        return message

    async def _messages_after(self, chat_id, after: datetime) -> List[Message]:
        result = await self.db.execute(
            select(Message)
            .where(Message.chat_id == chat_id, Message.created_at > after)
            .order_by(Message.created_at.asc())
        )
        return list(result.scalars().all())

    async def poll_new_messages(
        self,
        chat_id,
        user_id,
        after: datetime,
        timeout_ms: int = DEFAULT_POLL_TIMEOUT_MS,
    ) -> List[Message]:
        """
        Long-poll for messages newer than `after`.

        Returns as soon as there is at least one, otherwise waits until a
        write to the chat wakes the request or the timeout elapses, in which
        case the result is empty.
        """
        await self.get_chat_for_user(chat_id, user_id)
        after = ensure_utc(after)
        timeout = min(max(timeout_ms, 0), settings.LONG_POLL_MAX_TIMEOUT_MS) / 1000
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout

        async with message_signal.subscribe(chat_id) as wake:
            while True:
                wake.clear()
                messages = await self._messages_after(chat_id, after)
                # End the read transaction so writers are not blocked while we wait
                await self.db.commit()
                if messages:
                    await self.mark_read(chat_id, user_id)
                    return messages

                remaining = deadline - loop.time()
                if remaining <= 0:
                    return []
                try:
                    await asyncio.wait_for(wake.wait(), timeout=min(remaining, POLL_RECHECK_SECONDS))
                except asyncio.TimeoutError:
                    pass

    async def edit_message(self, message_id, user_id, content: str) -> Message:
        message = await self._get_message(message_id)
        if message.sender_id != user_id or message.is_system:
            raise PermissionDeniedError("You can only edit your own messages")
        if message.is_deleted:
            raise BadRequestError("Deleted messages cannot be edited")

        message.content = content
        message.is_edited = True
        await self.db.commit()
        logger.info(f"Message edited: id={message.id}")
        return await self._get_message(message.id)

    async def delete_message(self, message_id, user_id) -> Message:
        message = await self._get_message(message_id)
        if message.sender_id != user_id or message.is_system:
            raise PermissionDeniedError("You can only delete your own messages")

        message.is_deleted = True
        await self.db.commit()
        logger.info(f"Message soft-deleted: id={message.id}")
        return await self._get_message(message.id)

    # ===========================
    # PARTICIPANTS
    # ===========================
    async def add_participant(self, chat_id, actor_id, user_id) -> Chat:
        chat = await self.get_chat_for_user(chat_id, actor_id)
        if chat.is_direct:
            raise BadRequestError("Participants cannot be added to a direct chat")
        if chat.has_participant(user_id):
            raise BadRequestError("User is already a participant of this chat")
        await self._ensure_users_exist([user_id])

        chat.participants.append(ChatParticipant(user_id=user_id))
        await self.db.commit()
        logger.info(f"User {user_id} added to chat {chat.id} by {actor_id}")
        return await self.get_chat(chat.id)

    async def add_user_to_event_chat(self, event_id, user_id) -> Optional[Chat]:
        chat = await self._find_event_chat(event_id)
        if chat is None:
            return None
        if not chat.has_participant(user_id):
            chat.participants.append(ChatParticipant(user_id=user_id))
            await self.db.commit()
            logger.info(f"User {user_id} added to event chat {chat.id}")
        return chat

    async def remove_participant(self, chat_id, actor_id, user_id) -> None:
        if actor_id != user_id:
            raise PermissionDeniedError("You can only remove yourself from a chat")
        chat = await self.get_chat(chat_id)
        participant = next((p for p in chat.participants if p.user_id == user_id), None)
        if participant is None:
            raise NotFoundError("User is not a participant of this chat")

        chat.participants.remove(participant)
        await self.db.commit()
        logger.info(f"User {user_id} left chat {chat.id}")

    async def remove_user_from_event_chat(self, event_id, user_id) -> None:
        chat = await self._find_event_chat(event_id)
        if chat is None:
            return
        participant = next((p for p in chat.participants if p.user_id == user_id), None)
        if participant is not None:
            chat.participants.remove(participant)
            await self.db.commit()
            logger.info(f"User {user_id} removed from event chat {chat.id}")


# ===========================
# EVENT CHAT MEMBERSHIP (own session, used after event writes)
# ===========================
async def join_event_chat(event_id, user_id, announcement: Optional[str] = None) -> Optional[Chat]:
    async with AsyncSessionLocal() as session:
        service = ChatService(session)
        chat = await service.add_user_to_event_chat(event_id, user_id)
        if chat is not None and announcement:
            await service.post_system_message(chat.id, user_id, announcement)
        return chat


async def leave_event_chat(event_id, user_id) -> None:
    async with AsyncSessionLocal() as session:
        await ChatService(session).remove_user_from_event_chat(event_id, user_id)
