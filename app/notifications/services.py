import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.common.exceptions import NotFoundError
from app.common.side_effects import run_side_effect
from app.config import settings
from app.db.session import AsyncSessionLocal
from app.notifications.models import Notification, NotificationType
from app.notifications.schemas import NotificationResponse
from app.realtime.gateway import gateway
from app.utils.datetime_utils import ensure_utc

logger = logging.getLogger(__name__)


def serialize_notification(notification: Notification) -> dict:
    return NotificationResponse.model_validate(notification).model_dump(mode="json", by_alias=True)


class NotificationService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create(
        self,
        user_id,
        type: NotificationType,
        actor_id=None,
        event_id=None,
        chat_id=None,
        message: Optional[str] = None,
    ) -> Notification:
        """Record a notification and push it to the recipient if they are online."""
        notification = Notification(
            user_id=user_id,
            type=type.value,
            actor_id=actor_id,
            event_id=event_id,
            chat_id=chat_id,
            message=message,
        )
        self.db.add(notification)
        await self.db.commit()
        notification = await self.get_by_id(notification.id)
        logger.info(f"Notification {type.value} created for user {user_id}")

        await run_side_effect(
            "notification push",
            lambda: gateway.send_notification(user_id, serialize_notification(notification)),
        )
        return notification

    async def get_by_id(self, notification_id) -> Optional[Notification]:
        result = await self.db.execute(
            select(Notification)
            .where(Notification.id == notification_id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()

    async def get_notifications(self, user_id, limit: int = 50, before: Optional[datetime] = None) -> List[Notification]:
        query = select(Notification).where(Notification.user_id == user_id)
        if before is not None:
            query = query.where(Notification.created_at < ensure_utc(before))
        query = query.order_by(Notification.created_at.desc()).limit(limit)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def latest(self, user_id, limit: Optional[int] = None) -> List[Notification]:
        return await self.get_notifications(user_id, limit=limit or settings.NOTIFICATION_REPLAY_LIMIT)

    async def mark_as_read(self, notification_id, user_id) -> Notification:
        notification = await self.db.get(Notification, notification_id)
        if not notification or notification.user_id != user_id:
            raise NotFoundError("Notification not found")
        notification.is_read = True
        await self.db.commit()
        return notification

    async def mark_all_as_read(self, user_id) -> int:
        result = await self.db.execute(
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True)
        )
        await self.db.commit()
        return result.rowcount or 0

    async def unread_count(self, user_id) -> int:
        result = await self.db.execute(
            select(func.count(Notification.id)).where(
                Notification.user_id == user_id,
                Notification.is_read.is_(False),
            )
        )
        return result.scalar_one()


async def notify(user_id, type: NotificationType, **kwargs) -> Optional[Notification]:
    """Best-effort notification used by other services after their primary write."""

    async def create() -> Notification:
        async with AsyncSessionLocal() as session:
            return await NotificationService(session).create(user_id, type, **kwargs)

    return await run_side_effect(f"notification {type.value}", create)
