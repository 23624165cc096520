from datetime import datetime
from typing import Optional
from uuid import UUID

from app.common.schemas import CamelModel, UserSummary


class NotificationEventSummary(CamelModel):
    id: UUID
    title: str
    date_time: datetime
    cover_image: Optional[str] = None


class NotificationResponse(CamelModel):
    id: UUID
    user_id: UUID
    type: str
    actor_id: Optional[UUID] = None
    event_id: Optional[UUID] = None
    chat_id: Optional[UUID] = None
    message: Optional[str] = None
    is_read: bool
    created_at: datetime
    actor: Optional[UserSummary] = None
    event: Optional[NotificationEventSummary] = None


class UnreadCountResponse(CamelModel):
    count: int
