import uuid
from enum import Enum

from sqlalchemy import Column, String, DateTime, Text, Boolean, ForeignKey, Index, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base
from app.utils.datetime_utils import utcnow


class NotificationType(str, Enum):
    FRIEND_REQUEST_RECEIVED = "friend_request_received"
    FRIEND_REQUEST_ACCEPTED = "friend_request_accepted"
    FRIEND_REQUEST_REJECTED = "friend_request_rejected"
    FRIEND_REMOVED = "friend_removed"
    MESSAGE_RECEIVED = "message_received"
    EVENT_REQUEST_RECEIVED = "event_request_received"
    EVENT_REQUEST_ACCEPTED = "event_request_accepted"
    EVENT_REQUEST_REJECTED = "event_request_rejected"
    EVENT_PARTICIPANT_REMOVED = "event_participant_removed"


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (Index("ix_notifications_user_id_created_at", "user_id", "created_at"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(50), nullable=False)
    actor_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    event_id = Column(Uuid, ForeignKey("events.id", ondelete="SET NULL"), nullable=True)
    chat_id = Column(Uuid, ForeignKey("chats.id", ondelete="SET NULL"), nullable=True)
    message = Column(Text, nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    actor = relationship("User", foreign_keys=[actor_id], lazy="joined")
    event = relationship("Event", lazy="joined")

    def __repr__(self):
        return f"<Notification(id={self.id}, type='{self.type}', user_id={self.user_id})>"
