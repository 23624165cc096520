import uuid
from enum import Enum

from sqlalchemy import Column, String, DateTime, Text, Boolean, JSON, ForeignKey, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base
from app.utils.datetime_utils import utcnow


class RequestType(str, Enum):
    INVITATION = "invitation"    # creator -> user
    APPLICATION = "application"  # user -> creator


class RequestStatus(str, Enum):
    PENDING = "pending"


class EventParticipationRequest(Base):
    __tablename__ = "event_participation_requests"
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_participation_requests_event_user"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id = Column(Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    type = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False, default=RequestStatus.PENDING.value)

    age_matches = Column(Boolean, nullable=True)
    gender_matches = Column(Boolean, nullable=True)
    items_can_bring = Column(JSON, nullable=False, default=list)
    can_bring_money = Column(Boolean, nullable=True)
    meets_requirements = Column(Boolean, nullable=False, default=False)
    comment = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    event = relationship("Event", lazy="joined")
    user = relationship("User", lazy="joined")

    def __repr__(self):
        return f"<EventParticipationRequest(type='{self.type}', event_id={self.event_id}, user_id={self.user_id})>"
