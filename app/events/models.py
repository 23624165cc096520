import uuid
from enum import Enum

from sqlalchemy import (
    Column, Integer, String, DateTime, Text, Boolean, Float, Numeric, ForeignKey, Table, JSON, Uuid
)
from sqlalchemy.orm import relationship

from app.db.session import Base
from app.utils.datetime_utils import utcnow

# Association table for event participants
event_participants = Table(
    "event_participants",
    Base.metadata,
    Column("event_id", Uuid, ForeignKey("events.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Uuid, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
    Column("joined_at", DateTime(timezone=True), default=utcnow),
)


class PreferredGender(str, Enum):
    MALE = "male"
    FEMALE = "female"
    ANY = "any"


class Event(Base):
    __tablename__ = "events"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=True)
    date_time = Column(DateTime(timezone=True), nullable=False, index=True)
    duration = Column(Integer, nullable=True)  # minutes

    items_to_bring = Column(JSON, nullable=False, default=list)
    money_required = Column(Numeric(10, 2), nullable=True)

    # Location
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)
    address = Column(String(500), nullable=True)
    address_comment = Column(Text, nullable=True)
    region = Column(String(200), nullable=True)
    region_code = Column(String(20), nullable=True, index=True)
    hide_address_for_non_participants = Column(Boolean, nullable=False, default=False)
    entrance = Column(Integer, nullable=False, default=1)
    floor = Column(Integer, nullable=False, default=1)
    apartment = Column(Integer, nullable=False, default=1)

    # Participation constraints
    max_participants = Column(Integer, nullable=True)
    min_age = Column(Integer, nullable=True)
    max_age = Column(Integer, nullable=True)
    preferred_gender = Column(String(10), nullable=False, default=PreferredGender.ANY.value)

    cover_image = Column(String(500), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    creator_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    creator = relationship("User", lazy="joined")

    participants = relationship("User", secondary=event_participants, lazy="selectin")

    def __repr__(self):
        return f"<Event(id={self.id}, title='{self.title}', date_time='{self.date_time}')>"

    @property
    def participant_count(self):
        return len(self.participants)

    @property
    def is_full(self):
        if self.max_participants is None:
            return False
        return self.participant_count >= self.max_participants

    def has_participant(self, user_id) -> bool:
        return any(p.id == user_id for p in self.participants)
