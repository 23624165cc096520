import uuid
from enum import Enum

from sqlalchemy import (
    Column, String, DateTime, Text, Boolean, ForeignKey, Index, UniqueConstraint, Uuid
)
from sqlalchemy.orm import relationship

from app.db.session import Base
from app.utils.datetime_utils import utcnow


class ChatType(str, Enum):
    USER = "user"
    EVENT = "event"


def direct_chat_key(user_id, other_id) -> str:
    return ":".join(sorted([str(user_id), str(other_id)]))


class Chat(Base):
    __tablename__ = "chats"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    type = Column(String(10), nullable=False)
    # "<min user id>:<max user id>" for a 1:1 chat, null for groups
    direct_key = Column(String(80), nullable=True, unique=True)
    # One chat per event
    event_id = Column(Uuid, ForeignKey("events.id", ondelete="CASCADE"), nullable=True, unique=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    participants = relationship(
        "ChatParticipant", back_populates="chat", cascade="all, delete-orphan", lazy="selectin"
    )

    def __repr__(self):
        return f"<Chat(id={self.id}, type='{self.type}')>"

    @property
    def is_direct(self) -> bool:
        return self.direct_key is not None

    def participant_ids(self):
        return [p.user_id for p in self.participants]

    def has_participant(self, user_id) -> bool:
        return any(p.user_id == user_id for p in self.participants)


class ChatParticipant(Base):
    __tablename__ = "chat_participants"
    __table_args__ = (UniqueConstraint("chat_id", "user_id", name="uq_chat_participants_chat_user"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    chat_id = Column(Uuid, ForeignKey("chats.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    last_read_at = Column(DateTime(timezone=True), nullable=True)
    joined_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    chat = relationship("Chat", back_populates="participants")
    user = relationship("User", lazy="joined")


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (Index("ix_messages_chat_id_created_at", "chat_id", "created_at"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    chat_id = Column(Uuid, ForeignKey("chats.id", ondelete="CASCADE"), nullable=False)
    sender_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    # Stored as written; read paths blank it once is_deleted is set
    content = Column(Text, nullable=False)
    reply_to_message_id = Column(Uuid, ForeignKey("messages.id", ondelete="SET NULL"), nullable=True)

    is_system = Column(Boolean, nullable=False, default=False)
    is_edited = Column(Boolean, nullable=False, default=False)
    is_deleted = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    sender = relationship("User", lazy="joined")

    def __repr__(self):
        return f"<Message(id={self.id}, chat_id={self.chat_id}, deleted={self.is_deleted})>"
