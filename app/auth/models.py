# app/auth/models.py
import uuid
from enum import Enum

from sqlalchemy import Column, String, DateTime, Boolean, Date, Uuid, UniqueConstraint

from app.db.session import Base
from app.utils.datetime_utils import utcnow


class AuthProvider(str, Enum):
    LOCAL = "local"
    GOOGLE = "google"
    YANDEX = "yandex"


class Gender(str, Enum):
    MALE = "male"
    FEMALE = "female"


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        UniqueConstraint("email", "auth_provider", name="uq_users_email_auth_provider"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), nullable=False, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=True)
    display_name = Column(String(200), nullable=True)
    avatar = Column(String(500), nullable=True)
    birth_date = Column(Date, nullable=True)
    gender = Column(String(10), nullable=True)

    auth_provider = Column(String(20), nullable=False, default=AuthProvider.LOCAL.value)
    provider_id = Column(String(255), nullable=True, index=True)
    password_hash = Column(String(255), nullable=True)

    # Not a foreign key: the Administrator role id points at a role that is never stored
    role_id = Column(Uuid, nullable=True, index=True)

    is_active = Column(Boolean, nullable=False, default=True)
    is_blocked = Column(Boolean, nullable=False, default=False)

    reset_token = Column(String(64), nullable=True, index=True)
    reset_token_expiry = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', provider='{self.auth_provider}')>"

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name or ''}".strip()

    @property
    def public_name(self):
        """Name shown to other users."""
        return self.display_name or self.full_name or self.email
