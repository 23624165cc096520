import uuid

from sqlalchemy import Column, String, DateTime, Text, JSON, Uuid

from app.db.session import Base
from app.utils.datetime_utils import utcnow


class Role(Base):
    __tablename__ = "roles"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False, unique=True)
    description = Column(Text, nullable=True)
    permission_codes = Column(JSON, nullable=False, default=list)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    def __repr__(self):
        return f"<Role(id={self.id}, name='{self.name}')>"
