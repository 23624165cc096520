import uuid
from enum import Enum

from sqlalchemy import Column, String, DateTime, Text, ForeignKey, Index, Uuid
from sqlalchemy.orm import relationship

from app.db.session import Base
from app.utils.datetime_utils import utcnow


class ReportType(str, Enum):
    SPAM = "spam"
    HARASSMENT = "harassment"
    INAPPROPRIATE_CONTENT = "inappropriate_content"
    FAKE_PROFILE = "fake_profile"
    SCAM = "scam"
    VIOLENCE = "violence"
    OTHER = "other"


class ReportStatus(str, Enum):
    PENDING = "pending"
    REVIEWED = "reviewed"
    RESOLVED = "resolved"
    REJECTED = "rejected"


class Report(Base):
    """A complaint filed by one user against another, handled by moderators."""
    __tablename__ = "reports"
    __table_args__ = (Index("ix_reports_reported_user_reporter", "reported_user_id", "reporter_id"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    reporter_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    reported_user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(30), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=ReportStatus.PENDING.value)

    admin_notes = Column(Text, nullable=True)
    reviewed_by = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    reporter = relationship("User", foreign_keys=[reporter_id], lazy="joined")
    reported_user = relationship("User", foreign_keys=[reported_user_id], lazy="joined")

    def __repr__(self):
        return f"<Report(id={self.id}, type='{self.type}', status='{self.status}')>"
