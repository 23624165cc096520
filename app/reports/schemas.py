from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from app.common.schemas import CamelModel, UserSummary
from app.reports.models import ReportStatus, ReportType


class ReportCreate(CamelModel):
    reported_user_id: UUID
    type: ReportType
    description: Optional[str] = Field(default=None, max_length=2000)


class ReportUpdate(CamelModel):
    status: Optional[ReportStatus] = None
    admin_notes: Optional[str] = Field(default=None, max_length=2000)


class ReportResponse(CamelModel):
    id: UUID
    reporter_id: UUID
    reported_user_id: UUID
    type: str
    description: Optional[str] = None
    status: str
    admin_notes: Optional[str] = None
    reviewed_by: Optional[UUID] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime
    reporter: Optional[UserSummary] = None
    reported_user: Optional[UserSummary] = None


class ReportListResponse(CamelModel):
    data: List[ReportResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
