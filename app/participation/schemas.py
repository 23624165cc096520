from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from app.common.schemas import CamelModel, UserSummary


class InvitationCreate(CamelModel):
    comment: Optional[str] = Field(default=None, max_length=500)


class ApplicationCreate(CamelModel):
    """Requirement flags the applicant reports; unset age/gender flags are derived from the profile."""
    age_matches: Optional[bool] = None
    gender_matches: Optional[bool] = None
    items_can_bring: List[str] = Field(default_factory=list)
    can_bring_money: Optional[bool] = None
    meets_requirements: Optional[bool] = None
    comment: Optional[str] = Field(default=None, max_length=500)


class RequestEventSummary(CamelModel):
    id: UUID
    title: str
    date_time: datetime
    creator_id: UUID


class ParticipationRequestResponse(CamelModel):
    id: UUID
    event_id: UUID
    user_id: UUID
    type: str
    status: str
    age_matches: Optional[bool] = None
    gender_matches: Optional[bool] = None
    items_can_bring: List[str] = Field(default_factory=list)
    can_bring_money: Optional[bool] = None
    meets_requirements: bool
    comment: Optional[str] = None
    created_at: datetime
    user: Optional[UserSummary] = None
    event: Optional[RequestEventSummary] = None
