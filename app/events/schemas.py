from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field, model_validator

from app.common.schemas import CamelModel, UserSummary
from app.events.models import PreferredGender

# Fields nulled out for outsiders when the creator hides the address
HIDDEN_LOCATION_FIELDS = (
    "address",
    "address_comment",
    "latitude",
    "longitude",
    "entrance",
    "floor",
    "apartment",
)


# ===========================
# EVENTS
# ===========================
class EventBase(CamelModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    date_time: datetime
    duration: Optional[int] = Field(default=None, gt=0)
    items_to_bring: List[str] = Field(default_factory=list)
    money_required: Optional[float] = Field(default=None, ge=0)

    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    address: Optional[str] = Field(default=None, max_length=500)
    address_comment: Optional[str] = None
    region: Optional[str] = Field(default=None, max_length=200)
    region_code: Optional[str] = Field(default=None, max_length=20)
    hide_address_for_non_participants: bool = False
    entrance: int = Field(default=1, ge=0)
    floor: int = Field(default=1)
    apartment: int = Field(default=1, ge=0)

    max_participants: Optional[int] = Field(default=None, gt=0)
    min_age: Optional[int] = Field(default=None, ge=0, le=150)
    max_age: Optional[int] = Field(default=None, ge=0, le=150)
    preferred_gender: PreferredGender = PreferredGender.ANY
    cover_image: Optional[str] = Field(default=None, max_length=500)

    @model_validator(mode="after")
    def check_age_range(self):
        if self.min_age is not None and self.max_age is not None and self.min_age > self.max_age:
            raise ValueError("minAge must not be greater than maxAge")
        return self


class EventCreate(EventBase):
    pass


class EventUpdate(CamelModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=5000)
    date_time: Optional[datetime] = None
    duration: Optional[int] = Field(default=None, gt=0)
    items_to_bring: Optional[List[str]] = None
    money_required: Optional[float] = Field(default=None, ge=0)
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    address: Optional[str] = Field(default=None, max_length=500)
    address_comment: Optional[str] = None
    region: Optional[str] = Field(default=None, max_length=200)
    region_code: Optional[str] = Field(default=None, max_length=20)
    hide_address_for_non_participants: Optional[bool] = None
    entrance: Optional[int] = Field(default=None, ge=0)
    floor: Optional[int] = None
    apartment: Optional[int] = Field(default=None, ge=0)
    max_participants: Optional[int] = Field(default=None, gt=0)
    min_age: Optional[int] = Field(default=None, ge=0, le=150)
    max_age: Optional[int] = Field(default=None, ge=0, le=150)
    preferred_gender: Optional[PreferredGender] = None
    cover_image: Optional[str] = Field(default=None, max_length=500)


class EventResponse(CamelModel):
    id: UUID
    title: str
    description: Optional[str] = None
    date_time: datetime
    duration: Optional[int] = None
    items_to_bring: List[str] = Field(default_factory=list)
    money_required: Optional[float] = None

    latitude: Optional[float] = None
    longitude: Optional[float] = None
    address: Optional[str] = None
    address_comment: Optional[str] = None
    region: Optional[str] = None
    region_code: Optional[str] = None
    hide_address_for_non_participants: bool
    entrance: Optional[int] = None
    floor: Optional[int] = None
    apartment: Optional[int] = None

    max_participants: Optional[int] = None
    min_age: Optional[int] = None
    max_age: Optional[int] = None
    preferred_gender: str
    cover_image: Optional[str] = None

    creator_id: UUID
    creator: UserSummary
    participants: List[UserSummary] = Field(default_factory=list)
    participant_count: int
    is_full: bool
    is_participant: bool = False
    created_at: datetime
    updated_at: datetime


class EventListResponse(CamelModel):
    events: List[EventResponse]
    total: int
    pages: int
    page: int
    per_page: int
