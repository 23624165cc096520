from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.models import User
from app.common.schemas import MessageResponse, UserSummary
from app.db.session import get_db
from app.events.schemas import EventCreate, EventListResponse, EventResponse, EventUpdate
from app.events.services import EventService, serialize_event

router = APIRouter(prefix="/events", tags=["events"])


# ===============================
# EVENT CREATION
# ===============================
@router.post("", response_model=EventResponse, status_code=status.HTTP_201_CREATED)
async def create_event(
    data: EventCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    event = await EventService(db).create_event(data, current_user)
    return serialize_event(event, current_user.id)


# ===============================
# GET EVENTS
# ===============================
@router.get("", response_model=EventListResponse)
async def list_upcoming_events(
    search: Optional[str] = Query(None, description="Search in title and description"),
    region_code: Optional[str] = Query(None, alias="regionCode"),
    page: int = Query(1, ge=1, description="Page number"),
    per_page: int = Query(20, ge=1, le=100, alias="perPage", description="Items per page"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    result = await EventService(db).list_upcoming(search=search, region_code=region_code, page=page, per_page=per_page)
    result["events"] = [serialize_event(event, current_user.id) for event in result["events"]]
    return result


@router.get("/my", response_model=List[EventResponse])
async def list_my_events(
    include_past: bool = Query(False, alias="includePast"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    events = await EventService(db).list_user_events(current_user.id, include_past=include_past)
    return [serialize_event(event, current_user.id) for event in events]


@router.get("/{event_id}", response_model=EventResponse)
async def get_event(
    event_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return serialize_event(await EventService(db).get_event(event_id), current_user.id)


@router.get("/{event_id}/participants", response_model=List[UserSummary])
async def get_participants(
    event_id: UUID,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await EventService(db).get_participants(event_id)


# ===============================
# UPDATE / DELETE
# ===============================
@router.patch("/{event_id}", response_model=EventResponse)
async def update_event(
    event_id: UUID,
    data: EventUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    event = await EventService(db).update_event(event_id, data, current_user)
    return serialize_event(event, current_user.id)


@router.delete("/{event_id}", response_model=MessageResponse)
async def delete_event(
    event_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await EventService(db).delete_event(event_id, current_user)
    return MessageResponse(message="Event deleted")


# ===============================
# PARTICIPANTS
# ===============================
@router.post("/{event_id}/join")
async def join_event(event_id: UUID, _: User = Depends(get_current_user)):
    # Joining always goes through an application the creator accepts
    raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Use participation requests to join events")


@router.post("/{event_id}/leave", response_model=MessageResponse)
async def leave_event(
    event_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await EventService(db).remove_participant(event_id, current_user.id, current_user)
    return MessageResponse(message="You left the event")


@router.delete("/{event_id}/participants/{user_id}", response_model=MessageResponse)
async def remove_participant(
    event_id: UUID,
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await EventService(db).remove_participant(event_id, user_id, current_user)
    return MessageResponse(message="Participant removed")
