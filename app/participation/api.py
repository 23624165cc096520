from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.models import User
from app.common.schemas import MessageResponse, UserSummary
from app.db.session import get_db
from app.participation.schemas import ApplicationCreate, InvitationCreate, ParticipationRequestResponse
from app.participation.services import ParticipationService

router = APIRouter(prefix="/participation", tags=["participation"])


# ===============================
# SEND
# ===============================
@router.post(
    "/events/{event_id}/invitations/{user_id}",
    response_model=ParticipationRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_invitation(
    event_id: UUID,
    user_id: UUID,
    data: Optional[InvitationCreate] = None,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await ParticipationService(db).send_invitation(
        event_id, current_user, user_id, comment=data.comment if data else None
    )


@router.post(
    "/events/{event_id}/applications",
    response_model=ParticipationRequestResponse,
    status_code=status.HTTP_201_CREATED,
)
async def send_application(
    event_id: UUID,
    data: ApplicationCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await ParticipationService(db).send_application(event_id, current_user, data)


# ===============================
# RESPOND / CANCEL
# ===============================
@router.post("/requests/{request_id}/accept", response_model=MessageResponse)
async def accept_request(
    request_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await ParticipationService(db).accept(request_id, current_user)
    return MessageResponse(message="Request accepted")


@router.post("/requests/{request_id}/reject", response_model=MessageResponse)
async def reject_request(
    request_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await ParticipationService(db).reject(request_id, current_user)
    return MessageResponse(message="Request rejected")


@router.delete("/requests/{request_id}", response_model=MessageResponse)
async def cancel_request(
    request_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await ParticipationService(db).cancel(request_id, current_user)
    return MessageResponse(message="Request cancelled")


@router.delete("/events/{event_id}/users/{user_id}", response_model=MessageResponse)
async def cancel_request_for_user(
    event_id: UUID,
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await ParticipationService(db).cancel_for_user(event_id, user_id, current_user)
    return MessageResponse(message="Request cancelled")


# ===============================
# QUERIES
# ===============================
@router.get("/events/{event_id}/received", response_model=List[ParticipationRequestResponse])
async def list_received_applications(
    event_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await ParticipationService(db).get_received_applications(event_id, current_user)


@router.get("/events/{event_id}/sent", response_model=List[ParticipationRequestResponse])
async def list_sent_invitations(
    event_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await ParticipationService(db).get_sent_invitations(event_id, current_user)


@router.get("/events/{event_id}/invitable-friends", response_model=List[UserSummary])
async def list_invitable_friends(
    event_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await ParticipationService(db).get_invitable_friends(event_id, current_user)


@router.get("/my/invitations", response_model=List[ParticipationRequestResponse])
async def list_my_invitations(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await ParticipationService(db).get_my_invitations(current_user.id)


@router.get("/my/applications", response_model=List[ParticipationRequestResponse])
async def list_my_applications(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await ParticipationService(db).get_my_applications(current_user.id)
