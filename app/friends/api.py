from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.models import User
from app.common.schemas import MessageResponse
from app.db.session import get_db
from app.friends.schemas import (
    FriendRequestCreate,
    FriendRequestResponse,
    FriendResponse,
    RelationshipStatusResponse,
)
from app.friends.services import FriendService

router = APIRouter(prefix="/friends", tags=["friends"])


# ===============================
# FRIENDS
# ===============================
@router.get("", response_model=List[FriendResponse])
async def list_friends(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await FriendService(db).get_friends(current_user.id)


@router.delete("/{friend_id}", response_model=MessageResponse)
async def remove_friend(
    friend_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await FriendService(db).remove_friend(current_user, friend_id)
    return MessageResponse(message="Friend removed")


@router.get("/status/{user_id}", response_model=RelationshipStatusResponse)
async def relationship_status(
    user_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    relationship = await FriendService(db).get_relationship_status(current_user.id, user_id)
    return RelationshipStatusResponse(user_id=user_id, status=relationship)


# ===============================
# FRIEND REQUESTS
# ===============================
@router.post("/requests", response_model=FriendRequestResponse, status_code=status.HTTP_201_CREATED)
async def send_friend_request(
    data: FriendRequestCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await FriendService(db).send_request(current_user, data.receiver_id, data.comment)


@router.get("/requests/sent", response_model=List[FriendRequestResponse])
async def list_sent_requests(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await FriendService(db).get_sent_requests(current_user.id)


@router.get("/requests/received", response_model=List[FriendRequestResponse])
async def list_received_requests(current_user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    return await FriendService(db).get_received_requests(current_user.id)


@router.post("/requests/{sender_id}/accept", response_model=MessageResponse)
async def accept_friend_request(
    sender_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await FriendService(db).accept_request(current_user, sender_id)
    return MessageResponse(message="Friend request accepted")


@router.post("/requests/{sender_id}/reject", response_model=MessageResponse)
async def reject_friend_request(
    sender_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await FriendService(db).reject_request(current_user, sender_id)
    return MessageResponse(message="Friend request rejected")


@router.delete("/requests/{receiver_id}", response_model=MessageResponse)
async def cancel_friend_request(
    receiver_id: UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    await FriendService(db).cancel_request(current_user, receiver_id)
    return MessageResponse(message="Friend request cancelled")
