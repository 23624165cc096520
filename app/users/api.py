from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.models import User
from app.auth.permissions import Permission, require_permission
from app.auth.schemas import UserResponse
from app.common.schemas import MessageResponse
from app.db.session import get_db
from app.users.schemas import (
    AssignRoleRequest,
    BlockUserRequest,
    PublicUserResponse,
    UserListResponse,
    UserProfileUpdate,
)
from app.users.services import UserService

router = APIRouter(prefix="/users", tags=["users"])


@router.get("", response_model=UserListResponse)
async def list_users(
    search: Optional[str] = None,
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100, alias="perPage"),
    _: User = Depends(require_permission(Permission.USERS_VIEW)),
    db: AsyncSession = Depends(get_db),
):
    return await UserService(db).list_users(search=search, page=page, per_page=per_page)


@router.patch("/me", response_model=UserResponse)
async def update_my_profile(
    data: UserProfileUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await UserService(db).update_profile(current_user, data)


@router.get("/{user_id}", response_model=PublicUserResponse)
async def get_user(
    user_id: UUID,
    _: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await UserService(db).get_user(user_id)


@router.patch("/{user_id}/block", response_model=UserResponse)
async def block_user(
    user_id: UUID,
    data: BlockUserRequest,
    actor: User = Depends(require_permission(Permission.USERS_BLOCK)),
    db: AsyncSession = Depends(get_db),
):
    return await UserService(db).set_blocked(user_id, data.is_blocked, actor)


@router.patch("/{user_id}/role", response_model=UserResponse)
async def assign_role(
    user_id: UUID,
    data: AssignRoleRequest,
    _: User = Depends(require_permission(Permission.USERS_EDIT)),
    db: AsyncSession = Depends(get_db),
):
    return await UserService(db).assign_role(user_id, data.role_id)


@router.delete("/{user_id}", response_model=MessageResponse)
async def delete_user(
    user_id: UUID,
    actor: User = Depends(require_permission(Permission.USERS_DELETE)),
    db: AsyncSession = Depends(get_db),
):
    await UserService(db).deactivate(user_id, actor)
    return MessageResponse(message="User deactivated")
