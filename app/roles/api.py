from typing import List
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.auth.permissions import ALL_PERMISSIONS, Permission, require_permission
from app.common.schemas import MessageResponse
from app.db.session import get_db
from app.roles.schemas import RoleCreate, RoleResponse, RoleUpdate
from app.roles.services import RoleService, serialize_role

router = APIRouter(prefix="/roles", tags=["roles"])


@router.get("", response_model=List[RoleResponse])
async def list_roles(
    _: User = Depends(require_permission(Permission.ROLES_VIEW)),
    db: AsyncSession = Depends(get_db),
):
    return [serialize_role(role) for role in await RoleService(db).list_roles()]


@router.get("/permissions", response_model=List[str])
async def list_permissions(_: User = Depends(require_permission(Permission.ROLES_VIEW))):
    return ALL_PERMISSIONS


@router.get("/{role_id}", response_model=RoleResponse)
async def get_role(
    role_id: UUID,
    _: User = Depends(require_permission(Permission.ROLES_VIEW)),
    db: AsyncSession = Depends(get_db),
):
    return serialize_role(await RoleService(db).get_role(role_id))


@router.post("", response_model=RoleResponse, status_code=201)
async def create_role(
    data: RoleCreate,
    _: User = Depends(require_permission(Permission.ROLES_CREATE)),
    db: AsyncSession = Depends(get_db),
):
    return serialize_role(await RoleService(db).create_role(data))


@router.patch("/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: UUID,
    data: RoleUpdate,
    _: User = Depends(require_permission(Permission.ROLES_EDIT)),
    db: AsyncSession = Depends(get_db),
):
    return serialize_role(await RoleService(db).update_role(role_id, data))


@router.delete("/{role_id}", response_model=MessageResponse)
async def delete_role(
    role_id: UUID,
    _: User = Depends(require_permission(Permission.ROLES_DELETE)),
    db: AsyncSession = Depends(get_db),
):
    await RoleService(db).delete_role(role_id)
    return MessageResponse(message="Role deleted")
