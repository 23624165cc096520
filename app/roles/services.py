import logging
from typing import Iterable, List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.models import User
from app.auth.permissions import (
    ADMINISTRATOR_ROLE,
    ADMINISTRATOR_ROLE_NAME,
    ALL_PERMISSIONS,
    AnyRole,
    is_administrator_role,
)
from app.common.exceptions import BadRequestError, ConflictError, NotFoundError, PermissionDeniedError
from app.roles.models import Role
from app.roles.schemas import RoleCreate, RoleResponse, RoleUpdate

logger = logging.getLogger(__name__)


def serialize_role(role: AnyRole) -> RoleResponse:
    if is_administrator_role(role.id):
        return RoleResponse(
            id=role.id,
            name=role.name,
            description=role.description,
            permission_codes=list(role.permission_codes),
            is_builtin=True,
        )
    return RoleResponse.model_validate(role)


class RoleService:
    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def _validate_codes(codes: Iterable[str]) -> List[str]:
        unknown = sorted(set(codes) - set(ALL_PERMISSIONS))
        if unknown:
            raise BadRequestError(f"Unknown permission codes: {', '.join(unknown)}")
        return sorted(set(codes))

    async def _ensure_name_free(self, name: str, exclude_id=None) -> None:
        if name.strip().lower() == ADMINISTRATOR_ROLE_NAME.lower():
            raise ConflictError("Role name is reserved")
        query = select(Role).where(Role.name == name)
        if exclude_id is not None:
            query = query.where(Role.id != exclude_id)
        if (await self.db.execute(query)).scalars().first():
            raise ConflictError("Role with this name already exists")

    async def list_roles(self) -> List[AnyRole]:
        result = await self.db.execute(select(Role).order_by(Role.name))
        return [ADMINISTRATOR_ROLE, *result.scalars().all()]

    async def get_role(self, role_id) -> AnyRole:
        if is_administrator_role(role_id):
            return ADMINISTRATOR_ROLE
        role = await self.db.get(Role, role_id)
        if not role:
            raise NotFoundError("Role not found")
        return role

    async def create_role(self, data: RoleCreate) -> Role:
        await self._ensure_name_free(data.name)
        role = Role(
            name=data.name,
            description=data.description,
            permission_codes=self._validate_codes(data.permission_codes),
        )
        self.db.add(role)
        await self.db.commit()
        await self.db.refresh(role)
        logger.info(f"Role created: id={role.id}, name={role.name}")
        return role

    async def update_role(self, role_id, data: RoleUpdate) -> Role:
        if is_administrator_role(role_id):
            raise PermissionDeniedError("Built-in role cannot be modified")
        role = await self.get_role(role_id)

        if data.name is not None and data.name != role.name:
            await self._ensure_name_free(data.name, exclude_id=role.id)
            role.name = data.name
        if data.description is not None:
            role.description = data.description
        if data.permission_codes is not None:
            role.permission_codes = self._validate_codes(data.permission_codes)

        await self.db.commit()
        await self.db.refresh(role)
        logger.info(f"Role updated: id={role.id}")
        return role

    async def delete_role(self, role_id) -> None:
        if is_administrator_role(role_id):
            raise PermissionDeniedError("Built-in role cannot be deleted")
        role = await self.get_role(role_id)

        await self.db.execute(update(User).where(User.role_id == role.id).values(role_id=None))
        await self.db.delete(role)
        await self.db.commit()
        logger.info(f"Role deleted: id={role_id}")

    async def role_exists(self, role_id: Optional[object]) -> bool:
        if role_id is None or is_administrator_role(role_id):
            return True
        return await self.db.get(Role, role_id) is not None
