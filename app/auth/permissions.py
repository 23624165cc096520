from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Set, Tuple, Union
import uuid

from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.dependencies import get_current_user
from app.auth.models import User
from app.db.session import get_db
from app.roles.models import Role


class Permission(str, Enum):
    USERS_VIEW = "users.view"
    USERS_EDIT = "users.edit"
    USERS_CREATE = "users.create"
    USERS_DELETE = "users.delete"
    USERS_BLOCK = "users.block"
    ROLES_VIEW = "roles.view"
    ROLES_EDIT = "roles.edit"
    ROLES_CREATE = "roles.create"
    ROLES_DELETE = "roles.delete"
    FILESYSTEM_VIEW = "filesystem.view"
    REPORTS_VIEW = "reports.view"
    REPORTS_UPDATE = "reports.update"
    REPORTS_DELETE = "reports.delete"


ALL_PERMISSIONS = [p.value for p in Permission]

ADMINISTRATOR_ROLE_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")
ADMINISTRATOR_ROLE_NAME = "Administrator"
DEFAULT_ROLE_NAME = "User"


@dataclass(frozen=True)
class BuiltinRole:
    """A role that lives in code and is never written to the roles table."""
    id: uuid.UUID
    name: str
    description: str
    permission_codes: Tuple[str, ...] = field(default_factory=tuple)


ADMINISTRATOR_ROLE = BuiltinRole(
    id=ADMINISTRATOR_ROLE_ID,
    name=ADMINISTRATOR_ROLE_NAME,
    description="Built-in role with every permission",
)

AnyRole = Union[Role, BuiltinRole]


def is_administrator_role(role_id: Optional[uuid.UUID]) -> bool:
    return role_id == ADMINISTRATOR_ROLE_ID


def permissions_for_role(role: Optional[AnyRole]) -> Set[str]:
    if role is None:
        return set()
    codes = set(role.permission_codes or [])
    # Administrator with an empty list means "everything"
    if is_administrator_role(role.id) and not codes:
        return set(ALL_PERMISSIONS)
    return codes


async def resolve_role(db: AsyncSession, user: User) -> Optional[AnyRole]:
    if user.role_id is None:
        return None
    if is_administrator_role(user.role_id):
        return ADMINISTRATOR_ROLE
    return await db.get(Role, user.role_id)


async def get_user_permissions(db: AsyncSession, user: User) -> Set[str]:
    return permissions_for_role(await resolve_role(db, user))


def require_permission(code: Union[Permission, str]):
    """Dependency factory: the current user must hold the given permission code."""
    required = code.value if isinstance(code, Permission) else code

    async def check_permission(
        user: User = Depends(get_current_user),
        db: AsyncSession = Depends(get_db),
    ) -> User:
        if required not in await get_user_permissions(db, user):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required: {required}",
            )
        return user

    return check_permission
