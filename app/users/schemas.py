from datetime import date
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from app.auth.models import Gender
from app.auth.schemas import UserResponse
from app.common.schemas import CamelModel


class UserProfileUpdate(CamelModel):
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, max_length=100)
    display_name: Optional[str] = Field(default=None, max_length=200)
    birth_date: Optional[date] = None
    gender: Optional[Gender] = None
    avatar: Optional[str] = Field(default=None, max_length=500)


class PublicUserResponse(CamelModel):
    id: UUID
    first_name: str
    last_name: Optional[str] = None
    display_name: Optional[str] = None
    avatar: Optional[str] = None
    birth_date: Optional[date] = None
    gender: Optional[str] = None


class UserListResponse(CamelModel):
    users: List[UserResponse]
    total: int
    pages: int
    page: int
    per_page: int


class BlockUserRequest(CamelModel):
    is_blocked: bool


class AssignRoleRequest(CamelModel):
    role_id: Optional[UUID] = None
