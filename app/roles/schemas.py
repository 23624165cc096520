from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import Field

from app.common.schemas import CamelModel


class RoleCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    permission_codes: List[str] = Field(default_factory=list)


class RoleUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = None
    permission_codes: Optional[List[str]] = None


class RoleResponse(CamelModel):
    id: UUID
    name: str
    description: Optional[str] = None
    permission_codes: List[str] = Field(default_factory=list)
    is_builtin: bool = False
    created_at: Optional[datetime] = None
