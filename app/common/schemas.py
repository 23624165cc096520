from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base schema: snake_case attributes, camelCase on the wire."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


class MessageResponse(CamelModel):
    message: str


class UserSummary(CamelModel):
    id: UUID
    first_name: str
    last_name: Optional[str] = None
    display_name: Optional[str] = None
    avatar: Optional[str] = None
