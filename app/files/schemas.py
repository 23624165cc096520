from typing import List, Optional

from pydantic import Field

from app.common.schemas import CamelModel


class FileNode(CamelModel):
    name: str
    path: str
    type: str  # "folder" or "file"
    size: Optional[int] = None
    url: Optional[str] = None
    children: List["FileNode"] = Field(default_factory=list)


class FolderCreate(CamelModel):
    path: str = Field(..., min_length=1, max_length=500)


class FolderResponse(CamelModel):
    path: str
