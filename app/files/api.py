import logging
from typing import List

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from app.auth.dependencies import get_current_user
from app.auth.models import User
from app.auth.permissions import Permission, require_permission
from app.auth.schemas import UserResponse
from app.common.side_effects import run_side_effect
from app.db.session import get_db
from app.files.schemas import FileNode, FolderCreate, FolderResponse
from app.files.storage import S3Storage, get_storage
from app.utils.avatar import generate_default_avatar_url

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/files", tags=["files"])

ALLOWED_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}
MAX_FILE_SIZE = 5 * 1024 * 1024  # 5MB


def validate_image_file(file: UploadFile) -> str:
    """Check name and content type of an uploaded image; return its extension."""
    if not file.filename or "." not in file.filename:
        raise HTTPException(status_code=400, detail="File name is missing an extension")

    ext = file.filename.rsplit(".", 1)[-1].lower()
    if ext not in ALLOWED_EXTENSIONS:
        raise HTTPException(
            status_code=400,
            detail=f"Extension not allowed. Allowed extensions: {', '.join(sorted(ALLOWED_EXTENSIONS))}",
        )

    if not file.content_type or not file.content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="File must be an image")
    return ext


def profile_photo_prefix(user_id) -> str:
    return f"users/{user_id}/profile-photo"


# ===============================
# PROFILE PHOTO
# ===============================
@router.post("/profile-photo", response_model=UserResponse)
async def upload_profile_photo(
    file: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: S3Storage = Depends(get_storage),
):
    ext = validate_image_file(file)
    content = await file.read()
    if len(content) > MAX_FILE_SIZE:
        raise HTTPException(status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, detail="File is too large")

    key = f"{profile_photo_prefix(current_user.id)}.{ext}"
    url = await run_in_threadpool(storage.upload_file, content, key, file.content_type)

    current_user.avatar = url
    await db.commit()
    await db.refresh(current_user)
    logger.info(f"Profile photo updated: user_id={current_user.id}, key={key}")
    # A previous photo with another extension lives under a different key
    await run_side_effect(
        "stale profile photo cleanup",
        lambda: run_in_threadpool(storage.delete_folder, profile_photo_prefix(current_user.id), keep=key),
    )
    return current_user


@router.delete("/profile-photo", response_model=UserResponse)
async def delete_profile_photo(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    storage: S3Storage = Depends(get_storage),
):
    # The stored extension is unknown, so drop every object under the photo prefix
    removed = await run_in_threadpool(storage.delete_folder, profile_photo_prefix(current_user.id))

    current_user.avatar = generate_default_avatar_url(current_user.first_name, current_user.last_name)
    await db.commit()
    await db.refresh(current_user)
    logger.info(f"Profile photo removed: user_id={current_user.id}, objects={removed}")
    return current_user


# ===============================
# FILE MANAGER (admin)
# ===============================
@router.get("/tree", response_model=List[FileNode])
async def get_file_tree(
    prefix: str = Query("", description="Folder to start from"),
    _: User = Depends(require_permission(Permission.FILESYSTEM_VIEW)),
    storage: S3Storage = Depends(get_storage),
):
    return await run_in_threadpool(storage.get_file_tree, prefix)


@router.post("/folders", response_model=FolderResponse, status_code=status.HTTP_201_CREATED)
async def create_folder(
    data: FolderCreate,
    _: User = Depends(require_permission(Permission.FILESYSTEM_VIEW)),
    storage: S3Storage = Depends(get_storage),
):
    folder = await run_in_threadpool(storage.create_folder, data.path)
    return FolderResponse(path=folder)
