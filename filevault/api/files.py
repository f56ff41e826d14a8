from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, UploadFile, File, Query, status
from fastapi.responses import FileResponse
from pydantic import BaseModel, ConfigDict
from sqlalchemy.ext.asyncio import AsyncSession

from filevault.database import get_db
from filevault.api.deps import get_current_user, get_file_service, get_reader
from filevault.models.user import User
from filevault.services.files import FileService, FileStore


router = APIRouter()


class FileRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    filename: str
    original_name: str
    file_path: str
    file_size: int
    mime_type: str
    user_id: int
    is_public: bool
    created_at: datetime
    updated_at: datetime


class VisibilityResponse(BaseModel):
    id: int
    is_public: bool
    message: str


class MessageResponse(BaseModel):
    message: str


class StorageStatsResponse(BaseModel):
    total_files: int
    total_size_bytes: int
    public_files: int


@router.post("/upload", response_model=FileRecordResponse, status_code=status.HTTP_201_CREATED)
async def upload_file(
    file: Optional[UploadFile] = File(default=None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    files: FileService = Depends(get_file_service),
):
    return await files.upload(db, current_user, file)


@router.get("", response_model=list[FileRecordResponse])
async def list_files(
    sort: str = Query(default="date", pattern="^(date|name|size)$"),
    order: str = Query(default="desc", pattern="^(asc|desc)$"),
    kind: str = Query(default="all", alias="type", pattern="^(all|image|document|other)$"),
    search: Optional[str] = Query(default=None, max_length=255),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return await FileStore.list_by_owner(
        db, current_user.id, sort=sort, order=order, kind=kind, search=search
    )


@router.get("/stats", response_model=StorageStatsResponse)
async def get_storage_stats(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return StorageStatsResponse(**await FileStore.stats_by_owner(db, current_user.id))


@router.get("/{file_id}", response_model=FileRecordResponse)
async def get_file(
    file_id: int,
    db: AsyncSession = Depends(get_db),
    requester: Optional[User] = Depends(get_reader),
    files: FileService = Depends(get_file_service),
):
    return await files.retrieve(db, requester, file_id)


@router.get("/{file_id}/download")
async def download_file(
    file_id: int,
    db: AsyncSession = Depends(get_db),
    requester: Optional[User] = Depends(get_reader),
    files: FileService = Depends(get_file_service),
):
    db_file = await files.open_download(db, requester, file_id)
    return FileResponse(
        db_file.file_path,
        media_type=db_file.mime_type,
        filename=db_file.original_name,
    )


@router.delete("/{file_id}", response_model=MessageResponse)
async def delete_file(
    file_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    files: FileService = Depends(get_file_service),
):
    await files.delete(db, current_user, file_id)
    return MessageResponse(message="File deleted successfully")


@router.patch("/{file_id}/toggle-public", response_model=VisibilityResponse)
async def toggle_file_public(
    file_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
    files: FileService = Depends(get_file_service),
):
    db_file = await files.toggle_public(db, current_user, file_id)
    return VisibilityResponse(
        id=db_file.id,
        is_public=db_file.is_public,
        message=f"File is now {'public' if db_file.is_public else 'private'}",
    )
