import os
import uuid
from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.dependencies import get_cache, get_current_username, get_dropbox
from core.logger import get_logger
from schemas.common import ApiResponse
from schemas.image import DropboxFileResponse
from service import user_service
from service.cache_service import ResponseCache
from service.dropbox_client import DropboxClient

logger = get_logger("router.dropbox")

# Dropbox를 직접 다루는 관리용 API: DB에는 기록하지 않음
router = APIRouter(dependencies=[Depends(get_current_username)])


def _attachment(data: bytes, filename: str) -> Response:
    return Response(
        content=data,
        media_type="application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/upload/{user_id}", response_model=ApiResponse[DropboxFileResponse],
             status_code=status.HTTP_201_CREATED)
async def upload_to_dropbox(
    user_id: int,
    file: UploadFile = File(...),
    title: str | None = Form(None),
    description: str | None = Form(None),
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    dropbox: DropboxClient = Depends(get_dropbox),
):
    """Imgur를 거치지 않고 Dropbox에 바로 업로드"""
    await user_service.get_user_by_id(db, cache, user_id)

    data = await file.read()
    unique_name = f"{uuid.uuid4()}{os.path.splitext(file.filename or '')[1]}"
    path = await dropbox.upload_image(user_id, data, unique_name)

    result = DropboxFileResponse(
        image_name=unique_name,
        original_filename=file.filename,
        dropbox_path=path,
        title=title,
        description=description,
        file_size=len(data),
        mime_type=file.content_type,
    )
    return ApiResponse.ok(result, "Image uploaded successfully to Dropbox")


@router.get("/download")
async def download_from_dropbox(
    path: str = Query(..., min_length=1),
    dropbox: DropboxClient = Depends(get_dropbox),
):
    data = await dropbox.download_image(path)
    return _attachment(data, path.rsplit("/", 1)[-1] or "download")


@router.get("/images/{user_id}", response_model=ApiResponse[list[DropboxFileResponse]])
async def list_dropbox_images(
    user_id: int,
    dropbox: DropboxClient = Depends(get_dropbox),
):
    entries = await dropbox.list_user_images(user_id)
    files = [
        DropboxFileResponse(
            image_name=entry["name"],
            original_filename=entry["name"],
            dropbox_path=entry.get("path_display", entry["name"]),
            file_size=entry.get("size"),
            updated_at=entry.get("server_modified"),
        )
        for entry in entries
        if entry.get(".tag") == "file"
    ]
    return ApiResponse.ok(files, "Images retrieved successfully from Dropbox")


@router.get("/download-zip/{user_id}")
async def download_user_images_zip(
    user_id: int,
    dropbox: DropboxClient = Depends(get_dropbox),
):
    logger.info(f"Downloading ZIP file for user ID: {user_id}")
    data = await dropbox.download_user_images_as_zip(user_id)
    return _attachment(data, f"user-{user_id}-images.zip")


@router.delete("/delete", response_model=ApiResponse[bool])
async def delete_from_dropbox(
    path: str = Query(..., min_length=1),
    dropbox: DropboxClient = Depends(get_dropbox),
):
    """True = 삭제됨, False = 이미 없던 파일"""
    deleted = await dropbox.delete_image(path)
    return ApiResponse.ok(deleted, "Image deleted successfully from Dropbox")
