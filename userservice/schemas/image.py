from datetime import datetime
from pydantic import Field

from models.image import ImageStatus
from schemas.common import CamelModel


class ImageResponse(CamelModel):
    id: int
    image_name: str
    original_filename: str | None = None
    imgur_id: str | None = None
    imgur_url: str | None = None
    dropbox_path: str | None = None
    title: str | None = None
    description: str | None = None
    tags: str | None = None
    file_size: int | None = None
    mime_type: str | None = None
    width: int | None = None
    height: int | None = None
    status: ImageStatus
    view_count: int = 0
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ImageUpdateRequest(CamelModel):
    """이미지 메타데이터 수정 (None인 필드는 그대로 둠)"""
    title: str | None = Field(None, max_length=200)
    description: str | None = Field(None, max_length=1000)
    tags: str | None = Field(None, max_length=500)


class DropboxFileResponse(CamelModel):
    """DB 레코드 없이 Dropbox에 직접 올리거나 나열한 파일"""
    image_name: str
    original_filename: str | None = None
    dropbox_path: str
    title: str | None = None
    description: str | None = None
    file_size: int | None = None
    mime_type: str | None = None
    updated_at: datetime | None = None
