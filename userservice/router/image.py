from fastapi import APIRouter, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.dependencies import get_cache, get_current_username, get_image_service
from schemas.common import ApiResponse
from schemas.image import ImageResponse, ImageUpdateRequest
from service import user_service
from service.cache_service import ResponseCache
from service.image_service import ImageService, ImageUpload

router = APIRouter()

# username 쿼리 파라미터를 생략하면 토큰의 사용자로 조회
OwnerQuery = Query(None, description="이미지 소유자 (기본값: 로그인한 사용자)")


@router.post("/upload/{user_id}", response_model=ApiResponse[ImageResponse], status_code=status.HTTP_201_CREATED)
async def upload_image(
    user_id: int,
    file: UploadFile = File(...),
    title: str | None = Form(None),
    description: str | None = Form(None),
    current_username: str = Depends(get_current_username),
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    service: ImageService = Depends(get_image_service),
):
    """이미지 업로드 (Imgur 실패 시 Dropbox로 대체)"""
    owner = await user_service.get_user_by_id(db, cache, user_id)
    upload = ImageUpload(
        data=await file.read(),
        filename=file.filename,
        mime_type=file.content_type,
        title=title,
        description=description,
    )
    image = await service.upload_image(owner.username, upload)
    return ApiResponse.ok(image, "Image uploaded successfully")


@router.get("/user/{user_id}", response_model=ApiResponse[list[ImageResponse]])
async def get_user_images(
    user_id: int,
    current_username: str = Depends(get_current_username),
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    service: ImageService = Depends(get_image_service),
):
    """사용자의 ACTIVE 이미지 목록"""
    owner = await user_service.get_user_by_id(db, cache, user_id)
    images = await service.get_user_images(owner.username)
    return ApiResponse.ok(images, "Images retrieved successfully")


@router.get("/search", response_model=ApiResponse[list[ImageResponse]])
async def search_images(
    name: str = Query(..., min_length=1),
    username: str | None = OwnerQuery,
    current_username: str = Depends(get_current_username),
    service: ImageService = Depends(get_image_service),
):
    """저장 이름 부분 일치 검색"""
    images = await service.search_images_by_name(name, username or current_username)
    return ApiResponse.ok(images, "Images retrieved successfully")


@router.get("/count", response_model=ApiResponse[int])
async def count_images(
    username: str | None = OwnerQuery,
    current_username: str = Depends(get_current_username),
    service: ImageService = Depends(get_image_service),
):
    count = await service.get_user_image_count(username or current_username)
    return ApiResponse.ok(count, "Image count retrieved successfully")


@router.get("/external/{external_id:path}", response_model=ApiResponse[ImageResponse])
async def get_image_by_external_id(
    external_id: str,
    username: str | None = OwnerQuery,
    current_username: str = Depends(get_current_username),
    service: ImageService = Depends(get_image_service),
):
    """Imgur id 또는 Dropbox 경로로 조회"""
    image = await service.get_image_by_external_id(external_id, username or current_username)
    return ApiResponse.ok(image, "Image retrieved successfully")


@router.delete("/external/{external_id:path}", response_model=ApiResponse[None])
async def delete_image_by_external_id(
    external_id: str,
    username: str | None = OwnerQuery,
    current_username: str = Depends(get_current_username),
    service: ImageService = Depends(get_image_service),
):
    await service.delete_image_by_external_id(external_id, username or current_username)
    return ApiResponse.ok(None, "Image deleted successfully")


@router.get("/{image_id}", response_model=ApiResponse[ImageResponse])
async def get_image(
    image_id: int,
    username: str | None = OwnerQuery,
    current_username: str = Depends(get_current_username),
    service: ImageService = Depends(get_image_service),
):
    """단건 조회: 조회수 증가"""
    image = await service.get_image_by_id(image_id, username or current_username)
    return ApiResponse.ok(image, "Image retrieved successfully")


@router.put("/{image_id}", response_model=ApiResponse[ImageResponse])
async def update_image(
    image_id: int,
    data: ImageUpdateRequest,
    username: str | None = OwnerQuery,
    current_username: str = Depends(get_current_username),
    service: ImageService = Depends(get_image_service),
):
    """제목/설명/태그 수정"""
    image = await service.update_image(image_id, username or current_username, data)
    return ApiResponse.ok(image, "Image updated successfully")


@router.delete("/{image_id}", response_model=ApiResponse[None])
async def delete_image(
    image_id: int,
    username: str | None = OwnerQuery,
    current_username: str = Depends(get_current_username),
    service: ImageService = Depends(get_image_service),
):
    """소프트 삭제 (status → DELETED)"""
    await service.delete_image(image_id, username or current_username)
    return ApiResponse.ok(None, "Image deleted successfully")
