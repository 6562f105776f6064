from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.dependencies import get_cache, get_current_username, get_event_publisher
from schemas.common import ApiResponse
from schemas.user import UserResponse, UserUpdateRequest
from service import user_service
from service.cache_service import ResponseCache
from service.event_service import EventPublisher

router = APIRouter()


@router.get("/exists/username/{username}", response_model=ApiResponse[bool])
async def check_username_exists(
    username: str,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
):
    """아이디 사용 여부 확인 (인증 불필요)"""
    exists = await user_service.exists_by_username(db, cache, username)
    return ApiResponse.ok(exists, "Username availability checked")


@router.get("/exists/email/{email}", response_model=ApiResponse[bool])
async def check_email_exists(
    email: str,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
):
    """이메일 사용 여부 확인 (인증 불필요)"""
    exists = await user_service.exists_by_email(db, cache, email)
    return ApiResponse.ok(exists, "Email availability checked")


@router.get("/username/{username}", response_model=ApiResponse[UserResponse])
async def get_user_by_username(
    username: str,
    current_username: str = Depends(get_current_username),
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
):
    user = await user_service.get_user_by_username(db, cache, username)
    return ApiResponse.ok(user, "User retrieved successfully")


@router.get("/{user_id}", response_model=ApiResponse[UserResponse])
async def get_user(
    user_id: int,
    current_username: str = Depends(get_current_username),
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
):
    user = await user_service.get_user_by_id(db, cache, user_id)
    return ApiResponse.ok(user, "User retrieved successfully")


@router.put("/{user_id}", response_model=ApiResponse[UserResponse])
async def update_user(
    user_id: int,
    data: UserUpdateRequest,
    current_username: str = Depends(get_current_username),
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
):
    """이름/전화번호 수정"""
    user = await user_service.update_user(db, cache, user_id, data)
    return ApiResponse.ok(user, "User updated successfully")


@router.delete("/{user_id}", response_model=ApiResponse[None])
async def deactivate_user(
    user_id: int,
    current_username: str = Depends(get_current_username),
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    events: EventPublisher = Depends(get_event_publisher),
):
    """계정 비활성화 (소프트 삭제)"""
    await user_service.deactivate_user(db, cache, events, user_id)
    return ApiResponse.ok(None, "User deactivated successfully")
