from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from core.database import get_db
from core.dependencies import get_cache, get_event_publisher
from core.logger import get_logger
from schemas.auth import LoginRequest, LoginResponse, UserRegistrationRequest
from schemas.common import ApiResponse
from schemas.user import UserResponse
from service import auth_service, user_service
from service.cache_service import ResponseCache
from service.event_service import EventPublisher

logger = get_logger("router.auth")

router = APIRouter()


@router.post("/register", response_model=ApiResponse[UserResponse], status_code=status.HTTP_201_CREATED)
async def register(
    data: UserRegistrationRequest,
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    events: EventPublisher = Depends(get_event_publisher),
):
    """새로운 사용자를 등록합니다."""
    logger.info(f"Registration attempt for user: {data.username}")
    user = await user_service.register_user(db, cache, events, data)
    return ApiResponse.ok(user, "User registered successfully")


@router.post("/login", response_model=ApiResponse[LoginResponse])
async def login(data: LoginRequest, db: AsyncSession = Depends(get_db)):
    """사용자 자격 증명을 확인하고 JWT 액세스 토큰을 반환합니다."""
    result = await auth_service.authenticate(db, data.username, data.password)
    return ApiResponse.ok(result, "Login successful")


@router.post("/validate", response_model=ApiResponse[bool])
async def validate_token(
    token: str = Query(..., description="검증할 JWT"),
    cache: ResponseCache = Depends(get_cache),
):
    """토큰 유효성 확인 (서명 + 만료)"""
    is_valid = await auth_service.validate_token(cache, token)
    return ApiResponse.ok(is_valid, "Token validation completed")
