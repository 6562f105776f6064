from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import BusinessError, ResourceNotFoundError
from core.logger import get_logger
from models.users import User
from repository import user_repo
from schemas.auth import UserRegistrationRequest
from schemas.user import UserResponse, UserUpdateRequest
from service.auth_service import get_password_hash
from service.cache_service import (
    ResponseCache, USER_BY_ID, USER_BY_USERNAME, USER_EXISTS_EMAIL, USER_EXISTS_USERNAME, USER_NAMESPACES,
)
from service.event_service import EventPublisher, USER_DEACTIVATED, USER_REGISTERED

logger = get_logger("user")


async def register_user(db: AsyncSession, cache: ResponseCache, events: EventPublisher | None,
                        data: UserRegistrationRequest) -> UserResponse:
    """회원가입 비즈니스 로직"""
    logger.info(f"Attempting to create user with username: {data.username}")

    # 1. 중복 확인 (빠른 실패용: 최종 보장은 unique 제약)
    if await user_repo.exists_by_username(db, data.username):
        logger.warning(f"Registration failed: username '{data.username}' already exists")
        raise BusinessError(f"Username already exists: {data.username}", "USER_ALREADY_EXISTS")

    if await user_repo.exists_by_email(db, data.email):
        logger.warning(f"Registration failed: email '{data.email}' already exists")
        raise BusinessError(f"Email already exists: {data.email}", "EMAIL_ALREADY_EXISTS")

    # 2. User 모델 객체 생성 (비밀번호 해싱!)
    user = User(
        username=data.username,
        email=data.email,
        hashed_password=get_password_hash(data.password),
        first_name=data.first_name,
        last_name=data.last_name,
        phone_number=data.phone_number,
        is_active=True,
    )

    # 3. DB 저장: 동시 가입으로 unique 제약에 걸리면 롤백 후 중복 에러
    try:
        user = await user_repo.create(db, user)
    except IntegrityError:
        await db.rollback()
        logger.warning(f"Registration race lost for username '{data.username}'")
        if not await user_repo.exists_by_username(db, data.username) \
                and await user_repo.exists_by_email(db, data.email):
            raise BusinessError(f"Email already exists: {data.email}", "EMAIL_ALREADY_EXISTS")
        raise BusinessError(f"Username already exists: {data.username}", "USER_ALREADY_EXISTS")

    cache.invalidate_many(USER_NAMESPACES)
    logger.info(f"User created successfully with ID: {user.id}")

    if events:
        events.publish_user_event(user.username, USER_REGISTERED)

    return UserResponse.model_validate(user)


async def find_user_by_id(db: AsyncSession, user_id: int) -> User:
    """엔티티 조회 (캐시 X): 없으면 404"""
    user = await user_repo.find_by_id(db, user_id)
    if not user:
        logger.warning(f"User not found with ID: {user_id}")
        raise ResourceNotFoundError.for_resource("User", user_id)
    return user


async def find_user_by_username(db: AsyncSession, username: str) -> User:
    user = await user_repo.find_by_username(db, username)
    if not user:
        logger.warning(f"User not found with username: {username}")
        raise ResourceNotFoundError.for_resource_field("User", "username", username)
    return user


async def get_user_by_id(db: AsyncSession, cache: ResponseCache, user_id: int) -> UserResponse:
    async def load() -> UserResponse:
        return UserResponse.model_validate(await find_user_by_id(db, user_id))

    return await cache.get(USER_BY_ID, str(user_id), load)


async def get_user_by_username(db: AsyncSession, cache: ResponseCache, username: str) -> UserResponse:
    async def load() -> UserResponse:
        return UserResponse.model_validate(await find_user_by_username(db, username))

    return await cache.get(USER_BY_USERNAME, username, load)


async def exists_by_username(db: AsyncSession, cache: ResponseCache, username: str) -> bool:
    async def load() -> bool:
        return await user_repo.exists_by_username(db, username)

    return await cache.get(USER_EXISTS_USERNAME, username, load)


async def exists_by_email(db: AsyncSession, cache: ResponseCache, email: str) -> bool:
    async def load() -> bool:
        return await user_repo.exists_by_email(db, email)

    return await cache.get(USER_EXISTS_EMAIL, email, load)


async def update_user(db: AsyncSession, cache: ResponseCache, user_id: int,
                      data: UserUpdateRequest) -> UserResponse:
    """이름/전화번호 수정: 빈 문자열/None은 기존 값 유지"""
    logger.info(f"Updating user with ID: {user_id}")
    user = await find_user_by_id(db, user_id)

    for field in ("first_name", "last_name", "phone_number"):
        value = getattr(data, field)
        if value is not None and value.strip():
            setattr(user, field, value.strip())

    user = await user_repo.save(db, user)
    cache.invalidate_many(USER_NAMESPACES)

    logger.info(f"User updated successfully with ID: {user.id}")
    return UserResponse.model_validate(user)


async def deactivate_user(db: AsyncSession, cache: ResponseCache, events: EventPublisher | None,
                          user_id: int) -> None:
    """소프트 삭제: 레코드는 남기고 is_active만 False"""
    logger.info(f"Deactivating user with ID: {user_id}")
    user = await find_user_by_id(db, user_id)

    user.is_active = False
    await user_repo.save(db, user)
    cache.invalidate_many(USER_NAMESPACES)

    logger.info(f"User deactivated successfully with ID: {user_id}")
    if events:
        events.publish_user_event(user.username, USER_DEACTIVATED)
