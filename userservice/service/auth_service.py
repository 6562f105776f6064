import time
import bcrypt
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import AuthenticationError
from core.logger import get_logger
from core.security import token_service
from repository import user_repo
from schemas.auth import LoginResponse
from schemas.user import UserResponse
from service.cache_service import ResponseCache, TOKEN_SUBJECT, TOKEN_VALIDITY

logger = get_logger("auth")


BCRYPT_MAX_BYTES = 72


def _password_bytes(password: str) -> bytes:
    # bcrypt는 72바이트까지만 사용 (초과분은 잘라서 해싱/검증 모두 동일하게)
    return password.encode('utf-8')[:BCRYPT_MAX_BYTES]


def get_password_hash(password: str) -> str:
    """비밀번호 평문을 bcrypt로 해싱"""
    salt = bcrypt.gensalt()
    hashed_password = bcrypt.hashpw(_password_bytes(password), salt)
    return hashed_password.decode('utf-8')


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """입력받은 평문과 DB의 해시가 일치하는지 검증"""
    try:
        return bcrypt.checkpw(
            _password_bytes(plain_password),
            hashed_password.encode('utf-8')
        )
    except ValueError:
        return False


async def authenticate(db: AsyncSession, username: str, password: str) -> LoginResponse:
    """
    로그인 검증

    실패 사유별 error code:
      - 존재하지 않는 사용자 → AUTHENTICATION_ERROR
      - 비활성 계정 → USER_NOT_ACTIVE
      - 비밀번호 불일치 → INVALID_CREDENTIALS
    """
    logger.info(f"Authenticating user: {username}")

    user = await user_repo.find_by_username(db, username)
    if not user:
        logger.warning(f"Authentication failed: user '{username}' not found")
        raise AuthenticationError("Authentication failed", "AUTHENTICATION_ERROR")

    if not user.is_active:
        logger.warning(f"Authentication failed: user '{username}' is not active")
        raise AuthenticationError("User account is not active", "USER_NOT_ACTIVE")

    if not verify_password(password, user.hashed_password):
        logger.warning(f"Authentication failed: invalid password for user '{username}'")
        raise AuthenticationError("Invalid username or password", "INVALID_CREDENTIALS")

    access_token = token_service.issue(user.username)
    logger.info(f"User '{username}' authenticated successfully")

    return LoginResponse(
        access_token=access_token,
        expires_in=token_service.expires_in_seconds,
        user=UserResponse.model_validate(user),
    )


async def validate_token(cache: ResponseCache, token: str | None) -> bool:
    """
    토큰 유효성 (캐시)
    캐시에는 만료 시각(epoch 초)을 저장하고 읽을 때마다 현재 시각과 비교
    → 캐시된 토큰도 exp 이후에는 무효
    """
    if not token:
        return False

    async def load_expiry() -> float:
        if not token_service.validate(token):
            return 0.0
        expires_at = token_service.expires_at(token)
        return expires_at.timestamp() if expires_at else 0.0

    expiry = await cache.get(TOKEN_VALIDITY, token, load_expiry)
    return expiry > time.time()


async def get_username_from_token(cache: ResponseCache, token: str | None) -> str | None:
    if not await validate_token(cache, token):
        return None

    async def load_subject() -> str | None:
        return token_service.subject_of(token)

    return await cache.get(TOKEN_SUBJECT, token, load_subject)
