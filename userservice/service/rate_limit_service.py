from enum import Enum
from limits import RateLimitItem, parse
from limits.aio.storage import MemoryStorage
from limits.aio.strategies import FixedWindowRateLimiter

from core.config import Settings
from core.logger import get_logger

logger = get_logger("rate_limit")

"""
클라이언트별 요청 제한 (quota class별 독립 버킷)

버킷 동작:
  - 첫 요청 시점에 버킷 생성, 용량(N)만큼 허용
  - 윈도우(예: 1분)가 끝나면 용량 전체가 한 번에 다시 채워짐
  - 저장소는 프로세스 메모리: 재시작하면 초기화 (best-effort)

저장소: limits MemoryStorage (인스턴스 로컬, 만료된 키는 자동 정리)
"""


class QuotaClass(str, Enum):
    API = "API"
    AUTH = "AUTH"
    IMAGE_UPLOAD = "IMAGE_UPLOAD"


class RateLimitService:

    def __init__(self, settings: Settings):
        self.storage = MemoryStorage()
        self.limiter = FixedWindowRateLimiter(self.storage)
        self.limits: dict[QuotaClass, RateLimitItem] = {
            QuotaClass.API: parse(settings.rate_limit_api),
            QuotaClass.AUTH: parse(settings.rate_limit_auth),
            QuotaClass.IMAGE_UPLOAD: parse(settings.rate_limit_image_upload),
        }

    def limit_for(self, quota_class: QuotaClass) -> int:
        return self.limits[quota_class].amount

    async def admit(self, key: str, quota_class: QuotaClass) -> tuple[bool, int]:
        """
        토큰 1개 소비 시도
        Returns:
            (허용 여부, 남은 토큰 수)
        """
        item = self.limits[quota_class]
        allowed = await self.limiter.hit(item, key)
        stats = await self.limiter.get_window_stats(item, key)

        if not allowed:
            logger.warning(f"Rate limit exceeded for key: {key} with quota class: {quota_class.value}")

        return allowed, max(stats.remaining, 0)

    async def available_tokens(self, key: str, quota_class: QuotaClass) -> int:
        stats = await self.limiter.get_window_stats(self.limits[quota_class], key)
        return max(stats.remaining, 0)

    async def reset(self) -> None:
        await self.storage.reset()
