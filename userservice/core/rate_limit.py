from fastapi import status
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from core.metrics import PerformanceMonitor
from schemas.common import ErrorResponse
from service.rate_limit_service import QuotaClass, RateLimitService

HEALTH_PATH = "/performance/health"


def client_address(request: Request) -> str:
    """X-Forwarded-For 첫 번째 값 → X-Real-IP → 소켓 주소 순서"""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return request.client.host if request.client else "unknown"


def quota_class_for(path: str) -> QuotaClass:
    if "/auth/" in path:
        return QuotaClass.AUTH
    if "/images/upload" in path or "/dropbox/upload" in path:
        return QuotaClass.IMAGE_UPLOAD
    return QuotaClass.API


class RateLimitMiddleware(BaseHTTPMiddleware):
    """
    요청 제한 미들웨어

    - 모든 요청은 전역 요청 카운터를 증가시킴 (RPM 계산용)
    - /performance/health 는 제한 없이 통과
    - 키 = "클라이언트 주소:quota class" → 클라이언트별/클래스별 독립 버킷
    - 초과 시 429 응답, 핸들러는 실행되지 않음 (부수효과 없음)
    """

    def __init__(self, app, limiter: RateLimitService, monitor: PerformanceMonitor, enabled: bool = True):
        super().__init__(app)
        self.limiter = limiter
        self.monitor = monitor
        self.enabled = enabled

    async def dispatch(self, request: Request, call_next) -> Response:
        self.monitor.increment_request_count()

        path = request.url.path
        if not self.enabled or HEALTH_PATH in path:
            return await call_next(request)

        quota_class = quota_class_for(path)
        key = f"{client_address(request)}:{quota_class.value}"
        allowed, remaining = await self.limiter.admit(key, quota_class)

        headers = {
            "X-RateLimit-Remaining": str(remaining),
            "X-RateLimit-Limit": str(self.limiter.limit_for(quota_class)),
        }

        if not allowed:
            self.monitor.increment_error_count()
            body = ErrorResponse(
                status=status.HTTP_429_TOO_MANY_REQUESTS,
                error="RATE_LIMIT_EXCEEDED",
                message="Too many requests",
                path=path,
                method=request.method,
            )
            return JSONResponse(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                content=body.to_body(),
                headers=headers,
            )

        response = await call_next(request)
        response.headers.update(headers)
        return response
