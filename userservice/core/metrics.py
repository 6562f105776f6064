import time
from collections import defaultdict
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response
from core.handlers import unhandled_exception_handler
from core.logger import get_logger, generate_correlation_id, correlation_id_var, CORRELATION_ID_HEADER

logger = get_logger("metrics")


class PerformanceMonitor:
    """
    인메모리 성능 지표

    - request_count / error_count: RPM, 에러율 계산용 전역 카운터
      (rate limit 미들웨어가 모든 요청마다 증가시킴)
    - by_status / by_path / slowest: 요청 미들웨어가 집계하는 상세 분포
    """

    def __init__(self):
        self.reset()

    def reset(self):
        self.request_count = 0
        self.error_count = 0
        self.last_reset = time.time()
        self.by_status = defaultdict(int)
        self.by_path = defaultdict(int)
        self.total_duration_ms = 0.0
        self.recorded = 0
        self.slowest = []

    def increment_request_count(self):
        self.request_count += 1

    def increment_error_count(self):
        self.error_count += 1

    def _elapsed_minutes(self) -> int:
        return int((time.time() - self.last_reset) // 60)

    def current_rpm(self) -> float:
        # 1분이 지나기 전에는 0 (분 단위로만 계산)
        minutes = self._elapsed_minutes()
        if minutes == 0:
            return 0.0
        return self.request_count / minutes

    def error_rate(self) -> float:
        if not self.request_count:
            return 0.0
        return self.error_count / self.request_count * 100

    def performance_stats(self) -> str:
        return (
            f"Performance Stats - RPM: {self.current_rpm():.2f}, "
            f"Total Requests: {self.request_count}, Errors: {self.error_count}, "
            f"Error Rate: {self.error_rate():.2f}%"
        )

    def record(self, method: str, path: str, status: int, duration_ms: float):
        self.recorded += 1
        self.by_status[status] += 1
        self.by_path[f"{method} {path}"] += 1
        self.total_duration_ms += duration_ms

        # 가장 느린 요청 Top 5 유지
        self.slowest.append({
            "duration_ms": round(duration_ms, 1),
            "method": method,
            "path": path,
            "status": status,
        })
        self.slowest.sort(key=lambda x: x["duration_ms"], reverse=True)
        self.slowest = self.slowest[:5]

    def summary(self) -> dict:
        avg = round(self.total_duration_ms / self.recorded, 1) if self.recorded else 0
        return {
            "currentRPM": self.current_rpm(),
            "stats": self.performance_stats(),
            "totalRequests": self.request_count,
            "errorCount": self.error_count,
            "errorRate": round(self.error_rate(), 2),
            "avgResponseTimeMs": avg,
            "byStatus": {str(k): v for k, v in self.by_status.items()},
            "byPath": dict(self.by_path),
            "slowestTop5": self.slowest,
            "timestamp": int(time.time() * 1000),
        }


class RequestMetricsMiddleware(BaseHTTPMiddleware):
    """
    모든 HTTP 요청을 자동 계측하는 미들웨어

    1. correlation id 부여 (X-Correlation-ID 헤더가 있으면 재사용)
    2. 응답 시간 측정 + 메트릭 기록
    3. JSON 로그 출력
    """

    def __init__(self, app, monitor: PerformanceMonitor):
        super().__init__(app)
        self.monitor = monitor

    async def dispatch(self, request: Request, call_next) -> Response:
        correlation_id = request.headers.get(CORRELATION_ID_HEADER) or generate_correlation_id()
        token = correlation_id_var.set(correlation_id)

        start = time.perf_counter()
        try:
            try:
                response = await call_next(request)
            except Exception as exc:
                # correlation id가 살아 있는 동안 500 응답을 만들어야 body/헤더에 포함됨
                response = await unhandled_exception_handler(request, exc)
            duration_ms = (time.perf_counter() - start) * 1000

            self.monitor.record(
                method=request.method,
                path=request.url.path,
                status=response.status_code,
                duration_ms=duration_ms,
            )
            logger.info(
                f"{request.method} {request.url.path} {response.status_code} {duration_ms:.0f}ms",
                extra={"extra_data": {
                    "method": request.method,
                    "path": request.url.path,
                    "status": response.status_code,
                    "duration_ms": round(duration_ms, 1),
                }}
            )

            response.headers[CORRELATION_ID_HEADER] = correlation_id
            return response
        finally:
            correlation_id_var.reset(token)
