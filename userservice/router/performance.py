import time
from fastapi import APIRouter, Depends

from core.dependencies import get_monitor
from core.metrics import PerformanceMonitor
from schemas.common import ApiResponse

router = APIRouter()


@router.get("/metrics", response_model=ApiResponse[dict])
async def get_metrics(monitor: PerformanceMonitor = Depends(get_monitor)):
    """실시간 메트릭 조회: RPM, 에러율, 상태코드별 분포, 느린 요청 Top 5"""
    return ApiResponse.ok(monitor.summary(), "Performance metrics retrieved successfully")


@router.post("/reset", response_model=ApiResponse[None])
async def reset_metrics(monitor: PerformanceMonitor = Depends(get_monitor)):
    monitor.reset()
    return ApiResponse.ok(None, "Performance counters reset successfully")


@router.get("/health")
async def health():
    # rate limit 대상 아님, envelope 없이 그대로 반환
    return {"status": "UP", "timestamp": str(int(time.time() * 1000))}
