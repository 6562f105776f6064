from fastapi import APIRouter, Depends

from core.dependencies import get_cache
from core.exceptions import ResourceNotFoundError
from schemas.common import ApiResponse
from service.cache_service import ResponseCache

router = APIRouter()


def _require(cache: ResponseCache, name: str) -> None:
    if name not in cache:
        raise ResourceNotFoundError.for_resource("Cache", name)


@router.get("/stats", response_model=ApiResponse[dict])
async def get_all_stats(cache: ResponseCache = Depends(get_cache)):
    """네임스페이스별 hit/miss/eviction 통계"""
    return ApiResponse.ok(cache.stats(), "Cache statistics retrieved successfully")


@router.get("/stats/{name}", response_model=ApiResponse[dict])
async def get_stats(name: str, cache: ResponseCache = Depends(get_cache)):
    _require(cache, name)
    return ApiResponse.ok(cache.stats_for(name), "Cache statistics retrieved successfully")


@router.post("/clear", response_model=ApiResponse[None])
async def clear_all(cache: ResponseCache = Depends(get_cache)):
    cache.clear()
    return ApiResponse.ok(None, "All caches cleared successfully")


@router.post("/clear/{name}", response_model=ApiResponse[None])
async def clear_one(name: str, cache: ResponseCache = Depends(get_cache)):
    _require(cache, name)
    cache.invalidate(name)
    return ApiResponse.ok(None, f"Cache cleared successfully: {name}")


@router.get("/info", response_model=ApiResponse[dict])
async def get_info(cache: ResponseCache = Depends(get_cache)):
    info = {
        "cacheNames": cache.names(),
        "cacheCount": len(cache.names()),
        "cacheType": "cachetools.TTLCache",
        "enabled": cache.enabled,
        "maxSize": cache.max_size,
        "expireAfterWriteSeconds": cache.expire_after_write,
        "expireAfterAccessSeconds": cache.expire_after_access,
    }
    return ApiResponse.ok(info, "Cache information retrieved successfully")
