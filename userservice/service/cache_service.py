import threading
import time
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar
from cachetools import TTLCache

from core.config import Settings
from core.logger import get_logger

logger = get_logger("cache")

V = TypeVar("V")

# 캐시 네임스페이스: 무효화 단위
USER_BY_ID = "user-by-id"
USER_BY_USERNAME = "user-by-username"
USER_EXISTS_USERNAME = "user-exists-username"
USER_EXISTS_EMAIL = "user-exists-email"
IMAGE_LIST_BY_OWNER = "image-list-by-owner"
IMAGE_BY_ID = "image-by-id"
IMAGE_BY_EXTERNAL_ID = "image-by-external-id"
TOKEN_VALIDITY = "token-validity"
TOKEN_SUBJECT = "token-subject"

USER_NAMESPACES = (USER_BY_ID, USER_BY_USERNAME, USER_EXISTS_USERNAME, USER_EXISTS_EMAIL)
IMAGE_NAMESPACES = (IMAGE_LIST_BY_OWNER, IMAGE_BY_ID, IMAGE_BY_EXTERNAL_ID)
TOKEN_NAMESPACES = (TOKEN_VALIDITY, TOKEN_SUBJECT)
ALL_NAMESPACES = USER_NAMESPACES + IMAGE_NAMESPACES + TOKEN_NAMESPACES


class _Entry:
    __slots__ = ("value", "last_access")

    def __init__(self, value, last_access: float):
        self.value = value
        self.last_access = last_access


class _NamespaceCache(TTLCache):
    """TTLCache(쓰기 후 만료 + LRU) + 통계 카운터"""

    def __init__(self, maxsize: int, ttl: float, timer: Callable[[], float]):
        super().__init__(maxsize=maxsize, ttl=ttl, timer=timer)
        self.hits = 0
        self.misses = 0
        self.evictions = 0
        self.load_count = 0
        self.total_load_time = 0.0

    def popitem(self):
        # 용량 초과로 LRU 항목이 밀려날 때만 호출됨
        key, value = super().popitem()
        self.evictions += 1
        return key, value


class ResponseCache:
    """
    프로세스 로컬 응답 캐시 (read-through)

    - get(namespace, key, compute): 히트면 캐시 값, 미스면 compute() 결과 저장 후 반환
    - 만료: 쓰기 후 expire_after_write 초, 마지막 접근 후 expire_after_access 초
    - 용량: 네임스페이스별 max_size (초과 시 LRU 제거)
    - enabled=False면 항상 compute(): 캐시가 없어도 결과는 동일해야 함
    """

    def __init__(self, max_size: int = 10_000, expire_after_write: float = 1800,
                 expire_after_access: float = 600, enabled: bool = True,
                 timer: Callable[[], float] = time.monotonic):
        self.max_size = max_size
        self.expire_after_write = expire_after_write
        self.expire_after_access = expire_after_access
        self.enabled = enabled
        self.timer = timer
        self._lock = threading.Lock()
        self._caches: dict[str, _NamespaceCache] = {}
        for name in ALL_NAMESPACES:
            self._namespace(name)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ResponseCache":
        return cls(
            max_size=settings.cache_max_size,
            expire_after_write=settings.cache_expire_after_write_seconds,
            expire_after_access=settings.cache_expire_after_access_seconds,
            enabled=settings.cache_enabled,
        )

    def _namespace(self, name: str) -> _NamespaceCache:
        cache = self._caches.get(name)
        if cache is None:
            cache = _NamespaceCache(self.max_size, self.expire_after_write, self.timer)
            self._caches[name] = cache
        return cache

    def _lookup(self, namespace: str, key: str) -> tuple[bool, Any]:
        with self._lock:
            cache = self._namespace(namespace)
            entry = cache.get(key)
            now = self.timer()
            if entry is not None and now - entry.last_access > self.expire_after_access:
                del cache[key]
                entry = None

            if entry is None:
                cache.misses += 1
                return False, None

            entry.last_access = now
            cache.hits += 1
            return True, entry.value

    async def get(self, namespace: str, key: str, compute: Callable[[], Awaitable[V]]) -> V:
        if not self.enabled:
            return await compute()

        found, value = self._lookup(namespace, key)
        if found:
            return value

        # compute 중에는 락을 잡지 않음 (DB 호출이 길 수 있음)
        start = time.perf_counter()
        value = await compute()
        elapsed = time.perf_counter() - start

        with self._lock:
            cache = self._namespace(namespace)
            cache.load_count += 1
            cache.total_load_time += elapsed
            cache[key] = _Entry(value, self.timer())
        return value

    def put(self, namespace: str, key: str, value) -> None:
        if not self.enabled:
            return
        with self._lock:
            self._namespace(namespace)[key] = _Entry(value, self.timer())

    def invalidate(self, namespace: str, key: str | None = None) -> None:
        with self._lock:
            cache = self._namespace(namespace)
            if key is None:
                cache.clear()
            else:
                cache.pop(key, None)
        logger.debug(f"Cache invalidated: {namespace}" + (f" key={key}" if key else ""))

    def invalidate_many(self, namespaces) -> None:
        for name in namespaces:
            self.invalidate(name)

    def clear(self) -> None:
        self.invalidate_many(list(self._caches))

    def names(self) -> list[str]:
        return list(self._caches)

    def __contains__(self, name: str) -> bool:
        return name in self._caches

    def stats_for(self, name: str) -> dict:
        with self._lock:
            cache = self._caches[name]
            requests = cache.hits + cache.misses
            return {
                "name": name,
                "size": cache.currsize,
                "hitCount": cache.hits,
                "missCount": cache.misses,
                "hitRate": cache.hits / requests if requests else 1.0,
                "evictionCount": cache.evictions,
                "averageLoadPenalty": (cache.total_load_time / cache.load_count * 1000) if cache.load_count else 0.0,
            }

    def stats(self) -> dict[str, dict]:
        return {name: self.stats_for(name) for name in self.names()}
