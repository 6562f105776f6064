"""
응답 캐시 테스트 (단위 + /cache API)
"""
import asyncio
import pytest

from service.cache_service import (
    ResponseCache, ALL_NAMESPACES, IMAGE_BY_ID, USER_BY_ID, USER_BY_USERNAME, USER_NAMESPACES,
)


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class Loader:
    """compute 호출 횟수를 세는 로더"""

    def __init__(self, value="v"):
        self.value = value
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        return f"{self.value}{self.calls}"


def _get(cache, namespace, key, loader):
    return asyncio.run(cache.get(namespace, key, loader))


# ===== 단위 테스트 =====

def test_9개_네임스페이스():
    cache = ResponseCache()
    assert len(ALL_NAMESPACES) == 9
    assert sorted(cache.names()) == sorted(ALL_NAMESPACES)


def test_두번째_조회는_캐시_히트():
    cache = ResponseCache()
    loader = Loader()

    assert _get(cache, USER_BY_ID, "1", loader) == "v1"
    assert _get(cache, USER_BY_ID, "1", loader) == "v1"
    assert loader.calls == 1

    stats = cache.stats_for(USER_BY_ID)
    assert stats["hitCount"] == 1
    assert stats["missCount"] == 1
    assert stats["hitRate"] == 0.5
    assert stats["size"] == 1


def test_요청이_없으면_hitRate_1():
    assert ResponseCache().stats_for(IMAGE_BY_ID)["hitRate"] == 1.0


def test_네임스페이스끼리_독립():
    cache = ResponseCache()
    _get(cache, USER_BY_ID, "1", Loader("id"))
    assert _get(cache, USER_BY_USERNAME, "1", Loader("name")) == "name1"


def test_키_단위_무효화():
    cache = ResponseCache()
    loader = Loader()
    _get(cache, USER_BY_ID, "1", loader)
    _get(cache, USER_BY_ID, "2", loader)

    cache.invalidate(USER_BY_ID, "1")

    assert _get(cache, USER_BY_ID, "1", loader) == "v3"
    assert _get(cache, USER_BY_ID, "2", loader) == "v2"


def test_네임스페이스_묶음_무효화():
    cache = ResponseCache()
    for name in USER_NAMESPACES:
        cache.put(name, "k", "old")
    cache.put(IMAGE_BY_ID, "k", "keep")

    cache.invalidate_many(USER_NAMESPACES)

    assert all(cache.stats_for(name)["size"] == 0 for name in USER_NAMESPACES)
    assert cache.stats_for(IMAGE_BY_ID)["size"] == 1


def test_쓰기_후_만료():
    clock = FakeClock()
    cache = ResponseCache(expire_after_write=30, expire_after_access=100, timer=clock)
    loader = Loader()

    _get(cache, USER_BY_ID, "1", loader)
    clock.now = 20
    _get(cache, USER_BY_ID, "1", loader)
    clock.now = 31
    assert _get(cache, USER_BY_ID, "1", loader) == "v2"


def test_마지막_접근_후_만료():
    clock = FakeClock()
    cache = ResponseCache(expire_after_write=1000, expire_after_access=10, timer=clock)
    loader = Loader()

    _get(cache, USER_BY_ID, "1", loader)
    # 계속 접근하면 유지
    for t in (8, 16, 24):
        clock.now = t
        assert _get(cache, USER_BY_ID, "1", loader) == "v1"

    clock.now = 40
    assert _get(cache, USER_BY_ID, "1", loader) == "v2"


def test_용량_초과시_LRU_제거():
    cache = ResponseCache(max_size=2)
    loader = Loader()
    _get(cache, USER_BY_ID, "a", loader)
    _get(cache, USER_BY_ID, "b", loader)
    _get(cache, USER_BY_ID, "a", loader)  # a 최근 사용
    _get(cache, USER_BY_ID, "c", loader)  # b 제거

    stats = cache.stats_for(USER_BY_ID)
    assert stats["evictionCount"] == 1
    assert stats["size"] == 2

    calls = loader.calls
    _get(cache, USER_BY_ID, "a", loader)
    assert loader.calls == calls
    _get(cache, USER_BY_ID, "b", loader)
    assert loader.calls == calls + 1


def test_비활성화하면_항상_compute():
    cache = ResponseCache(enabled=False)
    loader = Loader()
    _get(cache, USER_BY_ID, "1", loader)
    _get(cache, USER_BY_ID, "1", loader)
    cache.put(USER_BY_ID, "2", "ignored")

    assert loader.calls == 2
    assert cache.stats_for(USER_BY_ID)["size"] == 0


def test_compute_예외는_캐시하지_않음():
    cache = ResponseCache()

    async def boom():
        raise LookupError("missing")

    with pytest.raises(LookupError):
        _get(cache, USER_BY_ID, "1", boom)
    assert cache.stats_for(USER_BY_ID)["size"] == 0


# ===== /cache API =====

def test_캐시_통계_API(client, auth_user):
    headers = auth_user["headers"]
    user_id = auth_user["user"]["id"]
    client.get(f"/users/{user_id}", headers=headers)
    client.get(f"/users/{user_id}", headers=headers)

    response = client.get("/cache/stats")
    assert response.status_code == 200
    assert set(response.json()["data"]) == set(ALL_NAMESPACES)

    stats = client.get("/cache/stats/user-by-id").json()["data"]
    assert stats["name"] == "user-by-id"
    assert stats["hitCount"] == 1
    assert stats["missCount"] == 1


def test_없는_캐시는_404(client):
    response = client.get("/cache/stats/nope")
    assert response.status_code == 404
    assert response.json()["error"] == "CACHE_NOT_FOUND"
    assert client.post("/cache/clear/nope").status_code == 404


def test_캐시_비우기_API(client, auth_user):
    headers = auth_user["headers"]
    client.get(f"/users/{auth_user['user']['id']}", headers=headers)
    assert client.get("/cache/stats/user-by-id").json()["data"]["size"] == 1

    response = client.post("/cache/clear/user-by-id")
    assert response.json()["message"] == "Cache cleared successfully: user-by-id"
    assert client.get("/cache/stats/user-by-id").json()["data"]["size"] == 0

    client.get(f"/users/{auth_user['user']['id']}", headers=headers)
    assert client.post("/cache/clear").status_code == 200
    stats = client.get("/cache/stats").json()["data"]
    assert all(entry["size"] == 0 for entry in stats.values())


def test_캐시_정보_API(client):
    info = client.get("/cache/info").json()["data"]
    assert info["cacheCount"] == 9
    assert info["enabled"] is True
    assert info["maxSize"] == 10_000
    assert info["expireAfterWriteSeconds"] == 1800
    assert info["expireAfterAccessSeconds"] == 600
