"""
pytest 공통 설정

- DB: 테스트 전용 SQLite 파일 (aiosqlite), 테스트마다 스키마 재생성
- 외부 이미지 호스트: httpx.MockTransport 로 흉내 (실제 클라이언트 코드는 그대로 실행)
"""
import sys
import os
import asyncio
import json
import uuid
from contextlib import contextmanager
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# settings는 import 시점에 만들어지므로 프로젝트 모듈보다 먼저 설정
TEST_DB_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), "test.db")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["EVENTS_ENABLED"] = "false"
os.environ["IMGUR_CLIENT_ID"] = "test-client-id"
os.environ["DROPBOX_ACCESS_TOKEN"] = "test-dropbox-token"
os.environ["DROPBOX_REFRESH_TOKEN"] = ""

import httpx
import pytest
from starlette.testclient import TestClient
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool

from core.database import Base, get_db
from core.config import settings
from main import create_app
import models.users  # noqa: F401
import models.image  # noqa: F401

# ===== NullPool 엔진: 매 요청마다 새 커넥션 (테스트 전용) =====
test_engine = create_async_engine(settings.database_url, poolclass=NullPool)
test_session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


async def override_get_db():
    async with test_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


async def _reset_schema():
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


@pytest.fixture(autouse=True)
def reset_db():
    asyncio.run(_reset_schema())
    yield


# ===== 외부 호스트 가짜 구현 =====

class FakeImgur:
    """Imgur API v3 흉내: fail=True면 모든 호출이 500"""

    def __init__(self):
        self.fail = False
        self.uploads: list[dict] = []
        self.deleted: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if self.fail:
            return httpx.Response(500, json={"success": False, "status": 500})

        if request.method == "POST" and request.url.path.endswith("/image"):
            n = len(self.uploads) + 1
            form = dict(httpx.QueryParams(request.content.decode()))
            self.uploads.append(form)
            image_id = f"img{n}"
            return httpx.Response(200, json={
                "success": True,
                "status": 200,
                "data": {
                    "id": image_id,
                    "deletehash": f"del{n}",
                    "link": f"https://i.imgur.com/{image_id}.png",
                    "size": 1234,
                    "type": "image/png",
                    "width": 64,
                    "height": 48,
                },
            })

        if request.method == "DELETE":
            self.deleted.append(request.url.path.rsplit("/", 1)[-1])
            return httpx.Response(200, json={"success": True, "status": 200, "data": True})

        if request.method == "GET":
            image_id = request.url.path.rsplit("/", 1)[-1]
            return httpx.Response(200, json={"success": True, "status": 200, "data": {"id": image_id}})

        return httpx.Response(404, json={"success": False, "status": 404})


class FakeDropbox:
    """Dropbox HTTP API v2 흉내 (폴더/파일을 메모리에 보관)"""

    def __init__(self):
        self.fail = False
        self.files: dict[str, bytes] = {}
        self.folders: set[str] = set()
        self.created_folders: list[str] = []

    @staticmethod
    def _conflict(summary: str) -> httpx.Response:
        return httpx.Response(409, json={"error_summary": summary, "error": {".tag": summary.split("/")[0]}})

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if self.fail:
            return httpx.Response(500, text="dropbox unavailable")

        path = request.url.path
        if request.url.host.startswith("content."):
            args = json.loads(request.headers["Dropbox-API-Arg"])
            target = args["path"]
            if path.endswith("/files/upload"):
                self.files[target] = request.content
                return httpx.Response(200, json={
                    "name": target.rsplit("/", 1)[-1], "path_display": target, "size": len(request.content),
                })
            if path.endswith("/files/download"):
                if target not in self.files:
                    return self._conflict("path/not_found/..")
                return httpx.Response(200, content=self.files[target])
            return httpx.Response(404)

        body = json.loads(request.content or b"{}")
        target = body.get("path")

        if path.endswith("/files/get_metadata"):
            if target in self.folders:
                return httpx.Response(200, json={".tag": "folder", "path_display": target})
            if target in self.files:
                return httpx.Response(200, json={".tag": "file", "path_display": target})
            return self._conflict("path/not_found/..")

        if path.endswith("/files/create_folder_v2"):
            if target in self.files:
                return self._conflict("path/conflict/file/..")
            if target in self.folders:
                return self._conflict("path/conflict/folder/..")
            self.folders.add(target)
            self.created_folders.append(target)
            return httpx.Response(200, json={"metadata": {"path_display": target}})

        if path.endswith("/files/delete_v2"):
            if target not in self.files:
                return self._conflict("path_lookup/not_found/..")
            del self.files[target]
            return httpx.Response(200, json={"metadata": {"path_display": target}})

        if path.endswith("/files/list_folder"):
            if target not in self.folders:
                return self._conflict("path/not_found/..")
            entries = [
                {".tag": "file", "name": p.rsplit("/", 1)[-1], "path_display": p, "size": len(data)}
                for p, data in self.files.items()
                if p.rsplit("/", 1)[0] == target
            ]
            return httpx.Response(200, json={"entries": entries, "cursor": "c1", "has_more": False})

        return httpx.Response(404)


@pytest.fixture
def imgur_host():
    return FakeImgur()


@pytest.fixture
def dropbox_host():
    return FakeDropbox()


@contextmanager
def running_app(imgur_host: FakeImgur, dropbox_host: FakeDropbox, config=settings):
    """
    테스트용 앱 실행: lifespan 시작 후 외부 호스트 HTTP 클라이언트를 MockTransport로 교체
    """
    app = create_app(config)
    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as client:
        app.state.imgur.http = httpx.AsyncClient(
            base_url=config.imgur_base_url, transport=httpx.MockTransport(imgur_host),
        )
        dropbox_http = httpx.AsyncClient(transport=httpx.MockTransport(dropbox_host))
        app.state.dropbox.http = dropbox_http
        app.state.dropbox_tokens.http = dropbox_http
        yield client


@pytest.fixture
def client(imgur_host, dropbox_host):
    """동기식 테스트 클라이언트 (rate limit 기본값)"""
    with running_app(imgur_host, dropbox_host) as c:
        yield c


def register_and_login(client, username: str | None = None, password: str = "Password123!") -> dict:
    """회원가입 + 로그인 → {"user": ..., "token": ..., "headers": ...}"""
    username = username or f"user_{uuid.uuid4().hex[:6]}"
    response = client.post("/auth/register", json={
        "username": username,
        "email": f"{username}@example.com",
        "password": password,
    })
    assert response.status_code == 201, response.text

    response = client.post("/auth/login", json={"username": username, "password": password})
    assert response.status_code == 200, response.text
    data = response.json()["data"]
    return {
        "user": data["user"],
        "token": data["accessToken"],
        "headers": {"Authorization": f"Bearer {data['accessToken']}"},
    }


@pytest.fixture
def auth_user(client):
    """회원가입 + 로그인까지 끝난 사용자"""
    return register_and_login(client)


@pytest.fixture
def auth_headers(auth_user):
    return auth_user["headers"]
