"""
Dropbox 클라이언트 / 토큰 갱신 / 관리용 API 테스트
"""
import asyncio
import io
import zipfile
import httpx
import pytest

from conftest import FakeDropbox, register_and_login
from core.exceptions import ImageHostError
from service.dropbox_client import DropboxClient
from service.dropbox_token import DropboxTokenProvider

TOKEN_URL = "https://api.dropboxapi.com/oauth2/token"


def _client(host: FakeDropbox, base_folder: str = "/user-service") -> DropboxClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(host))
    tokens = DropboxTokenProvider(http, TOKEN_URL, access_token="static-token")
    return DropboxClient(http, tokens, base_folder=base_folder)


# ===== 클라이언트 단위 테스트 =====

def test_이미_있는_폴더는_다시_만들지_않음():
    host = FakeDropbox()
    host.folders.update({"/user-service", "/user-service/user-7"})
    client = _client(host)

    path = asyncio.run(client.upload_image(7, b"img", "a.png"))

    assert path == "/user-service/user-7/images/a.png"
    assert host.created_folders == ["/user-service/user-7/images"]


def test_폴더_생성_경합은_성공으로_취급():
    host = FakeDropbox()
    client = _client(host)

    async def exists_never(path):
        return False

    # get_metadata가 "없음"이라고 해도 create에서 path/conflict면 통과
    host.folders.add("/user-service")
    client.folder_exists = exists_never
    asyncio.run(client.create_folder_recursively("/user-service/user-1"))
    assert host.created_folders == ["/user-service/user-1"]


def test_같은_이름의_파일이_있으면_폴더_생성_실패():
    host = FakeDropbox()
    host.folders.add("/user-service")
    host.files["/user-service/user-5"] = b"not a folder"
    client = _client(host)

    with pytest.raises(ImageHostError) as exc_info:
        asyncio.run(client.upload_image(5, b"img", "a.png"))
    assert "path/conflict/file" in exc_info.value.message
    assert host.created_folders == []
    assert "/user-service/user-5/images/a.png" not in host.files


def test_없는_파일_삭제는_False():
    host = FakeDropbox()
    client = _client(host)
    host.files["/user-service/user-1/images/a.png"] = b"x"

    assert asyncio.run(client.delete_image("/user-service/user-1/images/a.png")) is True
    assert asyncio.run(client.delete_image("/user-service/user-1/images/a.png")) is False


def test_없는_폴더_목록은_빈_리스트():
    assert asyncio.run(_client(FakeDropbox()).list_user_images(42)) == []


def test_다운로드_실패는_ImageHostError():
    with pytest.raises(ImageHostError) as exc_info:
        asyncio.run(_client(FakeDropbox()).download_image("/nope.png"))
    assert exc_info.value.host == "dropbox"


def test_서버_오류는_ImageHostError():
    host = FakeDropbox()
    host.fail = True
    with pytest.raises(ImageHostError):
        asyncio.run(_client(host).upload_image(1, b"img", "a.png"))


def test_목록이_여러_페이지면_이어서_조회():
    pages = {
        "/files/list_folder": {"entries": [{".tag": "file", "name": "a.png"}], "cursor": "c1", "has_more": True},
        "/files/list_folder/continue": {"entries": [{".tag": "file", "name": "b.png"}], "cursor": "c2", "has_more": False},
    }

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=pages[request.url.path.removeprefix("/2")])

    http = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    client = DropboxClient(http, DropboxTokenProvider(http, TOKEN_URL, access_token="t"))

    entries = asyncio.run(client.list_folder("/user-service/user-1/images"))
    assert [entry["name"] for entry in entries] == ["a.png", "b.png"]


def test_ZIP으로_묶어서_다운로드():
    host = FakeDropbox()
    folder = "/user-service/user-3/images"
    host.folders.add(folder)
    host.files[f"{folder}/a.png"] = b"aaa"
    host.files[f"{folder}/b.png"] = b"bbb"

    data = asyncio.run(_client(host).download_user_images_as_zip(3))

    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        assert sorted(zf.namelist()) == ["a.png", "b.png"]
        assert zf.read("b.png") == b"bbb"


# ===== 토큰 갱신 =====

class TokenEndpoint:
    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.calls = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls += 1
        if self.status_code != 200:
            return httpx.Response(self.status_code, json={"error": "invalid_grant"})
        return httpx.Response(200, json={"access_token": f"token-{self.calls}", "expires_in": 3600})


def _provider(endpoint: TokenEndpoint, clock: list[float], **kwargs) -> DropboxTokenProvider:
    http = httpx.AsyncClient(transport=httpx.MockTransport(endpoint))
    return DropboxTokenProvider(
        http, TOKEN_URL, app_key="key", app_secret="secret", refresh_token="refresh",
        refresh_margin_seconds=300, timer=lambda: clock[0], **kwargs,
    )


def test_refresh_token이_있으면_발급받아_재사용():
    endpoint = TokenEndpoint()
    clock = [0.0]
    provider = _provider(endpoint, clock)

    assert asyncio.run(provider.get_token()) == "token-1"
    clock[0] = 3000
    assert asyncio.run(provider.get_token()) == "token-1"
    assert endpoint.calls == 1


def test_만료_임박하면_다시_발급():
    endpoint = TokenEndpoint()
    clock = [0.0]
    provider = _provider(endpoint, clock)

    asyncio.run(provider.get_token())
    clock[0] = 3400  # 만료 200초 전 (margin 300초 안쪽)
    assert asyncio.run(provider.get_token()) == "token-2"


def test_갱신_실패는_ImageHostError():
    provider = _provider(TokenEndpoint(status_code=400), [0.0])
    with pytest.raises(ImageHostError):
        asyncio.run(provider.get_token())


def test_자격증명이_없으면_ImageHostError():
    http = httpx.AsyncClient(transport=httpx.MockTransport(TokenEndpoint()))
    provider = DropboxTokenProvider(http, TOKEN_URL)
    with pytest.raises(ImageHostError):
        asyncio.run(provider.get_token())


# ===== 관리용 API =====

def test_Dropbox_직접_업로드_후_목록과_다운로드(client, dropbox_host):
    user = register_and_login(client)
    user_id = user["user"]["id"]

    response = client.post(
        f"/dropbox/upload/{user_id}",
        headers=user["headers"],
        files={"file": ("cat.png", b"png-bytes", "image/png")},
        data={"title": "direct"},
    )
    assert response.status_code == 201
    uploaded = response.json()["data"]
    assert uploaded["originalFilename"] == "cat.png"
    assert uploaded["title"] == "direct"
    assert uploaded["fileSize"] == len(b"png-bytes")

    listed = client.get(f"/dropbox/images/{user_id}", headers=user["headers"]).json()["data"]
    assert [f["dropboxPath"] for f in listed] == [uploaded["dropboxPath"]]

    response = client.get("/dropbox/download", headers=user["headers"], params={"path": uploaded["dropboxPath"]})
    assert response.status_code == 200
    assert response.content == b"png-bytes"
    assert "attachment" in response.headers["Content-Disposition"]

    response = client.get(f"/dropbox/download-zip/{user_id}", headers=user["headers"])
    assert response.headers["Content-Disposition"] == f'attachment; filename="user-{user_id}-images.zip"'
    with zipfile.ZipFile(io.BytesIO(response.content)) as zf:
        assert len(zf.namelist()) == 1


def test_Dropbox_삭제(client, dropbox_host):
    user = register_and_login(client)
    dropbox_host.files["/user-service/user-1/images/x.png"] = b"x"

    response = client.delete("/dropbox/delete", headers=user["headers"], params={"path": "/user-service/user-1/images/x.png"})
    assert response.json()["data"] is True

    response = client.delete("/dropbox/delete", headers=user["headers"], params={"path": "/user-service/user-1/images/x.png"})
    assert response.json()["data"] is False


def test_없는_파일_다운로드는_502(client):
    user = register_and_login(client)
    response = client.get("/dropbox/download", headers=user["headers"], params={"path": "/missing.png"})
    assert response.status_code == 502
    assert response.json()["error"] == "IMAGE_HOST_ERROR"


def test_Dropbox_API는_인증_필요(client):
    assert client.get("/dropbox/images/1").status_code == 401
