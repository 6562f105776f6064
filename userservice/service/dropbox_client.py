import io
import json
import zipfile
import httpx

from core.exceptions import ImageHostError
from core.logger import get_logger
from service.dropbox_token import DropboxTokenProvider

logger = get_logger("dropbox")


class DropboxClient:
    """
    2차 이미지 호스트 (Dropbox HTTP API v2)

    저장 경로: {base_folder}/user-{userId}/images/{filename}
    - 상위 폴더가 없으면 한 단계씩 생성 ("path/conflict/folder"는 이미 있는 폴더이므로 성공 취급, 같은 이름의 파일이면 실패)
    - 삭제 시 "not_found"는 예외가 아니라 False
    """

    host = "dropbox"

    def __init__(self, http: httpx.AsyncClient, tokens: DropboxTokenProvider,
                 base_folder: str = "/user-service",
                 api_url: str = "https://api.dropboxapi.com/2",
                 content_url: str = "https://content.dropboxapi.com/2",
                 enabled: bool = True):
        self.http = http
        self.tokens = tokens
        self.base_folder = base_folder.rstrip("/")
        self.api_url = api_url.rstrip("/")
        self.content_url = content_url.rstrip("/")
        self.enabled = enabled

    def user_folder(self, user_id: int) -> str:
        return f"{self.base_folder}/user-{user_id}/images"

    async def _auth_headers(self) -> dict:
        token = await self.tokens.get_token()
        return {"Authorization": f"Bearer {token}"}

    @staticmethod
    def _error_summary(response: httpx.Response) -> str:
        try:
            return response.json().get("error_summary", "") or response.text
        except ValueError:
            return response.text

    async def _rpc(self, endpoint: str, args: dict) -> httpx.Response:
        """api 서버 호출 (JSON in / JSON out). 409 는 호출한 쪽에서 해석"""
        headers = await self._auth_headers()
        try:
            response = await self.http.post(f"{self.api_url}{endpoint}", json=args, headers=headers)
        except httpx.HTTPError as e:
            raise ImageHostError(self.host, f"{endpoint} request failed: {e}") from e

        if response.status_code >= 400 and response.status_code != 409:
            raise ImageHostError(self.host, f"{endpoint} failed with status {response.status_code}")
        return response

    async def _content(self, endpoint: str, args: dict, data: bytes | None = None) -> httpx.Response:
        """content 서버 호출 (인자는 Dropbox-API-Arg 헤더, 본문은 바이트)"""
        headers = await self._auth_headers()
        headers["Dropbox-API-Arg"] = json.dumps(args)
        if data is not None:
            headers["Content-Type"] = "application/octet-stream"
        try:
            response = await self.http.post(f"{self.content_url}{endpoint}", content=data, headers=headers)
        except httpx.HTTPError as e:
            raise ImageHostError(self.host, f"{endpoint} request failed: {e}") from e

        if response.status_code >= 400:
            raise ImageHostError(
                self.host, f"{endpoint} failed with status {response.status_code}: {self._error_summary(response)}"
            )
        return response

    async def folder_exists(self, path: str) -> bool:
        response = await self._rpc("/files/get_metadata", {"path": path})
        if response.status_code == 409:
            return False
        return response.json().get(".tag") == "folder"

    async def create_folder_recursively(self, folder_path: str) -> None:
        current = ""
        for part in folder_path.strip("/").split("/"):
            current = f"{current}/{part}"
            if await self.folder_exists(current):
                continue

            response = await self._rpc("/files/create_folder_v2", {"path": current, "autorename": False})
            if response.status_code == 409:
                summary = self._error_summary(response)
                if "path/conflict/folder" not in summary:
                    raise ImageHostError(self.host, f"Failed to create folder {current}: {summary}")
            else:
                logger.info(f"Created folder: {current}")

    async def upload_image(self, user_id: int, data: bytes, filename: str) -> str:
        """업로드 후 Dropbox 상의 경로 반환"""
        if not self.enabled:
            raise ImageHostError(self.host, "Dropbox upload is disabled")

        folder = self.user_folder(user_id)
        await self.create_folder_recursively(folder)

        path = f"{folder}/{filename}"
        response = await self._content(
            "/files/upload", {"path": path, "mode": "add", "autorename": False, "mute": True}, data,
        )
        uploaded_path = response.json().get("path_display") or path
        logger.info(f"Uploaded image to Dropbox: {uploaded_path}")
        return uploaded_path

    async def download_image(self, path: str) -> bytes:
        response = await self._content("/files/download", {"path": path})
        logger.info(f"Downloaded image from path: {path}")
        return response.content

    async def delete_image(self, path: str) -> bool:
        """True = 삭제됨, False = 이미 없음"""
        response = await self._rpc("/files/delete_v2", {"path": path})
        if response.status_code == 409:
            summary = self._error_summary(response)
            if "not_found" in summary:
                logger.warning(f"Image already absent in Dropbox: {path}")
                return False
            raise ImageHostError(self.host, f"Failed to delete {path}: {summary}")

        logger.info(f"Deleted image from path: {path}")
        return True

    async def list_folder(self, path: str) -> list[dict]:
        response = await self._rpc("/files/list_folder", {"path": path})
        if response.status_code == 409:
            summary = self._error_summary(response)
            if "not_found" in summary:
                return []
            raise ImageHostError(self.host, f"Failed to list {path}: {summary}")

        payload = response.json()
        entries = list(payload.get("entries", []))
        while payload.get("has_more"):
            response = await self._rpc("/files/list_folder/continue", {"cursor": payload["cursor"]})
            if response.status_code == 409:
                raise ImageHostError(self.host, f"Failed to continue listing {path}")
            payload = response.json()
            entries.extend(payload.get("entries", []))
        return entries

    async def list_user_images(self, user_id: int) -> list[dict]:
        """폴더가 아직 없으면 (업로드한 적 없음) 빈 목록"""
        return await self.list_folder(self.user_folder(user_id))

    async def download_user_images_as_zip(self, user_id: int) -> bytes:
        entries = await self.list_user_images(user_id)

        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
            for entry in entries:
                if entry.get(".tag") != "file":
                    continue
                data = await self.download_image(entry["path_display"])
                zf.writestr(entry["name"], data)
        return buffer.getvalue()
