import asyncio
import time
from collections.abc import Callable
import httpx

from core.exceptions import ImageHostError
from core.logger import get_logger

logger = get_logger("dropbox")


class DropboxTokenProvider:
    """
    Dropbox access token 관리 (앱 수명 동안 하나, app.state에 보관)

    - refresh_token이 설정되어 있으면 OAuth refresh grant로 토큰 발급
      만료 margin 초 전부터는 다음 호출 때 새로 발급받음
    - refresh_token 없이 access_token만 있으면 그대로 사용 (갱신 없음)
    """

    def __init__(self, http: httpx.AsyncClient, token_url: str, access_token: str = "",
                 app_key: str = "", app_secret: str = "", refresh_token: str = "",
                 refresh_margin_seconds: float = 300, timer: Callable[[], float] = time.monotonic):
        self.http = http
        self.token_url = token_url
        self.app_key = app_key
        self.app_secret = app_secret
        self.refresh_token = refresh_token
        self.refresh_margin_seconds = refresh_margin_seconds
        self.timer = timer
        self._access_token = access_token or None
        self._expires_at: float | None = None
        self._lock = asyncio.Lock()

    def _is_fresh(self) -> bool:
        if not self._access_token:
            return False
        if self._expires_at is None:
            return True
        return self.timer() < self._expires_at - self.refresh_margin_seconds

    async def get_token(self) -> str:
        if not self.refresh_token:
            if not self._access_token:
                raise ImageHostError("dropbox", "No Dropbox credentials configured")
            return self._access_token

        if self._is_fresh() and self._expires_at is not None:
            return self._access_token

        async with self._lock:
            # 다른 코루틴이 먼저 갱신했으면 그 토큰 사용
            if self._is_fresh() and self._expires_at is not None:
                return self._access_token
            return await self.refresh()

    async def refresh(self) -> str:
        logger.info("Refreshing Dropbox access token")
        try:
            response = await self.http.post(self.token_url, data={
                "grant_type": "refresh_token",
                "refresh_token": self.refresh_token,
                "client_id": self.app_key,
                "client_secret": self.app_secret,
            })
        except httpx.HTTPError as e:
            raise ImageHostError("dropbox", f"Error while refreshing token: {e}") from e

        if response.status_code != 200:
            raise ImageHostError("dropbox", f"Failed to refresh token: status {response.status_code}")

        try:
            payload = response.json()
            self._access_token = payload["access_token"]
        except (ValueError, KeyError, TypeError) as e:
            raise ImageHostError("dropbox", "Malformed token response") from e

        self._expires_at = self.timer() + float(payload.get("expires_in", 14400))
        return self._access_token
