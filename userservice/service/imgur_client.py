import base64
import httpx
from pydantic import BaseModel, Field, ValidationError as PydanticValidationError

from core.exceptions import ImageHostError
from core.logger import get_logger

logger = get_logger("imgur")

SUPPORTED_MIME_TYPES = {"image/jpeg", "image/jpg", "image/png", "image/gif", "image/webp"}


class ImgurImage(BaseModel):
    """Imgur 응답의 data 부분 (필요한 필드만)"""
    id: str
    delete_hash: str | None = Field(None, alias="deletehash")
    link: str | None = None
    size: int | None = None
    type: str | None = None
    width: int | None = None
    height: int | None = None


class ImgurClient:
    """
    1차 이미지 호스트 (Imgur API v3)

    인증: "Authorization: Client-ID <id>"
    업로드 실패(검증 실패, 전송 오류, success=false, 응답 형식 오류)는 모두 ImageHostError
    """

    host = "imgur"

    def __init__(self, http: httpx.AsyncClient, client_id: str, max_file_size: int = 10 * 1024 * 1024,
                 enabled: bool = True):
        self.http = http
        self.client_id = client_id
        self.max_file_size = max_file_size
        self.enabled = enabled

    @property
    def _headers(self) -> dict:
        return {"Authorization": f"Client-ID {self.client_id}"}

    def validate_image(self, data: bytes, mime_type: str | None) -> None:
        if not data:
            raise ImageHostError(self.host, "Image file is required")
        if len(data) > self.max_file_size:
            raise ImageHostError(self.host, f"Image file size exceeds {self.max_file_size // (1024 * 1024)}MB limit")
        if not mime_type or not mime_type.startswith("image/"):
            raise ImageHostError(self.host, "File must be an image")
        if mime_type not in SUPPORTED_MIME_TYPES:
            raise ImageHostError(self.host, f"Unsupported image format: {mime_type}")

    async def upload_image(self, data: bytes, filename: str | None, mime_type: str | None,
                           title: str | None = None, description: str | None = None) -> ImgurImage:
        if not self.enabled:
            raise ImageHostError(self.host, "Imgur upload is disabled")

        logger.info(f"Uploading image to Imgur: filename={filename}, size={len(data)}")
        self.validate_image(data, mime_type)

        body = {
            "image": base64.b64encode(data).decode("ascii"),
            "type": "base64",
        }
        if title and title.strip():
            body["title"] = title.strip()
        if description and description.strip():
            body["description"] = description.strip()

        try:
            response = await self.http.post("/image", data=body, headers=self._headers)
        except httpx.HTTPError as e:
            raise ImageHostError(self.host, f"Request failed: {e}") from e

        payload = self._json(response)
        if response.status_code >= 400 or not payload.get("success"):
            raise ImageHostError(self.host, f"Upload failed with status {response.status_code}")

        try:
            image = ImgurImage.model_validate(payload.get("data"))
        except PydanticValidationError as e:
            raise ImageHostError(self.host, "Malformed upload response") from e

        logger.info(f"Image uploaded successfully to Imgur: imageId={image.id}")
        return image

    async def delete_image(self, delete_hash: str | None) -> bool:
        """삭제 실패는 예외 대신 False (호출 쪽에서 로그만 남김)"""
        if not delete_hash:
            return False

        try:
            response = await self.http.delete(f"/image/{delete_hash}", headers=self._headers)
        except httpx.HTTPError as e:
            logger.error(f"Error deleting image from Imgur: deleteHash={delete_hash}, error={e}")
            return False

        success = response.status_code < 400 and bool(self._json(response).get("success"))
        if success:
            logger.info(f"Image deleted successfully from Imgur: deleteHash={delete_hash}")
        else:
            logger.warning(f"Failed to delete image from Imgur: deleteHash={delete_hash}, status={response.status_code}")
        return success

    async def get_image_info(self, image_id: str) -> ImgurImage:
        try:
            response = await self.http.get(f"/image/{image_id}", headers=self._headers)
        except httpx.HTTPError as e:
            raise ImageHostError(self.host, f"Request failed: {e}") from e

        payload = self._json(response)
        if response.status_code >= 400 or not payload.get("success"):
            raise ImageHostError(self.host, f"Failed to retrieve image info: {image_id}")

        try:
            return ImgurImage.model_validate(payload.get("data"))
        except PydanticValidationError as e:
            raise ImageHostError(self.host, "Malformed image info response") from e

    @staticmethod
    def _json(response: httpx.Response) -> dict:
        try:
            payload = response.json()
        except ValueError:
            return {}
        return payload if isinstance(payload, dict) else {}
