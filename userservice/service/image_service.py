import os
import uuid
from dataclasses import dataclass, field
from sqlalchemy.ext.asyncio import AsyncSession

from core.exceptions import BusinessError, ImageHostError, ResourceNotFoundError, ValidationError
from core.logger import get_logger
from models.image import Image, ImageStatus
from models.users import User
from repository import image_repo
from schemas.image import ImageResponse, ImageUpdateRequest
from service import user_service
from service.cache_service import (
    ResponseCache, IMAGE_BY_EXTERNAL_ID, IMAGE_BY_ID, IMAGE_LIST_BY_OWNER, IMAGE_NAMESPACES,
)
from service.dropbox_client import DropboxClient
from service.event_service import EventPublisher, IMAGE_DELETED, IMAGE_UPLOADED
from service.imgur_client import ImgurClient

logger = get_logger("image")


@dataclass
class ImageUpload:
    """업로드 요청 한 건 (파일 바이트 + 메타데이터)"""
    data: bytes
    filename: str | None
    mime_type: str | None
    title: str | None = None
    description: str | None = None

    @property
    def extension(self) -> str:
        return os.path.splitext(self.filename or "")[1]


@dataclass
class UploadOutcome:
    """업로드 단계 결과: 실패도 예외가 아니라 값으로 돌려줌"""
    backend: str
    success: bool
    fields: dict = field(default_factory=dict)
    reason: str | None = None

    @classmethod
    def ok(cls, backend: str, **fields) -> "UploadOutcome":
        return cls(backend=backend, success=True, fields=fields)

    @classmethod
    def failed(cls, backend: str, reason: str) -> "UploadOutcome":
        return cls(backend=backend, success=False, reason=reason)


def generate_image_name(original_filename: str | None, imgur_id: str) -> str:
    """예: cat.png + abc123 → cat_abc123"""
    if not original_filename or not original_filename.strip():
        return f"image_{imgur_id}"
    name, _ = os.path.splitext(original_filename)
    return f"{name or original_filename}_{imgur_id}"


class ImgurUploadStep:
    backend = "IMGUR"

    def __init__(self, imgur: ImgurClient):
        self.imgur = imgur

    async def attempt(self, user: User, upload: ImageUpload) -> UploadOutcome:
        try:
            image = await self.imgur.upload_image(
                upload.data, upload.filename, upload.mime_type, upload.title, upload.description,
            )
        except Exception as e:
            return UploadOutcome.failed(self.backend, str(e))

        return UploadOutcome.ok(
            self.backend,
            image_name=generate_image_name(upload.filename, image.id),
            imgur_id=image.id,
            imgur_delete_hash=image.delete_hash,
            imgur_url=image.link,
            file_size=image.size if image.size is not None else len(upload.data),
            mime_type=image.type or upload.mime_type,
            width=image.width,
            height=image.height,
        )


class DropboxUploadStep:
    backend = "DROPBOX"

    def __init__(self, dropbox: DropboxClient):
        self.dropbox = dropbox

    async def attempt(self, user: User, upload: ImageUpload) -> UploadOutcome:
        # 충돌 방지용 고유 이름: uuid + 원본 확장자
        unique_name = f"{uuid.uuid4()}{upload.extension}"
        try:
            path = await self.dropbox.upload_image(user.id, upload.data, unique_name)
        except Exception as e:
            return UploadOutcome.failed(self.backend, str(e))

        # Dropbox는 이미지 크기(가로/세로)를 알려주지 않음
        return UploadOutcome.ok(
            self.backend,
            image_name=unique_name,
            dropbox_path=path,
            file_size=len(upload.data),
            mime_type=upload.mime_type,
        )


class ImageService:
    """
    이미지 업로드/조회/삭제

    업로드: steps 순서대로 시도 (기본 Imgur → Dropbox), 처음 성공한 결과를 저장
    캐시: 목록/단건 조회 결과 캐시, 이미지 변경 시 이미지 네임스페이스 전체 무효화
    """

    def __init__(self, db: AsyncSession, cache: ResponseCache, events: EventPublisher | None,
                 imgur: ImgurClient, dropbox: DropboxClient, steps: list | None = None):
        self.db = db
        self.cache = cache
        self.events = events
        self.imgur = imgur
        self.dropbox = dropbox
        self.steps = steps if steps is not None else [ImgurUploadStep(imgur), DropboxUploadStep(dropbox)]

    def _evict(self) -> None:
        self.cache.invalidate_many(IMAGE_NAMESPACES)

    async def upload_image(self, username: str, upload: ImageUpload) -> ImageResponse:
        logger.info(f"Uploading image for user: {username}, filename: {upload.filename}")
        if not upload.data:
            raise ValidationError.for_field("file", "Image file is required")

        user = await user_service.find_user_by_username(self.db, username)

        outcome = None
        failures: list[UploadOutcome] = []
        for step in self.steps:
            outcome = await step.attempt(user, upload)
            if outcome.success:
                break
            logger.warning(f"{outcome.backend} upload failed for user {username}: {outcome.reason}")
            failures.append(outcome)
            outcome = None

        if outcome is None:
            reasons = ", ".join(f"{f.backend}={f.reason}" for f in failures)
            logger.error(f"All image uploads failed for user {username}: {reasons}")
            raise BusinessError(f"Failed to upload image to both Imgur and Dropbox ({reasons})", "UPLOAD_FAILED")

        image = Image(
            user_id=user.id,
            original_filename=upload.filename,
            title=upload.title,
            description=upload.description,
            status=ImageStatus.ACTIVE,
            view_count=0,
            **outcome.fields,
        )
        image = await image_repo.create(self.db, image)
        self._evict()
        logger.info(
            f"Image saved successfully: imageId={image.id}, imgurId={image.imgur_id}, dropboxPath={image.dropbox_path}"
        )

        # 저장이 끝난 뒤에만 발행 (실패해도 응답에는 영향 없음)
        if self.events:
            self.events.publish_image_event(username, image.image_name, IMAGE_UPLOADED, outcome.backend)

        return ImageResponse.model_validate(image)

    async def get_user_images(self, username: str) -> list[ImageResponse]:
        async def load() -> list[ImageResponse]:
            user = await user_service.find_user_by_username(self.db, username)
            images = await image_repo.find_by_user_and_status(self.db, user.id, ImageStatus.ACTIVE)
            return [ImageResponse.model_validate(image) for image in images]

        return await self.cache.get(IMAGE_LIST_BY_OWNER, username, load)

    async def _find_image(self, image_id: int, username: str) -> Image:
        user = await user_service.find_user_by_username(self.db, username)
        image = await image_repo.find_by_id_and_user(self.db, image_id, user.id)
        if not image:
            logger.warning(f"Image not found: imageId={image_id}, username={username}")
            raise ResourceNotFoundError.for_resource("Image", image_id)
        return image

    async def _find_image_by_external_id(self, external_id: str, username: str) -> Image:
        user = await user_service.find_user_by_username(self.db, username)
        image = await image_repo.find_by_external_id_and_user(self.db, external_id, user.id)
        if not image:
            logger.warning(f"Image not found: externalId={external_id}, username={username}")
            raise ResourceNotFoundError.for_resource_field("Image", "externalId", external_id)
        return image

    async def get_image_by_id(self, image_id: int, username: str) -> ImageResponse:
        """단건 조회: 조회할 때마다 view_count +1 (캐시 히트여도 증가)"""
        async def load() -> ImageResponse:
            return ImageResponse.model_validate(await self._find_image(image_id, username))

        cached = await self.cache.get(IMAGE_BY_ID, f"{image_id}:{username}", load)
        view_count = await image_repo.increment_view_count(self.db, image_id)
        return cached.model_copy(update={"view_count": view_count if view_count is not None else cached.view_count})

    async def get_image_by_external_id(self, external_id: str, username: str) -> ImageResponse:
        async def load() -> ImageResponse:
            return ImageResponse.model_validate(await self._find_image_by_external_id(external_id, username))

        return await self.cache.get(IMAGE_BY_EXTERNAL_ID, f"{external_id}:{username}", load)

    async def update_image(self, image_id: int, username: str, data: ImageUpdateRequest) -> ImageResponse:
        logger.info(f"Updating image: imageId={image_id}, username={username}")
        image = await self._find_image(image_id, username)

        for name, value in data.model_dump(exclude_none=True).items():
            setattr(image, name, value)

        image = await image_repo.save(self.db, image)
        self._evict()
        return ImageResponse.model_validate(image)

    async def _delete_from_backend(self, image: Image) -> None:
        """호스트 쪽 삭제는 best-effort: 실패해도 로컬 레코드는 삭제 처리"""
        if image.imgur_id:
            if not await self.imgur.delete_image(image.imgur_delete_hash):
                logger.warning(f"Failed to delete image from Imgur: imgurId={image.imgur_id}")
            return

        if image.dropbox_path:
            try:
                await self.dropbox.delete_image(image.dropbox_path)
            except ImageHostError as e:
                logger.warning(f"Failed to delete image from Dropbox: path={image.dropbox_path}, error={e.message}")

    async def _delete(self, image: Image, username: str) -> None:
        await self._delete_from_backend(image)

        image.mark_as_deleted()
        await image_repo.save(self.db, image)
        self._evict()
        logger.info(f"Image deleted successfully: imageId={image.id}, backend={image.backend}, externalId={image.external_id}")

        if self.events:
            self.events.publish_image_event(username, image.image_name, IMAGE_DELETED, image.backend)

    async def delete_image(self, image_id: int, username: str) -> None:
        logger.info(f"Deleting image: imageId={image_id}, username={username}")
        await self._delete(await self._find_image(image_id, username), username)

    async def delete_image_by_external_id(self, external_id: str, username: str) -> None:
        logger.info(f"Deleting image by external ID: externalId={external_id}, username={username}")
        await self._delete(await self._find_image_by_external_id(external_id, username), username)

    async def search_images_by_name(self, name: str, username: str) -> list[ImageResponse]:
        user = await user_service.find_user_by_username(self.db, username)
        images = await image_repo.find_by_user_and_name_containing(self.db, user.id, name)
        return [
            ImageResponse.model_validate(image)
            for image in images
            if image.status == ImageStatus.ACTIVE
        ]

    async def get_user_image_count(self, username: str) -> int:
        user = await user_service.find_user_by_username(self.db, username)
        return await image_repo.count_by_user_and_status(self.db, user.id, ImageStatus.ACTIVE)
