import enum
from sqlalchemy import String, Text, Integer, BigInteger, ForeignKey, Enum
from sqlalchemy.orm import Mapped, mapped_column, relationship
from models.base import TimestampMixin
from core.database import Base


class ImageStatus(str, enum.Enum):
    ACTIVE = "ACTIVE"
    DELETED = "DELETED"
    ARCHIVED = "ARCHIVED"
    PROCESSING = "PROCESSING"


class Image(TimestampMixin, Base):
    """
    업로드된 이미지 레코드
    User : Image = 1 : N

    업로드에 성공한 레코드는 imgur_id / dropbox_path 중 정확히 하나만 가짐
    (바이트를 어느 호스트가 보관하는지 표시)
    """
    __tablename__ = "images"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    user_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # 저장용 이름 (Imgur: "{원본이름}_{imgurId}", Dropbox: "{uuid}{확장자}")
    image_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    original_filename: Mapped[str | None] = mapped_column(String(255))

    # 1차 호스트 (Imgur)
    imgur_id: Mapped[str | None] = mapped_column(String(100), index=True)
    imgur_delete_hash: Mapped[str | None] = mapped_column(String(100))
    imgur_url: Mapped[str | None] = mapped_column(String(500))

    # 2차 호스트 (Dropbox)
    dropbox_path: Mapped[str | None] = mapped_column(String(500))

    title: Mapped[str | None] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text)
    tags: Mapped[str | None] = mapped_column(String(500))

    file_size: Mapped[int | None] = mapped_column(BigInteger)
    mime_type: Mapped[str | None] = mapped_column(String(100))
    width: Mapped[int | None] = mapped_column(Integer)
    height: Mapped[int | None] = mapped_column(Integer)

    status: Mapped[ImageStatus] = mapped_column(
        Enum(ImageStatus, native_enum=False, length=20),
        nullable=False,
        default=ImageStatus.ACTIVE,
    )

    view_count: Mapped[int] = mapped_column(BigInteger, nullable=False, default=0)

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    user: Mapped["User"] = relationship(back_populates="images", lazy="raise")

    __mapper_args__ = {"version_id_col": version}

    @property
    def backend(self) -> str:
        return "IMGUR" if self.imgur_id else "DROPBOX"

    @property
    def external_id(self) -> str | None:
        """호스트 쪽 식별자 (Imgur id 또는 Dropbox 경로)"""
        return self.imgur_id or self.dropbox_path

    def mark_as_deleted(self) -> None:
        self.status = ImageStatus.DELETED
