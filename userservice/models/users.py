from sqlalchemy import String, Boolean, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship
from models.base import TimestampMixin
from core.database import Base


class User(TimestampMixin, Base):
    """
    사용자 모델

    - hashed_password: 평문 비밀번호를 절대 저장하지 않음 (응답에도 포함 X)
    - is_active: 소프트 삭제(soft delete) 패턴: 실제 삭제 대신 비활성화
    - version: 낙관적 잠금: 동시에 수정하면 늦게 commit한 쪽이 StaleDataError
    """
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # 로그인 시 빈번하게 조회 → 인덱스 필수
    username: Mapped[str] = mapped_column(
        String(50),
        unique=True,
        index=True,
        nullable=False,
    )

    email: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        index=True,
        nullable=False,
    )

    # bcrypt 해시는 보통 60자, 여유있게 255로 설정
    hashed_password: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    first_name: Mapped[str | None] = mapped_column(String(50))
    last_name: Mapped[str | None] = mapped_column(String(50))
    phone_number: Mapped[str | None] = mapped_column(String(20))

    is_active: Mapped[bool] = mapped_column(
        Boolean,
        default=True,
        server_default="true",
        nullable=False,
    )

    version: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # 이미지는 user_id로 직접 연결해서 저장 (async에서 lazy load 금지)
    images: Mapped[list["Image"]] = relationship(
        back_populates="user",
        cascade="all, delete-orphan",
        lazy="raise",
    )

    __mapper_args__ = {"version_id_col": version}
