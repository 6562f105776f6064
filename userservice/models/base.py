from datetime import datetime
from sqlalchemy import DateTime, func
from sqlalchemy.orm import Mapped, mapped_column


class TimestampMixin:
    """
    users / images 공통 생성·수정 시각

    updated_at은 프로필 수정, 비활성화, 이미지 메타데이터 수정과 소프트 삭제 때 갱신됨

    값은 DB가 채우므로 repository의 create/save는 commit 후 refresh로 다시 읽어옴
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
