from datetime import datetime, timezone
from typing import Generic, TypeVar
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from core.logger import get_correlation_id

T = TypeVar("T")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CamelModel(BaseModel):
    """JSON은 camelCase, 파이썬 코드는 snake_case"""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class ApiResponse(CamelModel, Generic[T]):
    """모든 성공 응답을 감싸는 공통 envelope"""
    success: bool = True
    message: str | None = None
    data: T | None = None
    timestamp: datetime = Field(default_factory=utcnow)
    correlation_id: str | None = Field(default_factory=get_correlation_id)

    @classmethod
    def ok(cls, data=None, message: str | None = None) -> "ApiResponse":
        return cls(success=True, message=message, data=data)


class ErrorResponse(CamelModel):
    timestamp: datetime = Field(default_factory=utcnow)
    status: int
    error: str
    message: str
    path: str | None = None
    method: str | None = None
    correlation_id: str | None = Field(default_factory=get_correlation_id)
    validation_errors: dict[str, str] | None = None
    stack_trace: str | None = None

    def to_body(self) -> dict:
        # null 필드는 응답에서 제외
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)
