from datetime import datetime
from pydantic import Field

from schemas.common import CamelModel


class UserResponse(CamelModel):
    """사용자 정보 응답 (비밀번호 제외!)"""
    id: int
    username: str
    email: str
    first_name: str | None = None
    last_name: str | None = None
    phone_number: str | None = None
    is_active: bool
    created_at: datetime | None = None
    updated_at: datetime | None = None


class UserUpdateRequest(CamelModel):
    """이름/전화번호만 수정 가능: 비어 있는 값은 무시"""
    first_name: str | None = Field(None, max_length=50)
    last_name: str | None = Field(None, max_length=50)
    phone_number: str | None = Field(None, max_length=20)
