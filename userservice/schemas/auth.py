import re
from pydantic import EmailStr, Field, field_validator

from schemas.common import CamelModel
from schemas.user import UserResponse

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]{3,20}$")
PHONE_PATTERN = re.compile(r"^[+]?[0-9\s\-()]{10,20}$")


class UserRegistrationRequest(CamelModel):
    """회원가입 요청"""
    username: str = Field(..., min_length=3, max_length=20, description="사용자 아이디")
    email: EmailStr = Field(..., description="사용자 이메일")
    password: str = Field(..., min_length=8, max_length=100, description="비밀번호 (8~100자)")
    first_name: str | None = Field(None, max_length=50)
    last_name: str | None = Field(None, max_length=50)
    phone_number: str | None = None

    @field_validator("username")
    @classmethod
    def validate_username(cls, v: str) -> str:
        if not USERNAME_PATTERN.match(v):
            raise ValueError("Username must contain only alphanumeric characters and underscores")
        return v

    @field_validator("phone_number")
    @classmethod
    def validate_phone_number(cls, v: str | None) -> str | None:
        if v is None or v == "":
            return None
        if not PHONE_PATTERN.match(v):
            raise ValueError("Phone number must be a valid international format")
        return v


class LoginRequest(CamelModel):
    username: str = Field(..., min_length=1)
    password: str = Field(..., min_length=1)


class LoginResponse(CamelModel):
    """로그인 성공 시 돌려줄 JWT 토큰 + 사용자 정보"""
    access_token: str
    token_type: str = "Bearer"
    expires_in: int          # 초 단위
    user: UserResponse
