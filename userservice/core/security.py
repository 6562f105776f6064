from datetime import datetime, timedelta, timezone
from fastapi.security import HTTPBearer
from jose import JWTError, jwt

from core.config import settings

# HTTPBearer: Authorization 헤더에서 "Bearer <token>" 자동 추출
# auto_error=False: 토큰이 없을 때 403 대신 우리 쪽에서 401(AUTHENTICATION_FAILED)로 응답하기 위함
security_schema = HTTPBearer(auto_error=False)


class TokenService:
    """
    JWT 발급/검증 (HS256, 상태 없음)

    payload: {"sub": username, "iat": 발급 시각, "exp": 만료 시각}

    검증 실패(서명 불일치, 만료, 형식 오류)는 정상적인 입력 조건이므로
    예외를 던지지 않고 False / None 을 반환합니다.
    """

    def __init__(self, secret: str, algorithm: str = "HS256", expire_minutes: int = 60 * 24):
        self.secret = secret
        self.algorithm = algorithm
        self.expire_minutes = expire_minutes

    @property
    def expires_in_seconds(self) -> int:
        return self.expire_minutes * 60

    def issue(self, subject: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": subject,
            "iat": now,
            "exp": now + timedelta(minutes=self.expire_minutes),
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def _decode(self, token: str | None) -> dict | None:
        if not token:
            return None
        try:
            return jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except JWTError:
            return None

    def validate(self, token: str | None) -> bool:
        payload = self._decode(token)
        return bool(payload and payload.get("sub"))

    def subject_of(self, token: str | None) -> str | None:
        payload = self._decode(token)
        return payload.get("sub") if payload else None

    def expires_at(self, token: str | None) -> datetime | None:
        payload = self._decode(token)
        if not payload or "exp" not in payload:
            return None
        return datetime.fromtimestamp(payload["exp"], tz=timezone.utc)


token_service = TokenService(
    secret=settings.jwt_secret,
    algorithm=settings.jwt_algorithm,
    expire_minutes=settings.jwt_expire_minutes,
)
