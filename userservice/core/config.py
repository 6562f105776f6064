from pydantic_settings import BaseSettings, SettingsConfigDict
from pathlib import Path

class Settings(BaseSettings):
    app_name: str = "User Image Service"
    # True면 500 응답에 stackTrace 포함 (개발용)
    debug: bool = False
    log_level: str = "INFO"

    # Database
    database_url: str
    db_echo: bool = False
    auto_create_tables: bool = True

    # JWT 설정 (기본 24시간)
    jwt_secret: str = "dev-secret-key-change-in-production"
    jwt_algorithm: str = "HS256"
    jwt_expire_minutes: int = 60 * 24

    # Rate limit: "횟수/기간" 문자열 (limits 라이브러리 표기법)
    rate_limit_enabled: bool = True
    rate_limit_api: str = "1000/minute"
    rate_limit_auth: str = "100/minute"
    rate_limit_image_upload: str = "200/minute"

    # 응답 캐시 (네임스페이스별 최대 개수, 쓰기 후 30분 / 마지막 접근 후 10분)
    cache_enabled: bool = True
    cache_max_size: int = 10_000
    cache_expire_after_write_seconds: int = 1800
    cache_expire_after_access_seconds: int = 600

    # Imgur (1차 이미지 호스트)
    imgur_enabled: bool = True
    imgur_base_url: str = "https://api.imgur.com/3"
    imgur_client_id: str = ""
    image_max_file_size: int = 10 * 1024 * 1024

    # Dropbox (2차 이미지 호스트)
    dropbox_enabled: bool = True
    dropbox_base_folder: str = "/user-service"
    dropbox_api_url: str = "https://api.dropboxapi.com/2"
    dropbox_content_url: str = "https://content.dropboxapi.com/2"
    dropbox_token_url: str = "https://api.dropboxapi.com/oauth2/token"
    dropbox_access_token: str = ""
    dropbox_app_key: str = ""
    dropbox_app_secret: str = ""
    dropbox_refresh_token: str = ""
    dropbox_token_refresh_margin_seconds: int = 300

    # 외부 호출 타임아웃 (초)
    http_connect_timeout: float = 5.0
    http_read_timeout: float = 10.0

    # 이벤트 발행 (Redis Stream): 꺼져 있으면 NoOp
    events_enabled: bool = False
    redis_url: str = "redis://redis:6379"
    image_events_stream: str = "image-events"
    user_events_stream: str = "user-events"
    event_workers: int = 4
    event_queue_size: int = 1000
    event_breaker_cooldown_seconds: int = 300

    model_config = SettingsConfigDict(
        # config.py -> core -> userservice -> 루트 아래의 .env 찾기
        env_file=Path(__file__).parent.parent.parent / ".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )


# 싱글톤 인스턴스: 앱 어디서든 import해서 사용
settings = Settings()
