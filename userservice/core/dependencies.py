import redis.asyncio as airedis
import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import Settings, settings
from core.database import get_db
from core.exceptions import AuthenticationError
from core.logger import get_logger
from core.metrics import PerformanceMonitor
from core.security import security_schema
from service import auth_service
from service.cache_service import ResponseCache
from service.dropbox_client import DropboxClient
from service.dropbox_token import DropboxTokenProvider
from service.event_service import EventPublisher, NoOpSink, RedisStreamSink
from service.image_service import ImageService
from service.imgur_client import ImgurClient
from service.rate_limit_service import RateLimitService

logger = get_logger("dependencies")


# === 수명주기 관리 (main.py에서 호출) ===

def init_state(app: FastAPI, config: Settings = settings) -> None:
    """요청 파이프라인이 쓰는 인메모리 구성요소 (미들웨어 등록 전에 필요)"""
    app.state.cache = ResponseCache.from_settings(config)
    app.state.rate_limiter = RateLimitService(config)
    app.state.monitor = PerformanceMonitor()


async def init_connections(app: FastAPI, config: Settings = settings) -> None:
    timeout = httpx.Timeout(config.http_read_timeout, connect=config.http_connect_timeout)

    app.state.imgur_http = httpx.AsyncClient(base_url=config.imgur_base_url, timeout=timeout)
    app.state.dropbox_http = httpx.AsyncClient(timeout=timeout)

    app.state.dropbox_tokens = DropboxTokenProvider(
        app.state.dropbox_http,
        token_url=config.dropbox_token_url,
        access_token=config.dropbox_access_token,
        app_key=config.dropbox_app_key,
        app_secret=config.dropbox_app_secret,
        refresh_token=config.dropbox_refresh_token,
        refresh_margin_seconds=config.dropbox_token_refresh_margin_seconds,
    )
    app.state.imgur = ImgurClient(
        app.state.imgur_http,
        client_id=config.imgur_client_id,
        max_file_size=config.image_max_file_size,
        enabled=config.imgur_enabled,
    )
    app.state.dropbox = DropboxClient(
        app.state.dropbox_http,
        app.state.dropbox_tokens,
        base_folder=config.dropbox_base_folder,
        api_url=config.dropbox_api_url,
        content_url=config.dropbox_content_url,
        enabled=config.dropbox_enabled,
    )

    # 이벤트가 꺼져 있으면 Redis에 연결하지 않음
    app.state.redis = None
    if config.events_enabled:
        app.state.redis = airedis.from_url(
            config.redis_url,
            decode_responses=True,  # bytes → str 자동 변환
        )
        sink = RedisStreamSink(app.state.redis)
    else:
        sink = NoOpSink()

    app.state.events = EventPublisher(
        sink,
        image_stream=config.image_events_stream,
        user_stream=config.user_events_stream,
        workers=config.event_workers,
        queue_size=config.event_queue_size,
        cooldown_seconds=config.event_breaker_cooldown_seconds,
    )
    await app.state.events.start()
    logger.info("Connections initialized")


async def close_connections(app: FastAPI) -> None:
    await app.state.events.stop()

    if app.state.redis is not None:
        await app.state.redis.aclose()
        app.state.redis = None

    await app.state.imgur_http.aclose()
    await app.state.dropbox_http.aclose()
    logger.info("All connections closed")


# === FastAPI Depends()용 함수 ===

def get_cache(request: Request) -> ResponseCache:
    return request.app.state.cache


def get_monitor(request: Request) -> PerformanceMonitor:
    return request.app.state.monitor


def get_event_publisher(request: Request) -> EventPublisher:
    return request.app.state.events


def get_imgur(request: Request) -> ImgurClient:
    return request.app.state.imgur


def get_dropbox(request: Request) -> DropboxClient:
    return request.app.state.dropbox


def get_image_service(
    db: AsyncSession = Depends(get_db),
    cache: ResponseCache = Depends(get_cache),
    events: EventPublisher = Depends(get_event_publisher),
    imgur: ImgurClient = Depends(get_imgur),
    dropbox: DropboxClient = Depends(get_dropbox),
) -> ImageService:
    return ImageService(db, cache, events, imgur, dropbox)


async def get_current_username(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security_schema),
    cache: ResponseCache = Depends(get_cache),
) -> str:
    """Bearer 토큰을 검증하고 토큰의 subject(username)를 반환합니다."""
    if not credentials:
        raise AuthenticationError("Authentication credentials were not provided")

    username = await auth_service.get_username_from_token(cache, credentials.credentials)
    if not username:
        raise AuthenticationError("Invalid or expired token")

    # 요청 범위에서 인증된 사용자 식별
    request.state.username = username
    return username
