from fastapi import FastAPI
from contextlib import asynccontextmanager
from core.config import Settings, settings
from core.dependencies import init_state, init_connections, close_connections
from core.database import engine, create_tables
from core.handlers import register_exception_handlers
from core.metrics import RequestMetricsMiddleware
from core.rate_limit import RateLimitMiddleware
from router import auth, user, image, dropbox, cache, performance


def create_app(config: Settings = settings) -> FastAPI:

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        try:
            if config.auto_create_tables:
                await create_tables()
            await init_connections(app, config)
            yield
        finally:
            await close_connections(app)
            # DB 연결 풀 정리
            await engine.dispose()

    app = FastAPI(
        title=config.app_name,
        description="JWT 인증 + 이미지 업로드(Imgur → Dropbox) 사용자 서비스",
        version="1.0.0",
        lifespan=lifespan,
    )

    # 캐시 / rate limiter / 성능 모니터는 미들웨어가 생성 시점에 참조
    init_state(app, config)

    # 나중에 추가한 미들웨어가 바깥쪽: correlation id가 먼저 설정된 뒤 rate limit 검사
    app.add_middleware(
        RateLimitMiddleware,
        limiter=app.state.rate_limiter,
        monitor=app.state.monitor,
        enabled=config.rate_limit_enabled,
    )
    app.add_middleware(RequestMetricsMiddleware, monitor=app.state.monitor)

    register_exception_handlers(app)

    app.include_router(auth.router, prefix="/auth", tags=["Auth"])
    app.include_router(user.router, prefix="/users", tags=["Users"])
    app.include_router(image.router, prefix="/images", tags=["Images"])
    app.include_router(dropbox.router, prefix="/dropbox", tags=["Dropbox"])
    app.include_router(cache.router, prefix="/cache", tags=["Cache"])
    app.include_router(performance.router, prefix="/performance", tags=["Monitoring"])

    return app


app = create_app()
