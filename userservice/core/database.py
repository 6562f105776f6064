from collections.abc import AsyncGenerator
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import DeclarativeBase
from core.config import settings

# 1. Async 엔진 생성
#    - pool_size / max_overflow: PostgreSQL(asyncpg)용 커넥션 풀 설정
#    - SQLite(aiosqlite)는 개발/테스트용이라 풀 옵션을 넘기지 않음
engine_kwargs = {"echo": settings.db_echo}
if not settings.database_url.startswith("sqlite"):
    engine_kwargs.update(pool_size=20, max_overflow=30)

engine = create_async_engine(settings.database_url, **engine_kwargs)


# 2. 세션 팩토리
#    - expire_on_commit=False: commit 후에도 객체 속성에 접근 가능
#      (True면 commit 후 속성 접근 시 LazyLoad → async에서 에러 발생)
async_session = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False
)


# 3. Base 클래스: 모든 모델이 상속받는 부모
class Base(DeclarativeBase):
    pass


# 4. DB 세션 DI (Dependency Injection)
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session() as session:
        try:
            yield session
        finally:
            await session.close()


async def create_tables() -> None:
    """개발 환경용: 마이그레이션 대신 metadata 기준으로 테이블 생성"""
    # 모델을 import해야 metadata에 테이블이 등록됨
    import models.users  # noqa: F401
    import models.image  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
