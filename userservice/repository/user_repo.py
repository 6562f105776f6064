from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, exists
from models.users import User


async def find_by_id(db: AsyncSession, user_id: int) -> User | None:
    """PK로 유저 조회"""
    return await db.get(User, user_id)


async def find_by_email(db: AsyncSession, email: str) -> User | None:
    """이메일로 유저 조회"""
    result = await db.execute(select(User).where(User.email == email))
    return result.scalars().first()


async def find_by_username(db: AsyncSession, username: str) -> User | None:
    """유저네임으로 유저 조회"""
    result = await db.execute(select(User).where(User.username == username))
    return result.scalars().first()


async def exists_by_username(db: AsyncSession, username: str) -> bool:
    result = await db.execute(select(exists().where(User.username == username)))
    return bool(result.scalar())


async def exists_by_email(db: AsyncSession, email: str) -> bool:
    result = await db.execute(select(exists().where(User.email == email)))
    return bool(result.scalar())


async def create(db: AsyncSession, user: User) -> User:
    """
    유저 저장
    unique 제약 위반 시 IntegrityError가 그대로 올라감 (롤백은 호출한 쪽에서)
    """
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


async def save(db: AsyncSession, user: User) -> User:
    """변경 사항 commit: version 불일치 시 StaleDataError"""
    await db.commit()
    await db.refresh(user)
    return user
