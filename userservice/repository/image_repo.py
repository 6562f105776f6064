from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from models.image import Image, ImageStatus


async def create(db: AsyncSession, image: Image) -> Image:
    """이미지 레코드 저장"""
    db.add(image)
    await db.commit()
    await db.refresh(image)
    return image


async def save(db: AsyncSession, image: Image) -> Image:
    await db.commit()
    await db.refresh(image)
    return image


async def find_by_id_and_user(db: AsyncSession, image_id: int, user_id: int) -> Image | None:
    """이미지 조회 (본인 것만)"""
    result = await db.execute(
        select(Image)
        .where(Image.id == image_id)
        .where(Image.user_id == user_id)
    )
    return result.scalar_one_or_none()


async def find_by_external_id_and_user(db: AsyncSession, external_id: str, user_id: int) -> Image | None:
    """호스트 식별자(Imgur id 또는 Dropbox 경로)로 조회: 경로의 맨 앞 "/"는 생략 가능"""
    dropbox_path = "/" + external_id.lstrip("/")
    result = await db.execute(
        select(Image)
        .where((Image.imgur_id == external_id) | (Image.dropbox_path == dropbox_path))
        .where(Image.user_id == user_id)
        .order_by(Image.id.desc())
    )
    return result.scalars().first()


async def find_by_user_and_status(db: AsyncSession, user_id: int, status: ImageStatus) -> list[Image]:
    """유저의 이미지 목록 (최신순)"""
    result = await db.execute(
        select(Image)
        .where(Image.user_id == user_id)
        .where(Image.status == status)
        .order_by(Image.created_at.desc(), Image.id.desc())
    )
    return list(result.scalars().all())


async def find_by_user_and_name_containing(db: AsyncSession, user_id: int, name: str) -> list[Image]:
    """저장 이름 부분 일치 검색 (상태 무관)"""
    result = await db.execute(
        select(Image)
        .where(Image.user_id == user_id)
        .where(Image.image_name.contains(name, autoescape=True))
        .order_by(Image.id.desc())
    )
    return list(result.scalars().all())


async def count_by_user_and_status(db: AsyncSession, user_id: int, status: ImageStatus) -> int:
    result = await db.execute(
        select(func.count(Image.id))
        .where(Image.user_id == user_id)
        .where(Image.status == status)
    )
    return result.scalar_one()


async def increment_view_count(db: AsyncSession, image_id: int) -> int | None:
    """
    조회수 +1 (단일 UPDATE ... RETURNING)
    read-modify-write가 아니라서 동시 조회에도 누락 없음
    """
    result = await db.execute(
        update(Image)
        .where(Image.id == image_id)
        .values(view_count=Image.view_count + 1)
        .returning(Image.view_count)
        .execution_options(synchronize_session=False)
    )
    view_count = result.scalar_one_or_none()
    await db.commit()
    return view_count
