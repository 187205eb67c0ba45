from collections.abc import AsyncGenerator

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from marketplace.config import settings
from marketplace.errors import DuplicateEntryError

engine = create_async_engine(settings.database_url, echo=(settings.env == "development"))
async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
async_session_factory = async_session  # alias used by the timeout consumer and startup sweep


class Base(DeclarativeBase):
    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session() as session:
        yield session


async def commit_unique(db: AsyncSession) -> None:
    """Commit, reporting a unique-constraint violation as a duplicate entry.

    Covers the window where two writers both pass the existence check.
    """
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise DuplicateEntryError()
