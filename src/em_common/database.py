from collections.abc import AsyncGenerator, AsyncIterator
from contextlib import asynccontextmanager

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from config.settings import settings
from src.em_common.errors import StorageFailureError


class Base(DeclarativeBase):
    """Shared declarative base for all ORM models across modules."""

    pass


engine: AsyncEngine = create_async_engine(
    settings.DATABASE_URL,
    echo=settings.DEBUG,
    pool_size=20,
    max_overflow=10,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: yields an AsyncSession, auto-closes after request."""
    async with async_session_factory() as session:
        yield session


@asynccontextmanager
async def unit_of_work(db: AsyncSession) -> AsyncIterator[AsyncSession]:
    """Run the enclosed block as one transaction on ``db``.

    Commits on success. On any error the transaction is rolled back and the
    error re-raised; driver/SQL errors surface as StorageFailureError so the
    caller never sees a half-applied write.
    """
    try:
        yield db
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise StorageFailureError(str(exc.__class__.__name__)) from exc
    except Exception:
        await db.rollback()
        raise
