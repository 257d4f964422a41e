"""
Engine and session factory for the local key-value store.
"""
from contextlib import asynccontextmanager
from typing import AsyncGenerator
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from hrbot.config import settings
from hrbot.database.models import Base
from hrbot.logger import get_logger

logger = get_logger(__name__)


def make_engine(url: str) -> AsyncEngine:
    """Create an async engine for the given database URL."""
    return create_async_engine(url, echo=False)


def make_session_factory(bind: AsyncEngine) -> async_sessionmaker:
    """Session factory whose objects stay usable after commit."""
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine: AsyncEngine = make_engine(settings.DB_URL)
async_session_maker = make_session_factory(engine)


async def init_db(bind: AsyncEngine = engine) -> None:
    """Create missing tables."""
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database initialized", url=bind.url.render_as_string(hide_password=True))


async def close_db(bind: AsyncEngine = engine) -> None:
    """Dispose of the connection pool."""
    await bind.dispose()
    logger.info("Database connections closed")


@asynccontextmanager
async def get_session(
    factory: async_sessionmaker = async_session_maker,
) -> AsyncGenerator[AsyncSession, None]:
    """One unit of work: commit on success, roll back and re-raise on error."""
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception as e:
            await session.rollback()
            logger.error("Database session error", error=str(e))
            raise
