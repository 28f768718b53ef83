"""Database engine and request-scoped sessions.

One session per request. The request commits when the handler returns and
rolls back when it raises. Publication commits early on its own so the
alert's new status survives a failing dispatch; whatever the dispatcher
writes afterwards is covered by the request's final commit.
"""

from collections.abc import AsyncGenerator
import logging
from typing import Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from .config import Settings, get_settings

logger = logging.getLogger(__name__)


def engine_options(url: str, settings: Settings) -> dict[str, Any]:
    """Pool options for the URL's backend. SQLite has no connection pool to size."""
    options: dict[str, Any] = {"echo": settings.database_echo}
    if url.startswith("sqlite"):
        return options
    options.update(
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_pre_ping=True,
        pool_recycle=300,
        pool_timeout=30,
    )
    return options


def build_engine(url: str | None = None, settings: Settings | None = None) -> AsyncEngine:
    settings = settings or get_settings()
    url = url or settings.database_url_async
    return create_async_engine(url, **engine_options(url, settings))


engine = build_engine()

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency: a session that commits on success and rolls back on error."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except SQLAlchemyError as e:
            await session.rollback()
            logger.error(f"Database error, request rolled back: {e}")
            raise
        except Exception:
            await session.rollback()
            raise


async def init_db() -> None:
    """Create missing tables. Production schemas are managed by migrations."""
    from ..models import Base

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    await engine.dispose()
