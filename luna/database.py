"""
Async SQLAlchemy engine + session factory.

Production runs against MySQL-protocol storage (MySQL or TiDB) through the
aiomysql driver; tests swap in sqlite+aiosqlite via DATABASE_URL.
The engine is created once at import and reused across all requests.
"""
import logging
from typing import Callable

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from luna.config import settings

logger = logging.getLogger(__name__)


def _engine_options(url: str) -> dict:
    # sqlite pools don't accept sizing arguments
    if url.startswith("sqlite"):
        return {}
    return {"pool_pre_ping": True, "pool_size": 20, "max_overflow": 10}


engine = create_async_engine(settings.db_url, echo=False, **_engine_options(settings.db_url))

AsyncSessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


class Base(DeclarativeBase):
    pass


async def init_db() -> None:
    """Create all tables if they don't exist (idempotent)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database tables initialised")


def after_commit(session: AsyncSession, callback: Callable[[], None]) -> None:
    """Run `callback` once the request's transaction has committed; dropped on rollback."""
    session.info.setdefault("after_commit", []).append(callback)


async def get_db():
    """FastAPI dependency that yields an async DB session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            session.info.pop("after_commit", None)
            await session.rollback()
            raise
        for callback in session.info.pop("after_commit", []):
            callback()
