"""
Async SQLAlchemy wiring for the operations store: engine construction,
session factory and schema creation.
"""
import os
import logging
from typing import Optional
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    create_async_engine,
    AsyncSession,
    async_sessionmaker,
)
from sqlalchemy.orm import DeclarativeBase

logger = logging.getLogger("panelops-db")


def normalize_database_url(raw_url: str) -> str:
    """Force the async driver for postgres URLs handed out by hosting platforms."""
    url = raw_url
    if url.startswith("postgresql://") and "+asyncpg" not in url:
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("postgres://"):
        url = url.replace("postgres://", "postgresql+asyncpg://", 1)
    return url


DATABASE_URL = normalize_database_url(os.getenv("DATABASE_URL", ""))


class Base(DeclarativeBase):
    pass


def build_engine(url: str, **kwargs) -> AsyncEngine:
    """Async engine for ``url``. SQLite (tests, local runs) gets no pool sizing."""
    url = normalize_database_url(url)
    if url.startswith("sqlite"):
        return create_async_engine(url, echo=False, **kwargs)
    options = dict(pool_pre_ping=True, echo=False, pool_timeout=5)
    if "poolclass" not in kwargs:
        options.update(pool_size=10, max_overflow=20)
    options.update(kwargs)
    return create_async_engine(url, **options)


_engine: Optional[AsyncEngine] = None


def get_engine() -> AsyncEngine:
    """Process-wide engine for DATABASE_URL, created on first use."""
    global _engine
    if _engine is None:
        if not DATABASE_URL:
            raise RuntimeError("DATABASE_URL is not configured")
        _engine = build_engine(DATABASE_URL)
    return _engine


def session_factory(engine: AsyncEngine) -> async_sessionmaker:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def init_db(engine: Optional[AsyncEngine] = None):
    """Create the operations tables; a no-op when no database is configured."""
    if engine is None:
        if not DATABASE_URL:
            logger.warning("No DATABASE_URL; operations data stays in memory for this process")
            return
        engine = get_engine()
    from panelops.models import orm_models  # noqa: F401
    async with engine.begin() as conn:
        if os.getenv("DB_RESET_ON_STARTUP", "").lower() in ("1", "true", "yes"):
            logger.warning("DB_RESET_ON_STARTUP set, dropping operations tables")
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"Operations schema ready ({len(Base.metadata.tables)} tables)")

