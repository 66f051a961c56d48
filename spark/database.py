"""
Spark - Async Database Engine & Session Factory

Provides two connection strategies selected from ``DATABASE_URL``:

1. **PostgreSQL (production)** – ``asyncpg`` with pool tuning.  A plain
   ``postgresql://`` URL is transparently upgraded to the asyncpg dialect.

2. **SQLite (local development / tests)** – ``aiosqlite``.  An in-memory
   URL is bound to a single shared connection so every session sees the
   same database.

Nothing is created at import time: the application lifespan builds the
engine and session factory and disposes of them on shutdown.
"""

from __future__ import annotations

import logging

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

from spark.config import Settings

logger = logging.getLogger(__name__)


# ------------------------------------------------------------------ #
# Declarative base for all ORM models
# ------------------------------------------------------------------ #

class Base(DeclarativeBase):
    """Shared declarative base.

    Every SQLAlchemy model in the project should inherit from this class::

        from spark.database import Base

        class Profile(Base):
            __tablename__ = "profiles"
            ...
    """
    pass


# ------------------------------------------------------------------ #
# Pool configuration (server databases only)
# ------------------------------------------------------------------ #

_POOL_KWARGS = {
    "pool_size": 10,
    "max_overflow": 5,
    "pool_timeout": 30,
    "pool_recycle": 1800,
    "pool_pre_ping": True,
}


def _is_memory_sqlite(url: str) -> bool:
    return ":memory:" in url or url.endswith("://")


def build_engine(settings: Settings) -> AsyncEngine:
    """Create an async engine from ``settings.DATABASE_URL``."""
    url = settings.DATABASE_URL
    echo = settings.LOG_LEVEL == "DEBUG"

    if url.startswith("postgresql://"):
        url = url.replace("postgresql://", "postgresql+asyncpg://", 1)

    if url.startswith("sqlite"):
        kwargs: dict = {"connect_args": {"check_same_thread": False}}
        if _is_memory_sqlite(url):
            kwargs["poolclass"] = StaticPool
        engine = create_async_engine(url, echo=echo, **kwargs)
        logger.info("Database engine created for SQLite (%s)", url)
        return engine

    engine = create_async_engine(url, echo=echo, **_POOL_KWARGS)
    logger.info("Database engine created from DATABASE_URL")
    return engine


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


async def init_models(engine: AsyncEngine) -> None:
    """Create every table registered on ``Base.metadata`` if missing."""
    import spark.models  # noqa: F401  (registers the mappers)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

