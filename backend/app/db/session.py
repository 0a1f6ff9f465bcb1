"""
Database engine and session management.

Flow:
  1. build_engine() creates the async engine from settings (asyncpg in
     production, aiosqlite for local dev and tests).
  2. build_session_factory() wraps it in an async_sessionmaker.
  3. The content store opens one short transaction per operation through
     that factory. Background pipeline runs never share a session with the
     request that spawned them.

The engine is built lazily (first call to get_engine()) so importing the
application never opens a connection or requires a driver.
"""

from __future__ import annotations

import logging
from functools import lru_cache

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from app.core.config import Settings, get_settings
from app.models.content import Base

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

def build_engine(settings: Settings) -> AsyncEngine:
    """Create an async engine; SQLite gets a single shared connection."""
    if settings.is_sqlite:
        return create_async_engine(
            settings.database_url,
            echo=settings.db_echo_sql,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
        )
    return create_async_engine(
        settings.database_url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,          # detect stale connections before use
        pool_recycle=3600,           # recycle connections every hour
        echo=settings.db_echo_sql,   # log SQL in dev; disable in prod
    )


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # expire_on_commit=False keeps ORM objects usable after commit
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@lru_cache(maxsize=1)
def get_engine() -> AsyncEngine:
    return build_engine(get_settings())


# ---------------------------------------------------------------------------
# Schema bootstrap
# ---------------------------------------------------------------------------

async def create_tables(engine: AsyncEngine) -> None:
    """Create all tables that do not exist yet (idempotent)."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ensured | tables=%s", sorted(Base.metadata.tables))


# ---------------------------------------------------------------------------
# Health check helper
# ---------------------------------------------------------------------------

async def check_db_health(engine: AsyncEngine) -> dict:
    """Ping the database; used by the /ready endpoint."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
        return {"status": "ok"}
    except Exception as exc:
        logger.error("DB health check failed: %s", exc)
        return {"status": "error", "detail": str(exc)}
