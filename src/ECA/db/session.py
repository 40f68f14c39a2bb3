# src/ECA/db/session.py
from __future__ import annotations

import os
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.engine import URL
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from ECA.core.config import settings

# ---------------------------------------------------------------------------
# Engine configuration
# ---------------------------------------------------------------------------

DATABASE_URL: str | URL = settings.DATABASE_URL

# Use NullPool in tests (or when explicitly requested) to avoid sharing the same
# asyncpg connection across tasks.
USE_NULLPOOL = (
    os.getenv("SQLALCHEMY_NULLPOOL", "0") == "1"
    or bool(getattr(settings, "TESTING", False))
)


def build_engine(url: str | URL | None = None, **overrides) -> AsyncEngine:
    engine_kwargs: dict = {
        "echo": bool(getattr(settings, "DB_ECHO", False)),
        "pool_pre_ping": True,  # protects against stale connections
    }
    if USE_NULLPOOL:
        engine_kwargs["poolclass"] = NullPool
    engine_kwargs.update(overrides)
    engine = create_async_engine(url or DATABASE_URL, **engine_kwargs)
    if engine.dialect.name == "sqlite":
        _enforce_sqlite_foreign_keys(engine)
    return engine


def _enforce_sqlite_foreign_keys(engine: AsyncEngine) -> None:
    # SQLite ignores FOREIGN KEY clauses unless the pragma is set per connection
    @event.listens_for(engine.sync_engine, "connect")
    def _fk_pragma(dbapi_conn, _record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


# Module-level factory for code running outside the app lifespan;
# the lifespan installs its own loop-bound factory.
engine = build_engine()
AsyncSessionLocal: async_sessionmaker[AsyncSession] = build_sessionmaker(engine)


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session, ``Depends(get_session)``; rolled back if the handler raises."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
