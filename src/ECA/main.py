# src/ECA/main.py
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from fastapi import FastAPI
from fastapi.routing import APIRoute
from sqlalchemy.ext.asyncio import AsyncSession

from ECA.api.errors import register_exception_handlers
from ECA.api.routers import ROUTERS
from ECA.app_logger import get_logger
from ECA.core.config import settings
from ECA.db import get_session
from ECA.db.session import build_engine, build_sessionmaker

log = get_logger("startup")


def generate_unique_id(route: APIRoute) -> str:
    method = next(iter(route.methods or {"get"})).lower()
    return f"{route.tags[0] if route.tags else 'default'}-{route.name}-{method}"


def create_app(database_url: Optional[str] = None) -> FastAPI:
    # define a lifespan handler
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """
        Handles startup/shutdown tasks for the app (runs once on start, once on stop).
        """
        # ---------------- STARTUP ----------------
        # DB engine/sessionmaker bound to THIS loop
        app.state.db_engine = build_engine(database_url or settings.DATABASE_URL)
        app.state.async_sessionmaker = build_sessionmaker(app.state.db_engine)

        async def _session_override() -> AsyncIterator[AsyncSession]:
            async with app.state.async_sessionmaker() as session:
                try:
                    yield session
                except Exception:
                    await session.rollback()
                    raise

        # an override installed by the caller (tests) wins
        app.dependency_overrides.setdefault(get_session, _session_override)
        log.info("%s %s started", settings.APP_NAME, settings.APP_VERSION)

        yield

        # ---------------- SHUTDOWN ----------------
        # Close DB engine BEFORE loop closes (prevents asyncpg 'loop is closed')
        await app.state.db_engine.dispose()
        log.info("%s stopped", settings.APP_NAME)

    # instantiate FastAPI with the lifespan handler
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        generate_unique_id_function=generate_unique_id,
        lifespan=lifespan,
    )

    register_exception_handlers(app)
    for router in ROUTERS:
        app.include_router(router)

    return app


app = create_app()
