# src/ECA/tests/conftest.py
from __future__ import annotations

import os
import sys
import logging
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any, Callable

# in-memory database for anything that builds an engine from settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import sqlalchemy as sa
from httpx import AsyncClient, ASGITransport
from sqlalchemy.pool import StaticPool

from ECA.db import get_session
from ECA.db.base import Base
from ECA.db.models import BillingState, Book, MediaFormat, Status, User
from ECA.db.session import build_engine, build_sessionmaker
from ECA.main import create_app
from ECA.services.reference import seed_reference_data


# =========================
# Logging -> stdout
# =========================
@pytest.fixture(scope="session", autouse=True)
def _tests_log_to_stdout():
    """
    Ensure test logs go to stdout so they show up under pytest -s or log_cli=true.
    Avoid duplicates if handler is already present.
    """
    root = logging.getLogger()
    want = None
    for h in root.handlers:
        if isinstance(h, logging.StreamHandler) and getattr(h, "stream", None) is sys.stdout:
            want = h
            break
    if want is None:
        want = logging.StreamHandler(sys.stdout)
        want.setFormatter(logging.Formatter("%(levelname)s %(name)s: %(message)s"))
        root.addHandler(want)

    root.setLevel(os.getenv("TEST_LOG_LEVEL", "INFO").upper())


# Make anyio run on asyncio (so our async fixtures work everywhere)
@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


# ==============================================================
# Database: fresh in-memory schema per test
# ==============================================================

@pytest.fixture
async def engine():
    eng = build_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def sessionmaker(engine):
    return build_sessionmaker(engine)


@pytest.fixture
async def session(sessionmaker):
    async with sessionmaker() as s:
        yield s


@pytest.fixture
async def seed(sessionmaker) -> SimpleNamespace:
    """Reference vocabulary plus a few patrons, readers, staff and books."""
    async with sessionmaker() as s:
        await seed_reference_data(s)

        users = {
            "patron": User(name="Jeanne Martin", email="jeanne@example.org", role="aveugle"),
            "patron2": User(name="Paul Durand", email="paul@example.org", role="aveugle"),
            "r1": User(name="Lecteur Un", email="r1@example.org", role="reader"),
            "r2": User(name="Lecteur Deux", email="r2@example.org", role="reader"),
            "r3": User(name="Lectrice Trois", email="r3@example.org", role="reader"),
            "staff": User(name="Agent ECA", email="staff@example.org", role="staff"),
        }
        books = {
            "book": Book(title="Les Misérables", author="Victor Hugo", isbn="9782070409228"),
            "book2": Book(title="Germinal", author="Émile Zola"),
        }
        s.add_all([*users.values(), *books.values()])
        await s.commit()

        statuses = {st.name: st.id for st in (await s.scalars(sa.select(Status))).all()}
        formats = {m.name: m.id for m in (await s.scalars(sa.select(MediaFormat))).all()}
        states = {b.name: b.id for b in (await s.scalars(sa.select(BillingState))).all()}

        return SimpleNamespace(
            **{k: u.id for k, u in users.items()},
            **{k: b.id for k, b in books.items()},
            pending=statuses["En attente de validation"],
            in_progress=statuses["En cours de traitement"],
            completed=statuses["Commande terminée"],
            media_format=formats["CD DAISY"],
            draft=states["Brouillon"],
            issued=states["Émise"],
            paid=states["Payée"],
        )


# ==============================================================
# Helpers
# ==============================================================

def _days_ago(n: float) -> datetime:
    return datetime.now(timezone.utc) - timedelta(days=n)


@pytest.fixture
def days_ago() -> Callable[[float], datetime]:
    return _days_ago


@pytest.fixture
def ago() -> Callable[[float], str]:
    """ISO-8601 timestamp ``n`` days in the past."""
    return lambda n: _days_ago(n).isoformat()


@pytest.fixture
def order_payload(seed) -> Callable[..., dict[str, Any]]:
    def _make(**overrides: Any) -> dict[str, Any]:
        body = {
            "aveugleId": seed.patron,
            "catalogueId": seed.book,
            "requestReceivedDate": _days_ago(1).isoformat(),
            "statusId": seed.pending,
            "mediaFormatId": seed.media_format,
            "deliveryMethod": "ENVOI",
        }
        body.update(overrides)
        return body
    return _make


@pytest.fixture
def staff_headers(seed) -> dict[str, str]:
    return {"X-User-Id": str(seed.staff), "X-User-Role": "staff"}


@pytest.fixture
def reader_headers(seed) -> dict[str, str]:
    return {"X-User-Id": str(seed.r1), "X-User-Role": "reader"}


# ==============================================================
# In-process app
# ==============================================================

@pytest.fixture
async def client(sessionmaker, seed):
    app = create_app()

    async def _session_override():
        async with sessionmaker() as s:
            yield s

    app.dependency_overrides[get_session] = _session_override

    transport = ASGITransport(app=app)
    async with app.router.lifespan_context(app):
        async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
            yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def create_order(client, order_payload, staff_headers):
    async def _create(**overrides: Any) -> dict[str, Any]:
        r = await client.post("/api/orders", json=order_payload(**overrides), headers=staff_headers)
        assert r.status_code == 201, r.text
        return r.json()["order"]
    return _create


@pytest.fixture
def create_assignment(client, seed, staff_headers):
    async def _create(order_id: int, **overrides: Any) -> dict[str, Any]:
        body = {"orderId": order_id, "catalogueId": seed.book, **overrides}
        r = await client.post("/api/assignments", json=body, headers=staff_headers)
        assert r.status_code == 201, r.text
        return r.json()["assignment"]
    return _create


@pytest.fixture
def create_bill(client, seed, staff_headers, ago):
    async def _create(**overrides: Any) -> dict[str, Any]:
        body = {
            "clientId": seed.patron,
            "stateId": seed.draft,
            "creationDate": ago(2),
            "invoiceAmount": "21.00",
            **overrides,
        }
        r = await client.post("/api/bills", json=body, headers=staff_headers)
        assert r.status_code == 201, r.text
        return r.json()["bill"]
    return _create
