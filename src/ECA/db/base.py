# src/ECA/db/base.py
from __future__ import annotations

from datetime import datetime, date, timezone
from decimal import Decimal
from typing import Any, Optional

import sqlalchemy as sa
from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# -----------------------------------------------------------------------------
# Declarative Base with naming conventions (great for Alembic autogenerate)
# -----------------------------------------------------------------------------
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Shared declarative base for all models."""
    metadata = MetaData(naming_convention=NAMING_CONVENTION)
    __allow_unmapped__ = True  # keep NOTE class attributes out of the mapper

    __sa_eval_namespace__ = {
        "Any": Any,
        "Optional": Optional,
        "Decimal": Decimal,
        "datetime": datetime,
        "date": date,
    }


# -----------------------------------------------------------------------------
# UTC timestamp type that works on both Postgres and SQLite
# -----------------------------------------------------------------------------
class UTCDateTime(TypeDecorator):
    """
    Timezone-aware timestamp.

    - On PostgreSQL ⇒ TIMESTAMP WITH TIME ZONE, values normalized to UTC
    - Elsewhere     ⇒ naive UTC (SQLite has no zone support)

    Always returns aware ``datetime`` objects in UTC, so comparisons in Python
    never mix naive and aware values.
    """
    impl = sa.DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        value = value.astimezone(timezone.utc)
        if dialect.name == "sqlite":
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


# Money column: exact decimal, never float
Money = sa.Numeric(12, 2, asdecimal=True)


class IntPKMixin:
    id: Mapped[int] = mapped_column(sa.Integer, primary_key=True, autoincrement=True)


__all__ = ["Base", "IntPKMixin", "UTCDateTime", "Money", "utcnow"]
