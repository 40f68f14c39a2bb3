# src/ECA/services/_helpers.py
from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Iterable, Mapping, Optional

import sqlalchemy as sa
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic.alias_generators import to_camel

from ECA.app_logger import get_logger
from ECA.errors import DomainError, InvalidReferenceError, TransactionError, ValidationError

log = get_logger("tx")

_WIRE_NAMES = {"returned_to_eca_date": "returnedToECADate"}


def wire_name(field: str) -> str:
    """camelCase name a field has on the JSON boundary."""
    return _WIRE_NAMES.get(field, to_camel(field))


@asynccontextmanager
async def unit_of_work(
    session: AsyncSession,
    operation: str,
    entity_id: Any = None,
    *,
    wrap_unexpected: bool = False,
) -> AsyncIterator[AsyncSession]:
    """
    Run the body as one transaction: commit on success, roll back on any error.

    Domain errors and integrity errors propagate unchanged (the API layer maps
    them). With ``wrap_unexpected`` anything else becomes a ``TransactionError``
    so multi-row operations report that nothing was applied.
    """
    try:
        yield session
        await session.commit()
    except DomainError as exc:
        await session.rollback()
        log.warning("%s rejected id=%s: %s", operation, entity_id, exc.message)
        raise
    except IntegrityError:
        await session.rollback()
        log.exception("%s integrity failure id=%s; rolled back", operation, entity_id)
        raise
    except Exception as exc:
        await session.rollback()
        log.exception("%s failed id=%s; rolled back", operation, entity_id)
        if wrap_unexpected:
            raise TransactionError(operation, entity_id) from exc
        raise


async def require_refs(session: AsyncSession, refs: Mapping[str, tuple[type, Optional[int]]]) -> None:
    """Raise InvalidReferenceError for the first ``field -> (Model, id)`` that does not resolve.

    ``None`` ids are skipped; nullability is checked by the caller.
    """
    for field, (model, value) in refs.items():
        if value is None:
            continue
        found = await session.scalar(sa.select(model.id).where(model.id == value))
        if found is None:
            raise InvalidReferenceError(wire_name(field), value)


def reject_nulls(data: Mapping[str, Any], fields: Iterable[str]) -> None:
    errors = {wire_name(f): "may not be null" for f in fields if f in data and data[f] is None}
    if errors:
        raise ValidationError("Invalid data", errors=errors)


def apply(obj: Any, data: Mapping[str, Any]) -> None:
    for key, value in data.items():
        setattr(obj, key, value)
