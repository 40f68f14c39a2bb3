# src/ECA/services/assignments.py
from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional, Tuple

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ECA.app_logger import get_logger
from ECA.db.base import utcnow
from ECA.db.models import Assignment, AssignmentReader, Book, Order, Status, User
from ECA.errors import ConflictError, InvalidReferenceError, NotFoundError, ValidationError
from ECA.schemas.assignments import (
    ASSIGNMENT_DETAILED_DEFAULTS,
    AssignmentCreate,
    AssignmentPatch,
    ReaderAssign,
)
from ECA.schemas.common import PageParams
from ._helpers import apply, reject_nulls, require_refs, unit_of_work, wire_name

log = get_logger("assignments")

INITIAL_ASSIGNMENT_NOTE = "Affectation initiale"

CUSTODY_DATES = ("reception_date", "sent_to_reader_date", "returned_to_eca_date")
ASSIGNMENT_FIELDS = tuple(AssignmentPatch.model_fields)


def _ledger_order():
    return AssignmentReader.assigned_date.desc(), AssignmentReader.id.desc()


def current_reader_id_subquery():
    """Correlated scalar subquery: reader of the most recent ledger row for ``Assignment.id``."""
    return (
        sa.select(AssignmentReader.reader_id)
        .where(AssignmentReader.assignment_id == Assignment.id)
        .order_by(*_ledger_order())
        .limit(1)
        .correlate(Assignment)
        .scalar_subquery()
    )


def assignment_load_options(includes: Iterable[str]) -> List:
    includes = set(includes)
    opts: List = []
    # current reader is derived from the ledger, so "reader" needs the history too
    if includes & {"reader", "readerHistory"}:
        opts.append(selectinload(Assignment.reader_history).selectinload(AssignmentReader.reader))
    if "catalogue" in includes:
        opts.append(selectinload(Assignment.catalogue))
    if "order" in includes:
        opts.append(selectinload(Assignment.order))
    if "status" in includes:
        opts.append(selectinload(Assignment.status))
    if "processedByStaff" in includes:
        opts.append(selectinload(Assignment.processed_by_staff))
    return opts


def check_custody_dates(state: Mapping[str, Any]) -> None:
    """``receptionDate <= sentToReaderDate <= returnedToECADate`` for whichever are set."""
    present = [(f, state.get(f)) for f in CUSTODY_DATES if state.get(f) is not None]
    errors: dict[str, str] = {}
    for i, (earlier, a) in enumerate(present):
        for later, b in present[i + 1:]:
            if a > b:
                errors[wire_name(later)] = f"must be on or after {wire_name(earlier)}"
    if errors:
        raise ValidationError("Invalid custody dates", errors=errors)


async def _lock_assignment(session: AsyncSession, assignment_id: int) -> Assignment:
    obj = await session.scalar(
        sa.select(Assignment).where(Assignment.id == assignment_id).with_for_update()
    )
    if obj is None:
        raise NotFoundError("Assignment", assignment_id)
    return obj


async def _lock_order(session: AsyncSession, order_id: int) -> Order:
    # serializes with order deletion, which takes the same lock
    order = await session.scalar(sa.select(Order).where(Order.id == order_id).with_for_update())
    if order is None:
        raise InvalidReferenceError("orderId", order_id)
    return order


async def _check_refs(session: AsyncSession, data: Mapping[str, Any]) -> None:
    models = {
        "order_id": Order,
        "catalogue_id": Book,
        "status_id": Status,
        "processed_by_staff_id": User,
        "reader_id": User,
    }
    await require_refs(session, {k: (m, data[k]) for k, m in models.items() if k in data})


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def get_assignment(
    session: AsyncSession,
    assignment_id: int,
    includes: Iterable[str] = ASSIGNMENT_DETAILED_DEFAULTS,
) -> Assignment:
    stmt = (
        sa.select(Assignment)
        .where(Assignment.id == assignment_id)
        .options(*assignment_load_options(includes))
        .execution_options(populate_existing=True)
    )
    obj = await session.scalar(stmt)
    if obj is None:
        raise NotFoundError("Assignment", assignment_id)
    return obj


async def list_assignments(
    session: AsyncSession,
    params: PageParams,
    *,
    order_id: Optional[int] = None,
    status_id: Optional[int] = None,
    reader_id: Optional[int] = None,
) -> Tuple[List[Assignment], int]:
    conds: List = []
    if order_id is not None:
        conds.append(Assignment.order_id == order_id)
    if status_id is not None:
        conds.append(Assignment.status_id == status_id)
    if reader_id is not None:
        conds.append(current_reader_id_subquery() == reader_id)

    total = await session.scalar(sa.select(sa.func.count(Assignment.id)).where(*conds)) or 0
    stmt = (
        sa.select(Assignment)
        .where(*conds)
        .options(*assignment_load_options({"reader", "catalogue", "status"}))
        .order_by(Assignment.id.desc())
        .offset(params.offset)
        .limit(params.limit)
    )
    return list((await session.scalars(stmt)).all()), total


async def reader_history(session: AsyncSession, assignment_id: int) -> List[AssignmentReader]:
    """Full ledger for one assignment, most recent first."""
    exists = await session.scalar(sa.select(Assignment.id).where(Assignment.id == assignment_id))
    if exists is None:
        raise NotFoundError("Assignment", assignment_id)
    stmt = (
        sa.select(AssignmentReader)
        .where(AssignmentReader.assignment_id == assignment_id)
        .options(selectinload(AssignmentReader.reader))
        .order_by(*_ledger_order())
    )
    return list((await session.scalars(stmt)).all())


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

async def create_assignment(
    session: AsyncSession,
    payload: AssignmentCreate,
    *,
    actor_id: Optional[int] = None,
) -> Assignment:
    """Create an assignment and, when ``readerId`` is given, its first ledger row.

    Nothing is copied from the order; status and staff are set independently.
    """
    data = payload.model_dump()
    reader_id = data.pop("reader_id")

    async with unit_of_work(session, "assignment.create", wrap_unexpected=True):
        await _lock_order(session, data["order_id"])
        await _check_refs(session, {**data, "reader_id": reader_id})
        check_custody_dates(data)

        obj = Assignment(**data)
        session.add(obj)
        await session.flush()
        if reader_id is not None:
            session.add(AssignmentReader(
                assignment_id=obj.id,
                reader_id=reader_id,
                assigned_date=utcnow(),
                notes=INITIAL_ASSIGNMENT_NOTE,
            ))
        assignment_id = obj.id

    log.info("assignment.create id=%s order=%s reader=%s actor=%s",
             assignment_id, data["order_id"], reader_id, actor_id)
    return await get_assignment(session, assignment_id)


async def patch_assignment(session: AsyncSession, assignment_id: int, payload: AssignmentPatch) -> Assignment:
    """Omitted fields are untouched; explicit nulls clear nullable columns."""
    data = payload.model_dump(exclude_unset=True)

    async with unit_of_work(session, "assignment.patch", assignment_id):
        reject_nulls(data, ("order_id", "catalogue_id"))
        obj = await _lock_assignment(session, assignment_id)
        if "order_id" in data and data["order_id"] != obj.order_id:
            await _lock_order(session, data["order_id"])
        merged = {f: getattr(obj, f) for f in ASSIGNMENT_FIELDS}
        merged.update(data)
        await _check_refs(session, data)
        check_custody_dates(merged)
        apply(obj, data)

    log.info("assignment.patch id=%s fields=%s", assignment_id, sorted(data))
    return await get_assignment(session, assignment_id)


async def delete_assignment(session: AsyncSession, assignment_id: int) -> int:
    """Delete an assignment and its reader ledger; returns the number of ledger rows removed."""
    async with unit_of_work(session, "assignment.delete", assignment_id):
        obj = await _lock_assignment(session, assignment_id)
        # loaded so the ORM cascade removes the rows, whatever the backend enforces
        await session.refresh(obj, ["reader_history"])
        removed = len(obj.reader_history)
        await session.delete(obj)

    log.info("assignment.delete id=%s readerHistoryRemoved=%s", assignment_id, removed)
    return removed


async def assign_reader(session: AsyncSession, assignment_id: int, payload: ReaderAssign) -> AssignmentReader:
    """Append a ledger row making ``readerId`` the current reader.

    Runs under a lock on the assignment row so concurrent reassignments are
    serialized; assigning the reader who is already current is a conflict.
    """
    async with unit_of_work(session, "assignment.reassign", assignment_id, wrap_unexpected=True):
        await _lock_assignment(session, assignment_id)
        await _check_refs(session, {"reader_id": payload.reader_id})

        current = await session.scalar(
            sa.select(AssignmentReader.reader_id)
            .where(AssignmentReader.assignment_id == assignment_id)
            .order_by(*_ledger_order())
            .limit(1)
        )
        if current == payload.reader_id:
            raise ConflictError(
                f"Reader {payload.reader_id} is already assigned to assignment {assignment_id}",
                extra={"id": assignment_id, "readerId": payload.reader_id},
            )

        entry = AssignmentReader(
            assignment_id=assignment_id,
            reader_id=payload.reader_id,
            assigned_date=utcnow(),
            notes=payload.notes,
        )
        session.add(entry)
        await session.flush()
        entry_id = entry.id

    log.info("assignment.reassign id=%s reader=%s previous=%s", assignment_id, payload.reader_id, current)
    return await session.scalar(
        sa.select(AssignmentReader)
        .where(AssignmentReader.id == entry_id)
        .options(selectinload(AssignmentReader.reader))
        .execution_options(populate_existing=True)
    )
