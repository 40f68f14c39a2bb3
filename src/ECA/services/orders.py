# src/ECA/services/orders.py
from __future__ import annotations

from typing import Any, Iterable, List, Mapping, Optional, Tuple

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ECA.app_logger import get_logger
from ECA.db.base import utcnow
from ECA.db.models import (
    Assignment,
    AssignmentReader,
    BillingStatus,
    Book,
    MediaFormat,
    Order,
    QueryMode,
    Status,
    User,
)
from ECA.errors import ConflictError, NotFoundError, ValidationError
from ECA.schemas.common import PageParams
from ECA.schemas.orders import (
    ORDER_DETAILED_DEFAULTS,
    ORDER_INCLUDE_RELATIONS,
    ORDER_LIST_INCLUDES,
    OrderCreate,
    OrderPatch,
    OrderReplace,
)
from ._helpers import apply, reject_nulls, require_refs, unit_of_work
from .filters import OrderFilter, build_order_conditions

log = get_logger("orders")

# columns that can never be null once an order exists
NON_NULLABLE = (
    "aveugle_id",
    "catalogue_id",
    "request_received_date",
    "status_id",
    "media_format_id",
    "delivery_method",
    "is_duplication",
    "lent_physical_book",
    "created_date",
)

ORDER_FIELDS = tuple(OrderCreate.model_fields)


# ---------------------------------------------------------------------------
# Read-mode helpers (shared with the assignments service)
# ---------------------------------------------------------------------------

def parse_mode(raw: Optional[str]) -> QueryMode:
    if raw is None or raw == "":
        return QueryMode.DETAILED
    try:
        return QueryMode(raw)
    except ValueError:
        raise ValidationError(
            "Invalid mode",
            errors={"mode": "must be one of basic, detailed, full"},
        ) from None


def parse_includes(
    raw: Optional[str],
    mode: QueryMode,
    valid: Iterable[str],
    defaults: Iterable[str],
) -> frozenset[str]:
    """Comma-separated relation names; unknown names are ignored, ``all`` selects every relation.

    ``detailed`` adds its default relation set, ``full`` resolves everything.
    """
    valid = frozenset(valid)
    if mode is QueryMode.FULL:
        return valid
    requested = {token.strip() for token in (raw or "").split(",") if token.strip()}
    if "all" in requested:
        return valid
    selected = requested & valid
    if mode is QueryMode.DETAILED:
        selected |= set(defaults)
    return frozenset(selected)


def order_load_options(includes: Iterable[str]) -> List:
    loaders = {
        "aveugle": lambda: selectinload(Order.aveugle),
        "catalogue": lambda: selectinload(Order.catalogue),
        "status": lambda: selectinload(Order.status),
        "mediaFormat": lambda: selectinload(Order.media_format),
        "processedByStaff": lambda: selectinload(Order.processed_by_staff),
        "bill": lambda: selectinload(Order.bill),
        "assignments": lambda: selectinload(Order.assignments).options(
            selectinload(Assignment.status),
            selectinload(Assignment.reader_history).selectinload(AssignmentReader.reader),
        ),
    }
    return [loaders[name]() for name in includes if name in loaders]


# ---------------------------------------------------------------------------
# Invariants
# ---------------------------------------------------------------------------

def check_order_invariants(state: Mapping[str, Any]) -> None:
    """Validate the merged (post-write) state of an order."""
    errors: dict[str, str] = {}
    closure, created = state.get("closure_date"), state.get("created_date")
    if closure is not None and created is not None and closure < created:
        errors["closureDate"] = "must be on or after createdDate"
    if state.get("billing_status") == BillingStatus.PAID and state.get("bill_id") is None:
        errors["billingStatus"] = "PAID requires billId"
    cost = state.get("cost")
    if cost is not None and cost < 0:
        errors["cost"] = "must be non-negative"
    if errors:
        raise ValidationError("Invalid data", errors=errors)


def _check_billed_patron(order: Order, data: Mapping[str, Any]) -> None:
    """A billed order stays with the patron its bill was issued to."""
    if order.bill_id is not None and data.get("aveugle_id", order.aveugle_id) != order.aveugle_id:
        raise ConflictError(
            f"Order {order.id} is attached to bill {order.bill_id}; its patron cannot change",
            extra={"id": order.id, "billId": order.bill_id},
        )


async def _check_refs(session: AsyncSession, data: Mapping[str, Any]) -> None:
    models = {
        "aveugle_id": User,
        "catalogue_id": Book,
        "status_id": Status,
        "media_format_id": MediaFormat,
        "processed_by_staff_id": User,
    }
    await require_refs(session, {k: (m, data[k]) for k, m in models.items() if k in data})


async def _lock_order(session: AsyncSession, order_id: int) -> Order:
    order = await session.scalar(sa.select(Order).where(Order.id == order_id).with_for_update())
    if order is None:
        raise NotFoundError("Order", order_id)
    return order


# ---------------------------------------------------------------------------
# Operations
# ---------------------------------------------------------------------------

async def get_order(
    session: AsyncSession,
    order_id: int,
    includes: Iterable[str] = ORDER_DETAILED_DEFAULTS,
) -> Order:
    stmt = (
        sa.select(Order)
        .where(Order.id == order_id)
        .options(*order_load_options(includes))
        .execution_options(populate_existing=True)
    )
    order = await session.scalar(stmt)
    if order is None:
        raise NotFoundError("Order", order_id)
    return order


async def list_orders(
    session: AsyncSession,
    filt: OrderFilter,
    params: PageParams,
    *,
    now=None,
) -> Tuple[List[Order], int]:
    conds = await build_order_conditions(session, filt, now or utcnow())

    total = await session.scalar(sa.select(sa.func.count(Order.id)).where(*conds)) or 0
    stmt = (
        sa.select(Order)
        .where(*conds)
        .options(*order_load_options(ORDER_LIST_INCLUDES))
        .order_by(Order.request_received_date.desc(), Order.id.desc())
        .offset(params.offset)
        .limit(params.limit)
    )
    rows = list((await session.scalars(stmt)).all())
    return rows, total


async def create_order(session: AsyncSession, payload: OrderCreate, *, actor_id: Optional[int] = None) -> Order:
    data = payload.model_dump()
    if data["created_date"] is None:
        data["created_date"] = utcnow()

    async with unit_of_work(session, "order.create"):
        await _check_refs(session, data)
        check_order_invariants(data)
        order = Order(**data)
        session.add(order)
        await session.flush()
        order_id = order.id

    log.info("order.create id=%s aveugle=%s catalogue=%s actor=%s",
             order_id, data["aveugle_id"], data["catalogue_id"], actor_id)
    return await get_order(session, order_id)


async def replace_order(session: AsyncSession, order_id: int, payload: OrderReplace) -> Order:
    """Full replace; omitted optional fields become null, ``createdDate`` is kept when omitted."""
    data = payload.model_dump()

    async with unit_of_work(session, "order.replace", order_id):
        order = await _lock_order(session, order_id)
        if data["created_date"] is None:
            data["created_date"] = order.created_date
        _check_billed_patron(order, data)
        await _check_refs(session, data)
        check_order_invariants(data)
        apply(order, data)

    log.info("order.replace id=%s", order_id)
    return await get_order(session, order_id)


async def patch_order(session: AsyncSession, order_id: int, payload: OrderPatch) -> Order:
    """Partial update: only fields present in the request are written."""
    data = payload.model_dump(exclude_unset=True)

    async with unit_of_work(session, "order.patch", order_id):
        reject_nulls(data, NON_NULLABLE)
        order = await _lock_order(session, order_id)
        _check_billed_patron(order, data)
        merged = {f: getattr(order, f) for f in ORDER_FIELDS}
        merged.update(data)
        await _check_refs(session, data)
        check_order_invariants(merged)
        apply(order, data)

    log.info("order.patch id=%s fields=%s", order_id, sorted(data))
    return await get_order(session, order_id)


async def delete_order(session: AsyncSession, order_id: int) -> int:
    """Delete an order that has no assignments.

    The count is taken under the row lock, in the same transaction as the
    delete; assignment creation locks the same row.
    """
    async with unit_of_work(session, "order.delete", order_id):
        order = await _lock_order(session, order_id)
        count = await session.scalar(
            sa.select(sa.func.count(Assignment.id)).where(Assignment.order_id == order_id)
        ) or 0
        if count:
            raise ConflictError(
                f"Order {order_id} has {count} assignment(s); delete them first",
                extra={"id": order_id, "assignmentCount": count},
            )
        await session.delete(order)

    log.info("order.delete id=%s", order_id)
    return order_id
