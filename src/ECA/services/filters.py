# src/ECA/services/filters.py
"""
Order list predicates.

``OrderFilter`` is the structured filter request; ``build_order_conditions``
turns it into a list of SQL expressions that are AND-ed by the caller. Every
field is optional and ``None`` means "no constraint".

Date-driven filters are evaluated against the ``now`` passed in, so "late" and
"retard" are always relative to the moment of the read.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Iterable, List, Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from ECA.core.config import settings
from ECA.db.models import Book, BillingStatus, DeliveryMethod, Order, OverdueFilter, Status, User
from ECA.errors import ValidationError
from ECA.schemas.base import APIModel, UTCDatetime

LEGACY_FILTERS = ("all", "needsReturn", "late")


class OrderFilter(APIModel):
    search: Optional[str] = None
    status_id: Optional[int] = None
    billing_status: Optional[BillingStatus] = None
    is_duplication: Optional[bool] = None
    needs_return: Optional[bool] = None
    late: Optional[bool] = None
    overdue: OverdueFilter = OverdueFilter.ANY
    date_from: Optional[UTCDatetime] = None
    date_to: Optional[UTCDatetime] = None
    aveugle_id: Optional[int] = None
    catalogue_id: Optional[int] = None
    delivery_method: Optional[DeliveryMethod] = None


def resolve_overdue(retard: Iterable[bool] = (), overdue: Optional[OverdueFilter] = None) -> OverdueFilter:
    """Fold the legacy ``retard`` flag(s) and the ``overdue`` enum into one value.

    ``retard=true`` together with ``retard=false`` is rejected, as is an
    ``overdue`` value that disagrees with ``retard``.
    """
    flags = set(retard)
    if flags == {True, False}:
        raise ValidationError(
            "retard=true and retard=false are mutually exclusive",
            errors={"retard": "cannot be both true and false"},
        )
    from_flag: Optional[OverdueFilter] = None
    if flags:
        from_flag = OverdueFilter.ONLY if True in flags else OverdueFilter.EXCLUDE

    if from_flag and overdue and overdue is not OverdueFilter.ANY and overdue is not from_flag:
        raise ValidationError(
            "retard and overdue disagree",
            errors={"overdue": f"conflicts with retard ({from_flag.value})"},
        )
    return from_flag or overdue or OverdueFilter.ANY


def apply_legacy_filter(filt: OrderFilter, legacy: Optional[str]) -> OrderFilter:
    """``filter=all|needsReturn|late`` shorthand used by the old list page."""
    if legacy is None or legacy == "all":
        return filt
    if legacy == "needsReturn":
        return filt.model_copy(update={"needs_return": True})
    if legacy == "late":
        return filt.model_copy(update={"late": True})
    raise ValidationError(
        "Unknown filter",
        errors={"filter": f"must be one of {', '.join(LEGACY_FILTERS)}"},
    )


async def completed_status_id(session: AsyncSession) -> Optional[int]:
    return await session.scalar(
        sa.select(Status.id).where(Status.name == settings.ORDER_COMPLETED_STATUS_NAME)
    )


def needs_return_condition():
    return sa.and_(Order.lent_physical_book.is_(True), Order.closure_date.is_(None))


def late_condition(now: datetime):
    threshold = now - timedelta(days=settings.LATE_THRESHOLD_DAYS)
    return sa.and_(Order.request_received_date < threshold, Order.closure_date.is_(None))


def retard_condition(now: datetime, completed_id: Optional[int]):
    threshold = now - timedelta(days=settings.RETARD_THRESHOLD_DAYS)
    # no completed status configured: nothing counts as completed
    not_completed = Order.status_id != completed_id if completed_id is not None else sa.true()
    return sa.and_(Order.request_received_date < threshold, not_completed)


def search_condition(term: str):
    pattern = f"%{term}%"
    return sa.or_(
        Order.aveugle.has(
            sa.or_(
                User.name.ilike(pattern),
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
                User.email.ilike(pattern),
            )
        ),
        Order.catalogue.has(sa.or_(Book.title.ilike(pattern), Book.author.ilike(pattern))),
    )


async def build_order_conditions(session: AsyncSession, filt: OrderFilter, now: datetime) -> List:
    conds: List = []

    if filt.search and filt.search.strip():
        conds.append(search_condition(filt.search.strip()))
    if filt.status_id is not None:
        conds.append(Order.status_id == filt.status_id)
    if filt.billing_status is not None:
        conds.append(Order.billing_status == filt.billing_status)
    if filt.is_duplication is not None:
        conds.append(Order.is_duplication.is_(filt.is_duplication))
    if filt.aveugle_id is not None:
        conds.append(Order.aveugle_id == filt.aveugle_id)
    if filt.catalogue_id is not None:
        conds.append(Order.catalogue_id == filt.catalogue_id)
    if filt.delivery_method is not None:
        conds.append(Order.delivery_method == filt.delivery_method)
    if filt.date_from is not None:
        conds.append(Order.request_received_date >= filt.date_from)
    if filt.date_to is not None:
        conds.append(Order.request_received_date <= filt.date_to)

    if filt.needs_return is not None:
        cond = needs_return_condition()
        conds.append(cond if filt.needs_return else sa.not_(cond))
    if filt.late is not None:
        cond = late_condition(now)
        conds.append(cond if filt.late else sa.not_(cond))

    if filt.overdue is not OverdueFilter.ANY:
        cond = retard_condition(now, await completed_status_id(session))
        # exclude is the literal complement so the two views partition the set
        conds.append(cond if filt.overdue is OverdueFilter.ONLY else sa.not_(cond))

    return conds
