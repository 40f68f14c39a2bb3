# src/ECA/tests/test_filters.py
"""Service-level checks of the predicate builder and the write-side invariants."""
from __future__ import annotations

import itertools
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from ECA.db.models import BillingStatus, DeliveryMethod, Order, OverdueFilter, QueryMode
from ECA.errors import ValidationError
from ECA.schemas.common import PageParams
from ECA.schemas.orders import ORDER_DETAILED_DEFAULTS, ORDER_INCLUDE_RELATIONS
from ECA.services.assignments import check_custody_dates
from ECA.services.filters import OrderFilter, resolve_overdue
from ECA.services.orders import check_order_invariants, list_orders, parse_includes

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)
ALL = PageParams(page=1, limit=100)


def _at(days: int) -> datetime:
    return NOW - timedelta(days=days)


# ---------------------------------------------------------------------------
# retard partition over a grid of ages x statuses
# ---------------------------------------------------------------------------

@pytest.mark.anyio
async def test_retard_partitions_every_order(session, seed):
    ages = (0, 29, 31, 89, 90, 91, 365)
    statuses = (seed.pending, seed.in_progress, seed.completed)
    for age, status_id in itertools.product(ages, statuses):
        session.add(Order(
            aveugle_id=seed.patron,
            catalogue_id=seed.book,
            request_received_date=_at(age),
            status_id=status_id,
            media_format_id=seed.media_format,
            delivery_method=DeliveryMethod.ENVOI,
            created_date=_at(age),
        ))
    await session.commit()

    everything, total = await list_orders(session, OrderFilter(), ALL, now=NOW)
    only, _ = await list_orders(session, OrderFilter(overdue=OverdueFilter.ONLY), ALL, now=NOW)
    exclude, _ = await list_orders(session, OrderFilter(overdue=OverdueFilter.EXCLUDE), ALL, now=NOW)

    all_ids = {o.id for o in everything}
    only_ids = {o.id for o in only}
    exclude_ids = {o.id for o in exclude}

    assert total == len(ages) * len(statuses)
    assert only_ids.isdisjoint(exclude_ids)
    assert only_ids | exclude_ids == all_ids
    # strictly older than 90 days and not completed
    assert len(only_ids) == 2 * 2
    assert all(o.status_id != seed.completed for o in only)


# ---------------------------------------------------------------------------
# overdue flag folding
# ---------------------------------------------------------------------------

@pytest.mark.parametrize(
    "retard, overdue, expected",
    [
        ((), None, OverdueFilter.ANY),
        ((True,), None, OverdueFilter.ONLY),
        ((False,), None, OverdueFilter.EXCLUDE),
        ((True, True), None, OverdueFilter.ONLY),
        ((), OverdueFilter.EXCLUDE, OverdueFilter.EXCLUDE),
        ((True,), OverdueFilter.ONLY, OverdueFilter.ONLY),
        ((True,), OverdueFilter.ANY, OverdueFilter.ONLY),
    ],
)
def test_resolve_overdue(retard, overdue, expected):
    assert resolve_overdue(retard, overdue) is expected


@pytest.mark.parametrize(
    "retard, overdue",
    [((True, False), None), ((True,), OverdueFilter.EXCLUDE), ((False,), OverdueFilter.ONLY)],
)
def test_resolve_overdue_rejects_contradictions(retard, overdue):
    with pytest.raises(ValidationError):
        resolve_overdue(retard, overdue)


# ---------------------------------------------------------------------------
# include parsing
# ---------------------------------------------------------------------------

def test_parse_includes_by_mode():
    valid, defaults = ORDER_INCLUDE_RELATIONS, ORDER_DETAILED_DEFAULTS
    assert parse_includes(None, QueryMode.BASIC, valid, defaults) == frozenset()
    assert parse_includes("bill, x", QueryMode.BASIC, valid, defaults) == {"bill"}
    assert parse_includes(None, QueryMode.DETAILED, valid, defaults) == set(defaults)
    assert parse_includes("assignments", QueryMode.DETAILED, valid, defaults) == set(defaults) | {"assignments"}
    assert parse_includes("all", QueryMode.BASIC, valid, defaults) == set(valid)
    assert parse_includes(None, QueryMode.FULL, valid, defaults) == set(valid)


# ---------------------------------------------------------------------------
# invariant grids
# ---------------------------------------------------------------------------

OFFSETS = (-2, -1, 0, 1, 2)


@pytest.mark.parametrize("closure_offset", OFFSETS + (None,))
def test_closure_never_before_created(closure_offset):
    created = NOW
    closure = None if closure_offset is None else NOW + timedelta(days=closure_offset)
    state = {"created_date": created, "closure_date": closure, "billing_status": BillingStatus.UNBILLED}
    if closure is not None and closure < created:
        with pytest.raises(ValidationError) as exc:
            check_order_invariants(state)
        assert "closureDate" in exc.value.errors
    else:
        check_order_invariants(state)


@pytest.mark.parametrize("status", list(BillingStatus))
@pytest.mark.parametrize("bill_id", [None, 7])
def test_paid_requires_bill(status, bill_id):
    state = {"created_date": NOW, "billing_status": status, "bill_id": bill_id, "cost": Decimal("1.00")}
    if status is BillingStatus.PAID and bill_id is None:
        with pytest.raises(ValidationError):
            check_order_invariants(state)
    else:
        check_order_invariants(state)


@pytest.mark.parametrize("reception, sent, returned", list(itertools.product((None, 0, 1, 2), repeat=3)))
def test_custody_dates_ordered(reception, sent, returned):
    def day(n):
        return None if n is None else NOW + timedelta(days=n)

    state = {
        "reception_date": day(reception),
        "sent_to_reader_date": day(sent),
        "returned_to_eca_date": day(returned),
    }
    present = [v for v in (reception, sent, returned) if v is not None]
    if present == sorted(present):
        check_custody_dates(state)
    else:
        with pytest.raises(ValidationError):
            check_custody_dates(state)
