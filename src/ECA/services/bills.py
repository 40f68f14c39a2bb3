# src/ECA/services/bills.py
"""
Bill lifecycle: create, attach orders, issue, mark paid, delete.

Attaching and paying touch many order rows; both run as one transaction and
report a ``TransactionError`` (nothing applied) if anything unexpected fails.
"""
from __future__ import annotations

from typing import Any, List, Mapping, Optional, Sequence, Tuple

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ECA.app_logger import get_logger
from ECA.core.config import settings
from ECA.db.base import utcnow
from ECA.db.models import Bill, BillingState, BillingStatus, Order, User
from ECA.errors import ConflictError, InvalidReferenceError, NotFoundError, ValidationError
from ECA.schemas.bills import BillCreate, BillIssue, BillPatch, BillPay
from ECA.schemas.common import PageParams
from ._helpers import apply, reject_nulls, require_refs, unit_of_work

log = get_logger("bills")

BILL_FIELDS = ("client_id", "state_id", "creation_date", "issue_date", "payment_date", "invoice_amount")


def check_bill_dates(state: Mapping[str, Any]) -> None:
    created, issued, paid = state.get("creation_date"), state.get("issue_date"), state.get("payment_date")
    errors: dict[str, str] = {}
    if issued is not None and created is not None and issued < created:
        errors["issueDate"] = "must be on or after creationDate"
    if paid is not None and issued is not None and paid < issued:
        errors["paymentDate"] = "must be on or after issueDate"
    if paid is not None and created is not None and paid < created:
        errors.setdefault("paymentDate", "must be on or after creationDate")
    if errors:
        raise ValidationError("Invalid bill dates", errors=errors)


def _bill_options() -> List:
    return [selectinload(Bill.client), selectinload(Bill.state), selectinload(Bill.orders)]


async def _lock_bill(session: AsyncSession, bill_id: int) -> Bill:
    bill = await session.scalar(sa.select(Bill).where(Bill.id == bill_id).with_for_update())
    if bill is None:
        raise NotFoundError("Bill", bill_id)
    return bill


async def _state_named(session: AsyncSession, name: str) -> BillingState:
    state = await session.scalar(sa.select(BillingState).where(BillingState.name == name))
    if state is None:
        raise InvalidReferenceError("stateId", name, message=f"Billing state {name!r} is not configured")
    return state


async def _paid_state_id(session: AsyncSession) -> Optional[int]:
    return await session.scalar(
        sa.select(BillingState.id).where(BillingState.name == settings.BILL_PAID_STATE_NAME)
    )


async def _is_paid(session: AsyncSession, bill: Bill) -> bool:
    if bill.payment_date is not None:
        return True
    paid_id = await _paid_state_id(session)
    return paid_id is not None and bill.state_id == paid_id


async def _check_state_change(session: AsyncSession, bill: Bill, state_id: int) -> None:
    """A patch may neither enter nor leave the paid state."""
    if await _is_paid(session, bill):
        raise ConflictError(f"Bill {bill.id} is already paid; its state is final", extra={"id": bill.id})
    if state_id == await _paid_state_id(session):
        raise ValidationError(
            "Use POST /api/bills/{id}/pay to mark a bill paid",
            errors={"stateId": "the paid state is set by POST /api/bills/{id}/pay"},
        )


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

async def get_bill(session: AsyncSession, bill_id: int) -> Bill:
    stmt = (
        sa.select(Bill)
        .where(Bill.id == bill_id)
        .options(*_bill_options())
        .execution_options(populate_existing=True)
    )
    bill = await session.scalar(stmt)
    if bill is None:
        raise NotFoundError("Bill", bill_id)
    return bill


async def list_bills(
    session: AsyncSession,
    params: PageParams,
    *,
    search: Optional[str] = None,
    state_id: Optional[int] = None,
    client_id: Optional[int] = None,
) -> Tuple[List[Bill], int]:
    conds: List = []
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        conds.append(Bill.client.has(sa.or_(User.name.ilike(pattern), User.email.ilike(pattern))))
    if state_id is not None:
        conds.append(Bill.state_id == state_id)
    if client_id is not None:
        conds.append(Bill.client_id == client_id)

    total = await session.scalar(sa.select(sa.func.count(Bill.id)).where(*conds)) or 0
    stmt = (
        sa.select(Bill)
        .where(*conds)
        .options(*_bill_options())
        .order_by(Bill.creation_date.desc(), Bill.id.desc())
        .offset(params.offset)
        .limit(params.limit)
    )
    return list((await session.scalars(stmt)).all()), total


# ---------------------------------------------------------------------------
# Writes
# ---------------------------------------------------------------------------

async def create_bill(session: AsyncSession, payload: BillCreate) -> Bill:
    data = payload.model_dump()
    async with unit_of_work(session, "bill.create"):
        await require_refs(session, {
            "client_id": (User, data["client_id"]),
            "state_id": (BillingState, data["state_id"]),
        })
        check_bill_dates(data)
        bill = Bill(**data)
        session.add(bill)
        await session.flush()
        bill_id = bill.id

    log.info("bill.create id=%s client=%s amount=%s", bill_id, data["client_id"], data["invoice_amount"])
    return await get_bill(session, bill_id)


async def patch_bill(session: AsyncSession, bill_id: int, payload: BillPatch) -> Bill:
    """Partial update of state, dates and amount.

    Payment is not a patch: the paid state and ``paymentDate`` are reached only
    through ``mark_paid``, which moves the attached orders with the bill.
    """
    data = payload.model_dump(exclude_unset=True)
    async with unit_of_work(session, "bill.patch", bill_id):
        reject_nulls(data, ("state_id", "creation_date", "invoice_amount"))
        bill = await _lock_bill(session, bill_id)
        merged = {f: getattr(bill, f) for f in BILL_FIELDS}
        merged.update(data)
        if "state_id" in data and data["state_id"] != bill.state_id:
            await require_refs(session, {"state_id": (BillingState, data["state_id"])})
            await _check_state_change(session, bill, data["state_id"])
        check_bill_dates(merged)
        apply(bill, data)

    log.info("bill.patch id=%s fields=%s", bill_id, sorted(data))
    return await get_bill(session, bill_id)


async def attach_orders(session: AsyncSession, bill_id: int, order_ids: Sequence[int]) -> Tuple[Bill, int]:
    """Mark every order BILLED against this bill, all or nothing.

    Every id must resolve, belong to the bill's client and still be UNBILLED
    without a bill.
    """
    ids = list(dict.fromkeys(order_ids))
    if not ids:
        raise ValidationError("Invalid data", errors={"orderIds": "at least one order id is required"})

    async with unit_of_work(session, "bill.attach_orders", bill_id, wrap_unexpected=True):
        bill = await _lock_bill(session, bill_id)
        if await _is_paid(session, bill):
            raise ConflictError(f"Bill {bill_id} is already paid", extra={"id": bill_id})

        orders = list((await session.scalars(
            sa.select(Order).where(Order.id.in_(ids)).order_by(Order.id).with_for_update()
        )).all())

        missing = sorted(set(ids) - {o.id for o in orders})
        if missing:
            raise InvalidReferenceError("orderIds", missing, message=f"Orders not found: {missing}")

        foreign = [o.id for o in orders if o.aveugle_id != bill.client_id]
        if foreign:
            raise ValidationError(
                "Orders belong to a different patron",
                errors={"orderIds": f"orders {foreign} are not for client {bill.client_id}"},
                extra={"orderIds": foreign},
            )

        taken = [o.id for o in orders if o.billing_status != BillingStatus.UNBILLED or o.bill_id is not None]
        if taken:
            raise ConflictError(f"Orders already billed: {taken}", extra={"id": bill_id, "orderIds": taken})

        for o in orders:
            o.billing_status = BillingStatus.BILLED
            o.bill_id = bill.id

    log.info("bill.attach_orders id=%s orders=%s", bill_id, ids)
    return await get_bill(session, bill_id), len(ids)


async def issue_bill(session: AsyncSession, bill_id: int, payload: BillIssue) -> Bill:
    async with unit_of_work(session, "bill.issue", bill_id):
        state = await _state_named(session, settings.BILL_ISSUED_STATE_NAME)
        bill = await _lock_bill(session, bill_id)
        if await _is_paid(session, bill):
            raise ConflictError(f"Bill {bill_id} is already paid", extra={"id": bill_id})
        if bill.issue_date is not None:
            raise ConflictError(f"Bill {bill_id} is already issued", extra={"id": bill_id})

        issue_date = payload.issue_date or utcnow()
        check_bill_dates({"creation_date": bill.creation_date, "issue_date": issue_date})
        bill.issue_date = issue_date
        bill.state_id = state.id

    log.info("bill.issue id=%s", bill_id)
    return await get_bill(session, bill_id)


async def mark_paid(session: AsyncSession, bill_id: int, payload: BillPay, *, actor_id: Optional[int] = None) -> Tuple[Bill, int]:
    """Move the bill to its paid state and every attached order to PAID in one transaction.

    A bill without an issue date is considered issued on the payment date.
    """
    async with unit_of_work(session, "bill.mark_paid", bill_id, wrap_unexpected=True):
        if payload.state_id is not None:
            await require_refs(session, {"state_id": (BillingState, payload.state_id)})
            paid_state_id = payload.state_id
        else:
            paid_state_id = (await _state_named(session, settings.BILL_PAID_STATE_NAME)).id

        bill = await _lock_bill(session, bill_id)
        if await _is_paid(session, bill):
            raise ConflictError(f"Bill {bill_id} is already paid", extra={"id": bill_id})

        payment_date = payload.payment_date or utcnow()
        issue_date = bill.issue_date or payment_date
        check_bill_dates({
            "creation_date": bill.creation_date,
            "issue_date": issue_date,
            "payment_date": payment_date,
        })
        bill.issue_date = issue_date
        bill.payment_date = payment_date
        bill.state_id = paid_state_id

        result = await session.execute(
            sa.update(Order)
            .where(Order.bill_id == bill_id)
            .values(billing_status=BillingStatus.PAID, updated_at=utcnow())
            .execution_options(synchronize_session="fetch")
        )
        updated = result.rowcount or 0

    log.info("bill.mark_paid id=%s orders=%s actor=%s", bill_id, updated, actor_id)
    return await get_bill(session, bill_id), updated


async def delete_bill(session: AsyncSession, bill_id: int) -> int:
    async with unit_of_work(session, "bill.delete", bill_id):
        bill = await _lock_bill(session, bill_id)
        count = await session.scalar(
            sa.select(sa.func.count(Order.id)).where(Order.bill_id == bill_id)
        ) or 0
        if count:
            raise ConflictError(
                f"Bill {bill_id} is referenced by {count} order(s)",
                extra={"id": bill_id, "orderCount": count},
            )
        await session.delete(bill)

    log.info("bill.delete id=%s", bill_id)
    return bill_id
