# src/ECA/api/routers/bills.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ECA.api.deps import page_params
from ECA.auth import Principal, require_auth, require_staff
from ECA.db import get_session
from ECA.schemas.bills import BillAttachOrders, BillCreate, BillIssue, BillPatch, BillPay, dump_bill
from ECA.schemas.common import Page, PageParams
from ECA.services import bills as svc

router = APIRouter(prefix="/api/bills", tags=["bills"])


@router.get("")
async def list_bills(
    params: PageParams = Depends(page_params),
    search: Optional[str] = None,
    state_id: Optional[int] = Query(None, alias="stateId"),
    client_id: Optional[int] = Query(None, alias="clientId"),
    session: AsyncSession = Depends(get_session),
) -> dict:
    rows, total = await svc.list_bills(session, params, search=search, state_id=state_id, client_id=client_id)
    return Page.build([dump_bill(b) for b in rows], total, params).dump()


@router.get("/{bill_id}")
async def get_bill(bill_id: int, session: AsyncSession = Depends(get_session)) -> dict:
    return dump_bill(await svc.get_bill(session, bill_id), with_orders=True)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_bill(
    payload: BillCreate,
    _user: Principal = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
) -> dict:
    bill = await svc.create_bill(session, payload)
    return {"message": "Bill created", "bill": dump_bill(bill, with_orders=True)}


@router.patch("/{bill_id}")
async def patch_bill(
    bill_id: int,
    payload: BillPatch,
    _user: Principal = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
) -> dict:
    bill = await svc.patch_bill(session, bill_id, payload)
    return {"message": "Bill updated", "bill": dump_bill(bill, with_orders=True)}


@router.post("/{bill_id}/orders")
async def attach_orders(
    bill_id: int,
    payload: BillAttachOrders,
    _user: Principal = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
) -> dict:
    bill, attached = await svc.attach_orders(session, bill_id, payload.order_ids)
    return {"message": "Orders attached", "bill": dump_bill(bill, with_orders=True), "ordersAttached": attached}


@router.post("/{bill_id}/issue")
async def issue_bill(
    bill_id: int,
    payload: Optional[BillIssue] = None,
    _user: Principal = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
) -> dict:
    bill = await svc.issue_bill(session, bill_id, payload or BillIssue())
    return {"message": "Bill issued", "bill": dump_bill(bill, with_orders=True)}


@router.post("/{bill_id}/pay")
async def pay_bill(
    bill_id: int,
    payload: Optional[BillPay] = None,
    user: Principal = Depends(require_staff),
    session: AsyncSession = Depends(get_session),
) -> dict:
    bill, updated = await svc.mark_paid(session, bill_id, payload or BillPay(), actor_id=user.user_id)
    return {"message": "Bill marked as paid", "bill": dump_bill(bill, with_orders=True), "ordersUpdated": updated}


@router.delete("/{bill_id}")
async def delete_bill(
    bill_id: int,
    _user: Principal = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
) -> dict:
    deleted = await svc.delete_bill(session, bill_id)
    return {"message": "Bill deleted", "deletedId": deleted}
