# src/ECA/api/routers/orders.py
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ECA.api.deps import page_params
from ECA.auth import Principal, require_auth, require_staff
from ECA.db import get_session
from ECA.db.models import BillingStatus, DeliveryMethod, OverdueFilter, QueryMode
from ECA.schemas.common import Page, PageParams
from ECA.schemas.orders import (
    ORDER_DETAILED_DEFAULTS,
    ORDER_INCLUDE_RELATIONS,
    ORDER_LIST_INCLUDES,
    OrderCreate,
    OrderPatch,
    OrderReplace,
    dump_order,
)
from ECA.services import orders as svc
from ECA.services.filters import OrderFilter, apply_legacy_filter, resolve_overdue

router = APIRouter(prefix="/api/orders", tags=["orders"])

_DEFAULTS = frozenset(ORDER_DETAILED_DEFAULTS)


def _out(order) -> dict:
    return dump_order(order, QueryMode.DETAILED, _DEFAULTS)


@router.get("")
async def list_orders(
    params: PageParams = Depends(page_params),
    search: Optional[str] = None,
    status_id: Optional[int] = Query(None, alias="statusId"),
    billing_status: Optional[BillingStatus] = Query(None, alias="billingStatus"),
    is_duplication: Optional[bool] = Query(None, alias="isDuplication"),
    needs_return: Optional[bool] = Query(None, alias="needsReturn"),
    late: Optional[bool] = None,
    retard: List[bool] = Query(default=[]),
    overdue: Optional[OverdueFilter] = None,
    date_from: Optional[datetime] = Query(None, alias="dateFrom"),
    date_to: Optional[datetime] = Query(None, alias="dateTo"),
    aveugle_id: Optional[int] = Query(None, alias="aveugleId"),
    catalogue_id: Optional[int] = Query(None, alias="catalogueId"),
    delivery_method: Optional[DeliveryMethod] = Query(None, alias="deliveryMethod"),
    legacy_filter: Optional[str] = Query(None, alias="filter"),
    session: AsyncSession = Depends(get_session),
) -> dict:
    filt = OrderFilter(
        search=search,
        status_id=status_id,
        billing_status=billing_status,
        is_duplication=is_duplication,
        needs_return=needs_return,
        late=late,
        overdue=resolve_overdue(retard, overdue),
        date_from=date_from,
        date_to=date_to,
        aveugle_id=aveugle_id,
        catalogue_id=catalogue_id,
        delivery_method=delivery_method,
    )
    filt = apply_legacy_filter(filt, legacy_filter)
    rows, total = await svc.list_orders(session, filt, params)
    items = [dump_order(o, QueryMode.BASIC, ORDER_LIST_INCLUDES) for o in rows]
    return Page.build(items, total, params).dump()


@router.get("/{order_id}")
async def get_order(
    order_id: int,
    mode: Optional[str] = None,
    include: Optional[str] = None,
    session: AsyncSession = Depends(get_session),
) -> dict:
    query_mode = svc.parse_mode(mode)
    includes = svc.parse_includes(include, query_mode, ORDER_INCLUDE_RELATIONS, ORDER_DETAILED_DEFAULTS)
    order = await svc.get_order(session, order_id, includes)
    return dump_order(order, query_mode, includes)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_order(
    payload: OrderCreate,
    user: Principal = Depends(require_staff),
    session: AsyncSession = Depends(get_session),
) -> dict:
    order = await svc.create_order(session, payload, actor_id=user.user_id)
    return {"message": "Order created", "order": _out(order)}


@router.put("/{order_id}")
async def replace_order(
    order_id: int,
    payload: OrderReplace,
    _user: Principal = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
) -> dict:
    order = await svc.replace_order(session, order_id, payload)
    return {"message": "Order updated", "order": _out(order)}


@router.patch("/{order_id}")
async def patch_order(
    order_id: int,
    payload: OrderPatch,
    _user: Principal = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
) -> dict:
    order = await svc.patch_order(session, order_id, payload)
    return {"message": "Order updated", "order": _out(order)}


@router.delete("/{order_id}")
async def delete_order(
    order_id: int,
    _user: Principal = Depends(require_auth),
    session: AsyncSession = Depends(get_session),
) -> dict:
    deleted = await svc.delete_order(session, order_id)
    return {"message": "Order deleted", "deletedId": deleted}
