from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, List, Optional

from pydantic import Field, field_validator

from ECA.db.models.enums import BillingStatus
from .base import APIModel, Money, PositiveId, UTCDatetime
from .reference import BillingStateOut, UserRef


class BillCreate(APIModel):
    client_id: PositiveId
    state_id: PositiveId
    creation_date: UTCDatetime
    issue_date: Optional[UTCDatetime] = None
    payment_date: Optional[UTCDatetime] = None
    invoice_amount: Money


class BillPatch(APIModel):
    state_id: Optional[PositiveId] = None
    creation_date: Optional[UTCDatetime] = None
    issue_date: Optional[UTCDatetime] = None
    invoice_amount: Optional[Money] = None
    # payment goes through mark-paid so the attached orders follow
    payment_date: Optional[UTCDatetime] = Field(default=None, exclude=True)

    @field_validator("payment_date", mode="before")
    @classmethod
    def _paid_via_pay(cls, value: Any) -> Any:
        raise ValueError("read-only here; use POST /api/bills/{id}/pay")


class BillAttachOrders(APIModel):
    order_ids: List[PositiveId] = Field(..., min_length=1)


class BillIssue(APIModel):
    issue_date: Optional[UTCDatetime] = None


class BillPay(APIModel):
    payment_date: Optional[UTCDatetime] = None
    # overrides the configured paid state
    state_id: Optional[PositiveId] = None


class BillOrderRow(APIModel):
    id: int
    catalogue_id: int
    request_received_date: datetime
    cost: Optional[Decimal] = None
    billing_status: BillingStatus


class BillOut(APIModel):
    id: int
    client_id: int
    state_id: int
    creation_date: datetime
    issue_date: Optional[datetime] = None
    payment_date: Optional[datetime] = None
    invoice_amount: Decimal
    updated_at: Optional[datetime] = None


def dump_bill(bill, *, with_orders: bool = False) -> dict[str, Any]:
    """Bill with client and state resolved; ``orders``/``client``/``state`` must be loaded."""
    data = BillOut.model_validate(bill).dump()
    data["client"] = UserRef.model_validate(bill.client).dump() if bill.client else None
    data["state"] = BillingStateOut.model_validate(bill.state).dump() if bill.state else None
    data["orderIds"] = [o.id for o in bill.orders]
    if with_orders:
        data["orders"] = [BillOrderRow.model_validate(o).dump() for o in bill.orders]
    return data
