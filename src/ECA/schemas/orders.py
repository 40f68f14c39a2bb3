from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import Field, field_validator

from ECA.db.models.enums import BillingStatus, DeliveryMethod, QueryMode
from .assignments import dump_assignment
from .base import APIModel, Money, PositiveId, UTCDatetime
from .reference import BookRef, MediaFormatOut, StaffRef, StatusRef, UserRef

ORDER_INCLUDE_RELATIONS = (
    "aveugle", "catalogue", "status", "mediaFormat", "processedByStaff", "bill", "assignments",
)
ORDER_DETAILED_DEFAULTS = ("aveugle", "catalogue", "status", "mediaFormat", "processedByStaff")
# list rows resolve display names only
ORDER_LIST_INCLUDES = frozenset({"aveugle", "catalogue", "status", "mediaFormat"})


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

class _BillManaged(APIModel):
    """``billingStatus`` and ``billId`` move only through the bill endpoints."""
    billing_status: Optional[BillingStatus] = Field(default=None, exclude=True)
    bill_id: Optional[PositiveId] = Field(default=None, exclude=True)

    @field_validator("billing_status", "bill_id", mode="before")
    @classmethod
    def _set_by_bills(cls, value: Any) -> Any:
        raise ValueError("read-only here; use POST /api/bills/{id}/orders or POST /api/bills/{id}/pay")


class OrderCreate(_BillManaged):
    aveugle_id: PositiveId
    catalogue_id: PositiveId
    request_received_date: UTCDatetime
    status_id: PositiveId
    media_format_id: PositiveId
    delivery_method: DeliveryMethod
    is_duplication: bool = False
    lent_physical_book: bool = False
    processed_by_staff_id: Optional[PositiveId] = None
    created_date: Optional[UTCDatetime] = None
    closure_date: Optional[UTCDatetime] = None
    cost: Optional[Money] = None
    notes: Optional[str] = None


class OrderReplace(OrderCreate):
    """Full replace: omitted optional fields are written as null.

    ``createdDate`` is the exception; when omitted the stored intake timestamp is kept.
    """


class OrderPatch(_BillManaged):
    aveugle_id: Optional[PositiveId] = None
    catalogue_id: Optional[PositiveId] = None
    request_received_date: Optional[UTCDatetime] = None
    status_id: Optional[PositiveId] = None
    media_format_id: Optional[PositiveId] = None
    delivery_method: Optional[DeliveryMethod] = None
    is_duplication: Optional[bool] = None
    lent_physical_book: Optional[bool] = None
    processed_by_staff_id: Optional[PositiveId] = None
    created_date: Optional[UTCDatetime] = None
    closure_date: Optional[UTCDatetime] = None
    cost: Optional[Money] = None
    notes: Optional[str] = None


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------

class OrderBasicOut(APIModel):
    id: int
    aveugle_id: int
    catalogue_id: int
    request_received_date: datetime
    status_id: int
    delivery_method: DeliveryMethod
    billing_status: BillingStatus
    closure_date: Optional[datetime] = None


class OrderDetailedOut(OrderBasicOut):
    is_duplication: bool
    media_format_id: int
    processed_by_staff_id: Optional[int] = None
    created_date: datetime
    cost: Optional[Decimal] = None
    bill_id: Optional[int] = None
    lent_physical_book: bool
    notes: Optional[str] = None
    updated_at: Optional[datetime] = None


class OrderFullOut(OrderDetailedOut):
    created_at: Optional[datetime] = None
    needs_return: bool = False


class BillRef(APIModel):
    id: int
    state_id: int
    creation_date: datetime
    issue_date: Optional[datetime] = None
    payment_date: Optional[datetime] = None
    invoice_amount: Decimal


_ORDER_MODELS = {
    QueryMode.BASIC: OrderBasicOut,
    QueryMode.DETAILED: OrderDetailedOut,
    QueryMode.FULL: OrderFullOut,
}


def _ref(model: type[APIModel], obj: Any) -> Optional[dict[str, Any]]:
    return model.model_validate(obj).dump() if obj is not None else None


def dump_order(order, mode: QueryMode = QueryMode.DETAILED, includes: frozenset[str] = frozenset()) -> dict[str, Any]:
    """Serialize an Order to a JSON-safe camelCase dict.

    Relations are only touched when named in ``includes``; the caller is
    responsible for having eager-loaded them.
    """
    data = _ORDER_MODELS[mode].model_validate(order).dump()

    if "aveugle" in includes:
        data["aveugle"] = _ref(UserRef, order.aveugle)
    if "catalogue" in includes:
        data["catalogue"] = _ref(BookRef, order.catalogue)
    if "status" in includes:
        data["status"] = _ref(StatusRef, order.status)
    if "mediaFormat" in includes:
        data["mediaFormat"] = _ref(MediaFormatOut, order.media_format)
    if "processedByStaff" in includes:
        data["processedByStaff"] = _ref(StaffRef, order.processed_by_staff)
    if "bill" in includes:
        data["bill"] = _ref(BillRef, order.bill)
    if "assignments" in includes:
        data["assignments"] = [
            dump_assignment(a, QueryMode.BASIC, frozenset({"reader", "status"}))
            for a in order.assignments
        ]
    return data
