from __future__ import annotations

from datetime import datetime
from typing import Any, Optional

from pydantic import Field

from ECA.db.models.enums import QueryMode
from .base import APIModel, PositiveId, UTCDatetime
from .reference import BookRef, ReaderRef, StaffRef, StatusRef

# relation name -> needs eager loading; "readerHistory" is the full ledger
ASSIGNMENT_INCLUDE_RELATIONS = ("reader", "catalogue", "order", "status", "processedByStaff", "readerHistory")
ASSIGNMENT_DETAILED_DEFAULTS = ("reader", "catalogue", "order", "status", "processedByStaff")


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------

class AssignmentCreate(APIModel):
    order_id: PositiveId
    catalogue_id: PositiveId
    status_id: Optional[PositiveId] = None
    reception_date: Optional[UTCDatetime] = None
    sent_to_reader_date: Optional[UTCDatetime] = None
    returned_to_eca_date: Optional[UTCDatetime] = Field(default=None, alias="returnedToECADate")
    processed_by_staff_id: Optional[PositiveId] = None
    notes: Optional[str] = None
    # optional first reader, recorded in the history ledger
    reader_id: Optional[PositiveId] = None


class AssignmentPatch(APIModel):
    """Omitted field: untouched. Explicit null: cleared (where the column allows it)."""
    catalogue_id: Optional[PositiveId] = None
    order_id: Optional[PositiveId] = None
    status_id: Optional[PositiveId] = None
    reception_date: Optional[UTCDatetime] = None
    sent_to_reader_date: Optional[UTCDatetime] = None
    returned_to_eca_date: Optional[UTCDatetime] = Field(default=None, alias="returnedToECADate")
    processed_by_staff_id: Optional[PositiveId] = None
    notes: Optional[str] = None


class ReaderAssign(APIModel):
    reader_id: PositiveId
    notes: Optional[str] = None


# ---------------------------------------------------------------------------
# Outputs
# ---------------------------------------------------------------------------

class AssignmentReaderOut(APIModel):
    id: int
    assignment_id: int
    reader_id: int
    assigned_date: datetime
    notes: Optional[str] = None
    reader: Optional[ReaderRef] = None


class OrderRef(APIModel):
    id: int
    aveugle_id: int
    status_id: int
    request_received_date: datetime
    closure_date: Optional[datetime] = None


class AssignmentBasicOut(APIModel):
    id: int
    catalogue_id: int
    order_id: int
    status_id: Optional[int] = None
    reception_date: Optional[datetime] = None
    sent_to_reader_date: Optional[datetime] = None
    returned_to_eca_date: Optional[datetime] = Field(default=None, alias="returnedToECADate")


class AssignmentDetailedOut(AssignmentBasicOut):
    processed_by_staff_id: Optional[int] = None
    notes: Optional[str] = None
    updated_at: Optional[datetime] = None


class AssignmentFullOut(AssignmentDetailedOut):
    created_at: Optional[datetime] = None


_ASSIGNMENT_MODELS = {
    QueryMode.BASIC: AssignmentBasicOut,
    QueryMode.DETAILED: AssignmentDetailedOut,
    QueryMode.FULL: AssignmentFullOut,
}


def current_reader(assignment) -> Optional[dict[str, Any]]:
    entry = assignment.current_reader_entry
    if entry is None:
        return None
    return ReaderRef.model_validate(entry.reader).dump() if entry.reader is not None else {"id": entry.reader_id}


def dump_assignment(assignment, mode: QueryMode = QueryMode.DETAILED, includes: frozenset[str] = frozenset()) -> dict[str, Any]:
    """Serialize an Assignment; every relation named in ``includes`` must already be loaded."""
    data = _ASSIGNMENT_MODELS[mode].model_validate(assignment).dump()

    if "reader" in includes:
        data["currentReader"] = current_reader(assignment)
    if "readerHistory" in includes:
        data["readerHistory"] = [AssignmentReaderOut.model_validate(r).dump() for r in assignment.reader_history]
    if "catalogue" in includes:
        data["catalogue"] = BookRef.model_validate(assignment.catalogue).dump() if assignment.catalogue else None
    if "order" in includes:
        data["order"] = OrderRef.model_validate(assignment.order).dump() if assignment.order else None
    if "status" in includes:
        data["status"] = StatusRef.model_validate(assignment.status).dump() if assignment.status else None
    if "processedByStaff" in includes:
        staff = assignment.processed_by_staff
        data["processedByStaff"] = StaffRef.model_validate(staff).dump() if staff else None
    return data
