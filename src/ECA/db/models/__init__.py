# src/ECA/db/models/__init__.py
# Import every model so Base.metadata is complete for create_all / Alembic.
from .enums import BillingStatus, DeliveryMethod, OverdueFilter, QueryMode
from .reference import Status, MediaFormat, BillingState
from .users import User
from .books import Book
from .orders import Order
from .assignments import Assignment
from .assignment_readers import AssignmentReader
from .bills import Bill

__all__ = [
    "BillingStatus",
    "DeliveryMethod",
    "OverdueFilter",
    "QueryMode",
    "Status",
    "MediaFormat",
    "BillingState",
    "User",
    "Book",
    "Order",
    "Assignment",
    "AssignmentReader",
    "Bill",
]
