from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional, List, ClassVar

import sqlalchemy as sa
from sqlalchemy import ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ECA.db.base import Base, IntPKMixin, UTCDateTime, Money, utcnow
from ._helpers import ts_cols


class Bill(IntPKMixin, Base):
    __tablename__ = "bills"

    NOTE: ClassVar[str] = (
        "description=Invoice aggregating the cost of one or more orders for one patron. "
        "Has its own state (billing_states); order billing_status follows it on payment."
    )

    __table_args__ = (
        sa.CheckConstraint(
            "issue_date IS NULL OR issue_date >= creation_date",
            name="issue_after_creation",
        ),
        sa.CheckConstraint(
            "payment_date IS NULL OR issue_date IS NULL OR payment_date >= issue_date",
            name="payment_after_issue",
        ),
        sa.CheckConstraint("invoice_amount >= 0", name="amount_non_negative"),
    )

    client_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    state_id: Mapped[int] = mapped_column(ForeignKey("billing_states.id", ondelete="RESTRICT"), nullable=False, index=True)
    creation_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    issue_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime())
    payment_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime())
    invoice_amount: Mapped[Decimal] = mapped_column(Money, nullable=False)

    created_at, updated_at = ts_cols()

    client = relationship("User")
    state = relationship("BillingState")
    orders: Mapped[List["Order"]] = relationship(
        "Order",
        back_populates="bill",
        order_by="Order.id",
        passive_deletes="all",
    )
