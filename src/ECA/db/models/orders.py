from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Optional, List, ClassVar

import sqlalchemy as sa
from sqlalchemy import ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ECA.db.base import Base, IntPKMixin, UTCDateTime, Money, utcnow
from ._helpers import ts_cols
from .enums import BillingStatus, DeliveryMethod, enum_values


class Order(IntPKMixin, Base):
    __tablename__ = "orders"

    NOTE: ClassVar[str] = (
        "description=One patron request for one catalogue title. "
        "Owns lifecycle status, duplication flag, delivery method and billing linkage. "
        "Cannot be deleted while assignments reference it."
    )

    __table_args__ = (
        sa.CheckConstraint(
            "closure_date IS NULL OR closure_date >= created_date",
            name="closure_after_created",
        ),
        sa.CheckConstraint(
            "billing_status <> 'PAID' OR bill_id IS NOT NULL",
            name="paid_requires_bill",
        ),
        sa.CheckConstraint("cost IS NULL OR cost >= 0", name="cost_non_negative"),
        sa.Index("ix_orders_request_received_date", "request_received_date"),
        {"comment": "Patron requests for recorded titles."},
    )

    aveugle_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    catalogue_id: Mapped[int] = mapped_column(ForeignKey("books.id", ondelete="RESTRICT"), nullable=False, index=True)
    request_received_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    status_id: Mapped[int] = mapped_column(ForeignKey("statuses.id", ondelete="RESTRICT"), nullable=False, index=True)
    is_duplication: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False, server_default=sa.false())
    media_format_id: Mapped[int] = mapped_column(ForeignKey("media_formats.id", ondelete="RESTRICT"), nullable=False)
    delivery_method: Mapped[DeliveryMethod] = mapped_column(
        sa.Enum(DeliveryMethod, name="delivery_method", native_enum=False, length=20,
                values_callable=enum_values, validate_strings=True),
        nullable=False,
    )
    lent_physical_book: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False, server_default=sa.false())
    processed_by_staff_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    created_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    closure_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime())
    cost: Mapped[Optional[Decimal]] = mapped_column(Money)
    billing_status: Mapped[BillingStatus] = mapped_column(
        sa.Enum(BillingStatus, name="billing_status", native_enum=False, length=16,
                values_callable=enum_values, validate_strings=True),
        nullable=False,
        default=BillingStatus.UNBILLED,
        server_default=BillingStatus.UNBILLED.value,
        index=True,
    )
    bill_id: Mapped[Optional[int]] = mapped_column(ForeignKey("bills.id", ondelete="RESTRICT"), index=True)
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)

    created_at, updated_at = ts_cols()

    aveugle = relationship("User", foreign_keys=[aveugle_id])
    catalogue = relationship("Book", foreign_keys=[catalogue_id])
    status = relationship("Status")
    media_format = relationship("MediaFormat")
    processed_by_staff = relationship("User", foreign_keys=[processed_by_staff_id])
    bill: Mapped[Optional["Bill"]] = relationship("Bill", back_populates="orders")

    # no delete cascade: an order with assignments must not be removed
    assignments: Mapped[List["Assignment"]] = relationship(
        "Assignment",
        back_populates="order",
        order_by="Assignment.id.desc()",
        passive_deletes="all",
    )

    @property
    def needs_return(self) -> bool:
        """A lent paper book is still out."""
        return bool(self.lent_physical_book) and self.closure_date is None
