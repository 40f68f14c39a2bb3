from __future__ import annotations

from datetime import datetime
from typing import Optional, List, ClassVar

import sqlalchemy as sa
from sqlalchemy import ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ECA.db.base import Base, IntPKMixin, UTCDateTime
from ._helpers import ts_cols


class Assignment(IntPKMixin, Base):
    __tablename__ = "assignments"

    NOTE: ClassVar[str] = (
        "description=Unit of recording work for an order. Tracks physical book custody "
        "(reception, sent to reader, returned to ECA). The reader is derived from the "
        "append-only assignment_readers ledger, never stored here."
    )

    __table_args__ = (
        sa.CheckConstraint(
            "reception_date IS NULL OR sent_to_reader_date IS NULL OR reception_date <= sent_to_reader_date",
            name="reception_before_sent",
        ),
        sa.CheckConstraint(
            "sent_to_reader_date IS NULL OR returned_to_eca_date IS NULL OR sent_to_reader_date <= returned_to_eca_date",
            name="sent_before_returned",
        ),
        sa.CheckConstraint(
            "reception_date IS NULL OR returned_to_eca_date IS NULL OR reception_date <= returned_to_eca_date",
            name="reception_before_returned",
        ),
    )

    catalogue_id: Mapped[int] = mapped_column(ForeignKey("books.id", ondelete="RESTRICT"), nullable=False)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id", ondelete="RESTRICT"), nullable=False, index=True)
    status_id: Mapped[Optional[int]] = mapped_column(ForeignKey("statuses.id", ondelete="RESTRICT"))
    reception_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime())
    sent_to_reader_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime())
    returned_to_eca_date: Mapped[Optional[datetime]] = mapped_column(UTCDateTime())
    processed_by_staff_id: Mapped[Optional[int]] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"))
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)

    created_at, updated_at = ts_cols()

    order = relationship("Order", back_populates="assignments")
    catalogue = relationship("Book")
    status = relationship("Status")
    processed_by_staff = relationship("User", foreign_keys=[processed_by_staff_id])

    # history is owned by the assignment: deleting it removes the ledger
    reader_history: Mapped[List["AssignmentReader"]] = relationship(
        "AssignmentReader",
        back_populates="assignment",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="(AssignmentReader.assigned_date.desc(), AssignmentReader.id.desc())",
    )

    @property
    def current_reader_entry(self) -> Optional["AssignmentReader"]:
        """Most recent ledger row; requires ``reader_history`` to be loaded."""
        return self.reader_history[0] if self.reader_history else None
