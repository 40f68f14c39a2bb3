from __future__ import annotations

from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy import ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ECA.db.base import Base, IntPKMixin, UTCDateTime, utcnow


class AssignmentReader(IntPKMixin, Base):
    """Append-only ledger row: ``reader_id`` was put on ``assignment_id`` at ``assigned_date``."""
    __tablename__ = "assignment_readers"

    __table_args__ = (
        sa.Index("ix_assignment_readers_assignment_assigned", "assignment_id", "assigned_date"),
    )

    assignment_id: Mapped[int] = mapped_column(
        ForeignKey("assignments.id", ondelete="CASCADE"), nullable=False
    )
    reader_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True)
    assigned_date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False, default=utcnow)
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)

    assignment = relationship("Assignment", back_populates="reader_history")
    reader = relationship("User")
