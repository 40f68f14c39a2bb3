from __future__ import annotations

from typing import Optional, ClassVar

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from ECA.db.base import Base, IntPKMixin


class Status(IntPKMixin, Base):
    __tablename__ = "statuses"

    NOTE: ClassVar[str] = (
        "description=Workflow states shared by orders and assignments. "
        "The vocabulary is operator data; the service only looks up the completed state by name."
    )

    name: Mapped[str] = mapped_column(sa.String(100), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
    sort_order: Mapped[int] = mapped_column(sa.Integer, nullable=False, server_default=sa.text("0"), default=0)


class MediaFormat(IntPKMixin, Base):
    __tablename__ = "media_formats"

    name: Mapped[str] = mapped_column(sa.String(100), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)


class BillingState(IntPKMixin, Base):
    __tablename__ = "billing_states"

    NOTE: ClassVar[str] = "description=Lifecycle of a bill (draft, issued, paid, ...), independent of order billing status."

    name: Mapped[str] = mapped_column(sa.String(100), nullable=False, unique=True)
    description: Mapped[Optional[str]] = mapped_column(sa.Text)
