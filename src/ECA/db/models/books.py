from __future__ import annotations

from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from ECA.db.base import Base, IntPKMixin


class Book(IntPKMixin, Base):
    """Catalogue entry: a title eligible for recording. Read-only from the order core."""
    __tablename__ = "books"

    title: Mapped[str] = mapped_column(sa.String(500), nullable=False)
    author: Mapped[Optional[str]] = mapped_column(sa.String(255))
    isbn: Mapped[Optional[str]] = mapped_column(sa.String(32))
    reading_duration_minutes: Mapped[Optional[int]] = mapped_column(sa.Integer)
