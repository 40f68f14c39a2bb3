from __future__ import annotations

from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from ECA.db.base import Base, IntPKMixin


class User(IntPKMixin, Base):
    """Patrons ("aveugle"), readers and staff. Owned by the user registry; read-only here."""
    __tablename__ = "users"

    name: Mapped[Optional[str]] = mapped_column(sa.String(255))
    first_name: Mapped[Optional[str]] = mapped_column(sa.String(120))
    last_name: Mapped[Optional[str]] = mapped_column(sa.String(120))
    email: Mapped[Optional[str]] = mapped_column(sa.String(255), unique=True)
    role: Mapped[str] = mapped_column(sa.String(32), nullable=False, server_default=sa.text("'user'"), default="user")
    is_available: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, server_default=sa.true(), default=True)
