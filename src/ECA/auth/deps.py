# src/ECA/auth/deps.py
"""
Principal supplied by the upstream session provider.

The gateway in front of this service authenticates the user and forwards
``X-User-Id`` / ``X-User-Role``; this module trusts those headers and only
performs the role checks.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional, Sequence

from fastapi import Depends, Header

from ECA.app_logger import get_logger
from ECA.core.config import settings
from ECA.errors import AuthenticationRequired, PermissionDenied

log = get_logger("auth")


@dataclass(frozen=True)
class Principal:
    user_id: int
    role: str


async def get_current_user(
    x_user_id: Optional[str] = Header(default=None),
    x_user_role: Optional[str] = Header(default=None),
) -> Optional[Principal]:
    if not x_user_id:
        return None
    try:
        user_id = int(x_user_id)
    except ValueError:
        log.warning("rejecting non-integer X-User-Id %r", x_user_id)
        return None
    return Principal(user_id=user_id, role=(x_user_role or "").strip().lower())


async def require_auth(user: Optional[Principal] = Depends(get_current_user)) -> Principal:
    if user is None:
        raise AuthenticationRequired()
    return user


def require_roles(
    *,
    any_of: Sequence[str] | set[str] | frozenset[str] | None = None,
) -> Callable[..., Principal]:
    """Dependency factory: authenticated and holding one of ``any_of`` (default ``STAFF_ROLES``)."""
    allowed = {r.lower() for r in (any_of if any_of is not None else settings.staff_roles)}

    async def _dep(user: Principal = Depends(require_auth)) -> Principal:
        if allowed and user.role not in allowed:
            log.warning("user %s with role %r denied; needs one of %s", user.user_id, user.role, sorted(allowed))
            raise PermissionDenied()
        return user

    return _dep


require_staff = require_roles()
