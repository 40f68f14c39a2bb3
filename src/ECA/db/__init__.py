# src/ECA/db/__init__.py
# The engine is built on first use of the session module, not on package import
from .base import Base


async def get_session():
    from .session import get_session as _get
    async for session in _get():
        yield session


__all__ = ["Base", "get_session"]
