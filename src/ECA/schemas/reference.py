from __future__ import annotations

from typing import Optional

from .base import APIModel


class StatusOut(APIModel):
    id: int
    name: str
    description: Optional[str] = None
    sort_order: int = 0


class StatusRef(APIModel):
    id: int
    name: str
    description: Optional[str] = None


class MediaFormatOut(APIModel):
    id: int
    name: str
    description: Optional[str] = None


class BillingStateOut(APIModel):
    id: int
    name: str
    description: Optional[str] = None


class UserRef(APIModel):
    id: int
    name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None


class StaffRef(APIModel):
    id: int
    name: Optional[str] = None
    email: Optional[str] = None


class ReaderRef(UserRef):
    is_available: bool = True


class BookRef(APIModel):
    id: int
    title: str
    author: Optional[str] = None
    isbn: Optional[str] = None
    reading_duration_minutes: Optional[int] = None
