from __future__ import annotations

from typing import Any, Generic, List, Optional, TypeVar

from pydantic import Field

from .base import APIModel, ID

T = TypeVar("T")


class PageParams(APIModel):
    page: int = Field(1, ge=1, description="1-indexed page number")
    limit: int = Field(10, ge=1, description="Items per page")

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class Page(APIModel, Generic[T]):
    items: List[T]
    total: int
    page: int
    limit: int
    total_pages: int
    has_more: bool

    @classmethod
    def build(cls, items: List[Any], total: int, params: PageParams) -> "Page":
        total_pages = (total + params.limit - 1) // params.limit if total else 0
        return cls(
            items=items,
            total=total,
            page=params.page,
            limit=params.limit,
            total_pages=total_pages,
            has_more=params.page * params.limit < total,
        )


class ErrorBody(APIModel):
    message: str
    code: str
    errors: Optional[dict[str, str]] = None


class DeleteResponse(APIModel):
    message: str
    deleted_id: ID
