from __future__ import annotations

from typing import Optional

from fastapi import Query

from ECA.core.config import settings
from ECA.schemas.common import PageParams


def page_params(
    page: int = Query(1, ge=1, description="1-indexed page number"),
    limit: Optional[int] = Query(None, ge=1, description="Page size, capped at MAX_PAGE_SIZE"),
) -> PageParams:
    size = min(limit or settings.DEFAULT_PAGE_SIZE, settings.MAX_PAGE_SIZE)
    return PageParams(page=page, limit=size)
