from .base import APIModel, Money, PositiveId, UTCDatetime
from .common import DeleteResponse, ErrorBody, Page, PageParams

__all__ = [
    "APIModel",
    "Money",
    "PositiveId",
    "UTCDatetime",
    "DeleteResponse",
    "ErrorBody",
    "Page",
    "PageParams",
]
