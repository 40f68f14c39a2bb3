from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Annotated, Any, Union

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ID = Union[int, str]

_CENT = Decimal("0.01")


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# ISO-8601 in, aware UTC datetime out; naive input is read as UTC.
UTCDatetime = Annotated[datetime, AfterValidator(_as_utc)]

# Exact decimal currency, two places, never negative.
Money = Annotated[
    Decimal,
    Field(ge=0, max_digits=12, decimal_places=2),
    AfterValidator(lambda d: d.quantize(_CENT)),
]

PositiveId = Annotated[int, Field(gt=0)]


class APIModel(BaseModel):
    model_config = ConfigDict(
        from_attributes=True,
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
        use_enum_values=False,
    )

    def dump(self, **kw: Any) -> dict[str, Any]:
        """JSON-safe dict with camelCase keys (dates as ISO strings, money as strings)."""
        return self.model_dump(mode="json", by_alias=True, **kw)
