from __future__ import annotations

import enum


class DeliveryMethod(str, enum.Enum):
    """How the finished recording reaches the patron."""
    RETRAIT = "RETRAIT"                # pickup at the ECA office
    ENVOI = "ENVOI"                    # sent by mail
    NON_APPLICABLE = "NON_APPLICABLE"


class BillingStatus(str, enum.Enum):
    UNBILLED = "UNBILLED"
    BILLED = "BILLED"
    PAID = "PAID"


class OverdueFilter(str, enum.Enum):
    """Tri-state form of the long-window overdue ("retard") filter."""
    ONLY = "only"
    EXCLUDE = "exclude"
    ANY = "any"


class QueryMode(str, enum.Enum):
    BASIC = "basic"
    DETAILED = "detailed"
    FULL = "full"


def enum_values(e: type[enum.Enum]) -> list[str]:
    return [m.value for m in e]
