"""
Parcel enumerations.
"""

import enum


class ParcelStatus(str, enum.Enum):
    """
    Parcel status enumeration.

    Status flow:
        pending → in-transit → delivered
        pending and in-transit can also move to cancelled
    """
    PENDING = "pending"
    IN_TRANSIT = "in-transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


class PaymentMethod(str, enum.Enum):
    CASH = "Cash"
    CARD = "Card"


def enum_values(enum_cls):
    """Persist enum values (e.g. "in-transit") rather than member names."""
    return [member.value for member in enum_cls]
