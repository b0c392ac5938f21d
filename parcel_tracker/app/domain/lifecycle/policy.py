"""
Parcel Lifecycle Policy.

Rules for status transitions and for how a user's parcel set is filtered,
searched, counted and ordered for display. Everything here is pure: it
works on any objects exposing `status`, `tracking_number`, `title` and
`created_at` (ORM rows or response schemas alike).
"""

from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set, Union
from parcel_tracker.app.models.parcel_enums import ParcelStatus

ALL_KEY = "all"

# forward_only: pending → in-transit → delivered, anything open → cancelled
FORWARD_TRANSITIONS: Mapping[ParcelStatus, Set[ParcelStatus]] = {
    ParcelStatus.PENDING: {ParcelStatus.IN_TRANSIT, ParcelStatus.DELIVERED, ParcelStatus.CANCELLED},
    ParcelStatus.IN_TRANSIT: {ParcelStatus.DELIVERED, ParcelStatus.CANCELLED},
    ParcelStatus.DELIVERED: set(),
    ParcelStatus.CANCELLED: set(),
}


class TransitionPolicy:
    """
    Decides whether a status change is allowed.

    Modes:
        permissive: any change between two different statuses is allowed
        forward_only: only the moves listed in FORWARD_TRANSITIONS
    """

    MODES = ("permissive", "forward_only")

    def __init__(self, mode: str = "permissive"):
        if mode not in self.MODES:
            raise ValueError(f"Unknown transition mode: {mode}")
        self.mode = mode

    @staticmethod
    def is_noop(current: ParcelStatus, new: ParcelStatus) -> bool:
        """A same-status update would only duplicate the last history entry."""
        return ParcelStatus(current) == ParcelStatus(new)

    def allowed_targets(self, current: ParcelStatus) -> Set[ParcelStatus]:
        current = ParcelStatus(current)
        if self.mode == "permissive":
            return {status for status in ParcelStatus if status != current}
        return set(FORWARD_TRANSITIONS[current])

    def is_allowed(self, current: ParcelStatus, new: ParcelStatus) -> bool:
        return ParcelStatus(new) in self.allowed_targets(current)


def parse_status_key(key: Optional[str]) -> Union[str, ParcelStatus]:
    """
    Normalize a filter key: blank or "all" means no filter.

    Raises:
        ValueError: for anything that is neither "all" nor a status value
    """
    if not key or key == ALL_KEY:
        return ALL_KEY
    return ParcelStatus(key)


def filter_by_status(parcels: Iterable, key: Optional[str] = ALL_KEY) -> List:
    """Exact status match, or everything for the "all" bucket."""
    bucket = parse_status_key(key)
    if bucket == ALL_KEY:
        return list(parcels)
    return [parcel for parcel in parcels if ParcelStatus(parcel.status) == bucket]


def status_counts(parcels: Sequence) -> Dict[str, int]:
    """Badge counts: one entry for "all" plus one per status value."""
    counts = {ALL_KEY: len(parcels)}
    for status in ParcelStatus:
        counts[status.value] = 0
    for parcel in parcels:
        counts[ParcelStatus(parcel.status).value] += 1
    return counts


def search_parcels(parcels: Iterable, query: Optional[str]) -> List:
    """Case-insensitive substring match on tracking number or title."""
    needle = (query or "").lower()
    if not needle:
        return list(parcels)
    return [
        parcel for parcel in parcels
        if needle in (parcel.tracking_number or "").lower()
        or needle in (parcel.title or "").lower()
    ]


def sort_newest_first(parcels: Iterable) -> List:
    """Order by created_at descending (ties keep their input order)."""
    return sorted(parcels, key=lambda parcel: parcel.created_at, reverse=True)


def parcel_stats(parcels: Sequence) -> Dict[str, int]:
    """Profile dashboard figures."""
    counts = status_counts(parcels)
    return {
        "total": counts[ALL_KEY],
        "pending": counts[ParcelStatus.PENDING.value],
        "in_transit": counts[ParcelStatus.IN_TRANSIT.value],
        "delivered": counts[ParcelStatus.DELIVERED.value],
    }
