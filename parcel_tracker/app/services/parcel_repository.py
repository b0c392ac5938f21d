"""
Parcel Repository.

Create, fetch and status-update operations against the document store,
plus tracking-number generation. Every public method either returns a
normalized result or raises one `AppException` subclass.
"""

import logging
import random
import re
import string
import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from parcel_tracker.app.backend.client import BackendClient
from parcel_tracker.app.core.exceptions import (
    ConcurrentUpdateError,
    InputValidationError,
    ResourceNotFoundError,
    collaborator_errors,
)
from parcel_tracker.app.domain.lifecycle.policy import TransitionPolicy, sort_newest_first
from parcel_tracker.app.models.parcel import Parcel, ParcelStatusEvent
from parcel_tracker.app.models.parcel_enums import ParcelStatus
from parcel_tracker.app.schemas.parcel import ParcelCreate

logger = logging.getLogger(__name__)

TRACKING_PREFIX = "TRK"
TRACKING_SUFFIX_LENGTH = 8
TRACKING_ALPHABET = string.digits + string.ascii_uppercase

# Decimal with optional exponent, signed Infinity, or unsigned 0x/0o/0b literals
NUMERIC_TEXT = re.compile(
    r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?"
    r"|[+-]?Infinity"
    r"|0[xX][0-9a-fA-F]+|0[oO][0-7]+|0[bB][01]+"
)


def generate_tracking_number(rng: Optional[random.Random] = None) -> str:
    """
    Produce "TRK" + 8 uppercase base-36 characters taken from a fresh UUID4.

    Base 36 over the UUID's random low bits gives about 2.8e12 codes,
    against 4.3e9 for the first 8 hex digits.

    Never checked against existing records. Pass `rng` for a reproducible
    sequence; otherwise the OS random source is used.
    """
    if rng is None:
        token = uuid.uuid4()
    else:
        token = uuid.UUID(int=rng.getrandbits(128), version=4)
    value = token.int
    chars = []
    for _ in range(TRACKING_SUFFIX_LENGTH):
        value, remainder = divmod(value, len(TRACKING_ALPHABET))
        chars.append(TRACKING_ALPHABET[remainder])
    return TRACKING_PREFIX + "".join(chars)


def _is_numeric(text: str) -> bool:
    """Same acceptance as a JavaScript `Number(text)` that is not NaN."""
    return NUMERIC_TEXT.fullmatch(text.strip()) is not None


def validate_parcel_input(data: ParcelCreate) -> Dict[str, str]:
    """
    Check mandatory fields and the payment amount.

    Returns:
        Mapping of field name -> message; empty when the input is valid
    """
    errors: Dict[str, str] = {}
    if not data.title.strip():
        errors["title"] = "Title is required"
    if not data.sender.strip():
        errors["sender"] = "Sender is required"
    if not data.recipient.strip():
        errors["recipient"] = "Recipient is required"
    if not data.recipient_address.strip():
        errors["recipient_address"] = "Recipient address is required"

    amount = data.payment_info.amount
    if amount and amount.strip() and not _is_numeric(amount):
        errors["payment_info.amount"] = "Amount must be a number"
    return errors


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ParcelRepository:
    """Parcel data access bound to one backend client."""

    def __init__(self, backend: BackendClient, policy: Optional[TransitionPolicy] = None):
        self._backend = backend
        self.policy = policy or TransitionPolicy(backend.settings.status_transition_mode)

    async def create_parcel(self, user_id: str, data: ParcelCreate) -> str:
        """
        Validate and persist a new parcel.

        Returns:
            The generated tracking number (for display to the user)

        Raises:
            InputValidationError: listing every failing field
            PersistenceError / NetworkError: when the store rejects the write
        """
        errors = validate_parcel_input(data)
        if not user_id:
            errors["user_id"] = "You must be logged in to create a parcel"
        if errors:
            raise InputValidationError(errors)

        now = _utcnow()
        tracking_number = generate_tracking_number()
        payment = data.payment_info

        parcel = Parcel(
            user_id=user_id,
            tracking_number=tracking_number,
            title=data.title.strip(),
            description=data.description,
            sender=data.sender.strip(),
            recipient=data.recipient.strip(),
            recipient_address=data.recipient_address.strip(),
            weight=data.weight or "0",
            dimensions=data.dimensions or "0x0x0",
            photos=list(data.photos),
            payment_info={
                "amount": payment.amount.strip() or "0",
                "method": payment.method.value,
                "status": payment.status or "pending",
            },
            status=ParcelStatus.PENDING,
            created_at=now,
            updated_at=now,
        )
        parcel.status_history.append(
            ParcelStatusEvent(
                status=ParcelStatus.PENDING,
                timestamp=now,
                location=self._backend.settings.initial_status_location,
            )
        )

        with collaborator_errors("create parcel"):
            async with self._backend.session() as db:
                db.add(parcel)
                await db.commit()

        logger.info("Parcel created id=%s tracking=%s user=%s", parcel.id, tracking_number, user_id)
        return tracking_number

    async def list_parcels_for_user(self, user_id: str) -> List[Parcel]:
        """
        All of a user's parcels, newest first.

        Filtering is by owner only; ordering happens here rather than in the
        query so the store needs no composite index. No pagination.
        """
        with collaborator_errors("list parcels"):
            async with self._backend.session() as db:
                result = await db.execute(select(Parcel).where(Parcel.user_id == user_id))
                parcels = result.scalars().all()
        return sort_newest_first(parcels)

    async def _load(self, db: AsyncSession, parcel_id: int, user_id: Optional[str]) -> Parcel:
        parcel = await db.get(Parcel, parcel_id)
        # Another user's parcel is reported exactly like a missing one
        if parcel is None or (user_id is not None and parcel.user_id != user_id):
            raise ResourceNotFoundError("Parcel", parcel_id)
        return parcel

    async def get_parcel(self, parcel_id: int, user_id: Optional[str] = None) -> Parcel:
        with collaborator_errors("get parcel"):
            async with self._backend.session() as db:
                return await self._load(db, parcel_id, user_id)

    async def find_by_tracking_number(self, tracking_number: str, user_id: Optional[str] = None) -> Parcel:
        normalized = (tracking_number or "").strip().upper()
        with collaborator_errors("find parcel"):
            async with self._backend.session() as db:
                query = select(Parcel).where(Parcel.tracking_number == normalized)
                if user_id is not None:
                    query = query.where(Parcel.user_id == user_id)
                result = await db.execute(query)
                parcel = result.scalar_one_or_none()
        if parcel is None:
            raise ResourceNotFoundError("Parcel", normalized)
        return parcel

    async def update_parcel_status(
        self,
        parcel_id: int,
        new_status: ParcelStatus,
        location: str = "",
        user_id: Optional[str] = None,
        expected_version: Optional[int] = None,
    ) -> Parcel:
        """
        Append a status entry and move the parcel to `new_status`.

        The top-level status, `updated_at` and the new history entry are
        written in one transaction. Re-submitting the current status is a
        no-op and returns the parcel untouched.

        Raises:
            InputValidationError: unknown status, or a move the policy forbids
            ResourceNotFoundError: parcel missing (or not owned by user_id)
            ConcurrentUpdateError: the parcel changed since it was read
        """
        try:
            new_status = ParcelStatus(new_status)
        except ValueError:
            raise InputValidationError({"status": f"Unknown status: {new_status}"})

        with collaborator_errors("update parcel status"):
            async with self._backend.session() as db:
                parcel = await self._load(db, parcel_id, user_id)

                if expected_version is not None and parcel.version != expected_version:
                    raise ConcurrentUpdateError("Parcel", parcel_id)

                if self.policy.is_noop(parcel.status, new_status):
                    logger.info("Parcel %s already %s; nothing to update", parcel_id, new_status.value)
                    return parcel

                if not self.policy.is_allowed(parcel.status, new_status):
                    raise InputValidationError(
                        {"status": f"Cannot change status from {parcel.status.value} to {new_status.value}"}
                    )

                previous = parcel.status
                now = _utcnow()
                parcel.status = new_status
                parcel.updated_at = now
                parcel.status_history.append(
                    ParcelStatusEvent(status=new_status, timestamp=now, location=location or "")
                )
                try:
                    await db.commit()
                except StaleDataError as exc:
                    raise ConcurrentUpdateError("Parcel", parcel_id) from exc

        logger.info(
            "Parcel %s status %s -> %s (%s)", parcel_id, previous.value, new_status.value, location
        )
        return parcel

    async def add_photo(self, parcel_id: int, user_id: str, data: bytes) -> Parcel:
        """Upload a photo to the blob store and append its URL to the parcel."""
        if not data:
            raise InputValidationError({"photo": "Photo is empty"})

        key = f"parcels/{parcel_id}/{uuid.uuid4().hex}"
        with collaborator_errors("add parcel photo"):
            async with self._backend.session() as db:
                parcel = await self._load(db, parcel_id, user_id)
                url = await self._backend.blobs.upload(key, data)
                parcel.photos = [*parcel.photos, url]
                parcel.updated_at = _utcnow()
                try:
                    await db.commit()
                except StaleDataError as exc:
                    raise ConcurrentUpdateError("Parcel", parcel_id) from exc
        return parcel
