"""
Integration tests for the parcel repository.

Creation, listing, tracking lookup and the status lifecycle against an
in-memory document store.
"""

import asyncio
import re
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import Text
from sqlalchemy.ext.asyncio import create_async_engine

from parcel_tracker.app.backend.blobs import LocalBlobStore
from parcel_tracker.app.backend.client import BackendClient
from parcel_tracker.app.core.exceptions import (
    ConcurrentUpdateError,
    InputValidationError,
    ResourceNotFoundError,
)
from parcel_tracker.app.domain.lifecycle.policy import TransitionPolicy
from parcel_tracker.app.models.parcel import Parcel, ParcelStatusEvent
from parcel_tracker.app.models.parcel_enums import ParcelStatus
from parcel_tracker.app.schemas.parcel import ParcelCreate, PaymentInfo
from parcel_tracker.app.services.parcel_repository import ParcelRepository, validate_parcel_input

TRACKING_PATTERN = re.compile(r"^TRK[A-Z0-9]{8}$")
USER_ID = "user-1"
OTHER_USER_ID = "user-2"


def parcel_input(**overrides) -> ParcelCreate:
    data = {
        "title": "Phone",
        "sender": "A",
        "recipient": "B",
        "recipient_address": "123 St",
    }
    data.update(overrides)
    return ParcelCreate(**data)


async def create_and_fetch(repo: ParcelRepository, user_id: str = USER_ID, **overrides) -> Parcel:
    tracking_number = await repo.create_parcel(user_id, parcel_input(**overrides))
    return await repo.find_by_tracking_number(tracking_number, user_id)


# Creation

@pytest.mark.asyncio
async def test_create_parcel_seeds_pending_history(parcel_repository):
    parcel = await create_and_fetch(parcel_repository)

    assert parcel.status == ParcelStatus.PENDING
    assert len(parcel.status_history) == 1
    entry = parcel.status_history[0]
    assert entry.status == ParcelStatus.PENDING
    assert entry.location == "Package received at origin"
    assert parcel.version == 1


@pytest.mark.asyncio
async def test_create_parcel_applies_defaults(parcel_repository):
    parcel = await create_and_fetch(parcel_repository)

    assert parcel.weight == "0"
    assert parcel.dimensions == "0x0x0"
    assert parcel.photos == []
    assert parcel.payment_info == {"amount": "0", "method": "Cash", "status": "pending"}
    assert parcel.created_at == parcel.updated_at


@pytest.mark.asyncio
async def test_create_parcel_keeps_supplied_fields(parcel_repository):
    parcel = await create_and_fetch(
        parcel_repository,
        description="Fragile",
        weight="2kg",
        dimensions="10x20x5",
        photos=["file:///a.jpg", "file:///b.jpg"],
        payment_info=PaymentInfo(amount="12.50", method="Card"),
    )

    assert parcel.description == "Fragile"
    assert parcel.photos == ["file:///a.jpg", "file:///b.jpg"]
    assert parcel.payment_info["amount"] == "12.50"
    assert parcel.payment_info["method"] == "Card"


@pytest.mark.asyncio
async def test_create_parcel_reports_every_missing_field(parcel_repository):
    with pytest.raises(InputValidationError) as exc_info:
        await parcel_repository.create_parcel(
            USER_ID, ParcelCreate(title="  ", payment_info=PaymentInfo(amount="abc"))
        )

    fields = exc_info.value.field_errors
    assert set(fields) == {"title", "sender", "recipient", "recipient_address", "payment_info.amount"}
    assert fields["payment_info.amount"] == "Amount must be a number"
    assert await parcel_repository.list_parcels_for_user(USER_ID) == []


@pytest.mark.asyncio
async def test_create_parcel_requires_signed_in_user(parcel_repository):
    with pytest.raises(InputValidationError) as exc_info:
        await parcel_repository.create_parcel("", parcel_input())
    assert "user_id" in exc_info.value.field_errors


@pytest.mark.asyncio
async def test_create_then_list_returns_the_parcel(parcel_repository):
    tracking_number = await parcel_repository.create_parcel(USER_ID, parcel_input())
    assert TRACKING_PATTERN.match(tracking_number)

    parcels = await parcel_repository.list_parcels_for_user(USER_ID)
    assert len(parcels) == 1
    parcel = parcels[0]
    assert parcel.tracking_number == tracking_number
    assert (parcel.title, parcel.sender, parcel.recipient, parcel.recipient_address) == (
        "Phone", "A", "B", "123 St"
    )
    assert parcel.status == ParcelStatus.PENDING
    assert parcel.user_id == USER_ID


@pytest.mark.parametrize("amount", ["12.50", " 7 ", "-3", ".5", "1e3", "0x10", "0b101", "Infinity"])
def test_amount_accepts_numeric_text(amount):
    assert validate_parcel_input(parcel_input(payment_info=PaymentInfo(amount=amount))) == {}


@pytest.mark.parametrize("amount", ["abc", "1_000", "NaN", "inf", "12abc", "-0x10", "1.2.3"])
def test_amount_rejects_non_numeric_text(amount):
    errors = validate_parcel_input(parcel_input(payment_info=PaymentInfo(amount=amount)))
    assert errors == {"payment_info.amount": "Amount must be a number"}


@pytest.mark.asyncio
async def test_long_free_text_fields_are_stored_whole(parcel_repository):
    long_text = "x" * 5000
    parcel = await create_and_fetch(
        parcel_repository,
        title=long_text,
        description=long_text,
        sender=long_text,
        recipient=long_text,
        recipient_address=long_text,
        weight=long_text,
        dimensions=long_text,
    )

    assert parcel.title == parcel.recipient_address == parcel.dimensions == long_text
    updated = await parcel_repository.update_parcel_status(parcel.id, ParcelStatus.IN_TRANSIT, long_text)
    assert updated.status_history[-1].location == long_text


def test_free_text_columns_are_unbounded():
    columns = Parcel.__table__.c
    for name in ("title", "description", "sender", "recipient", "recipient_address", "weight", "dimensions"):
        assert isinstance(columns[name].type, Text), name
    assert isinstance(ParcelStatusEvent.__table__.c.location.type, Text)


# Listing

@pytest.mark.asyncio
async def test_list_is_newest_first_and_scoped_to_owner(backend, parcel_repository):
    base = datetime(2026, 3, 1, tzinfo=timezone.utc)
    offsets = [2, 0, 3, 1]
    async with backend.session() as db:
        for offset in offsets:
            stamp = base + timedelta(hours=offset)
            parcel = Parcel(
                user_id=USER_ID,
                tracking_number=f"TRKLIST000{offset}",
                title=f"Parcel {offset}",
                sender="A",
                recipient="B",
                recipient_address="1 Road",
                payment_info={"amount": "0", "method": "Cash", "status": "pending"},
                status=ParcelStatus.PENDING,
                created_at=stamp,
                updated_at=stamp,
            )
            parcel.status_history.append(
                ParcelStatusEvent(status=ParcelStatus.PENDING, timestamp=stamp, location="origin")
            )
            db.add(parcel)
        await db.commit()
    await parcel_repository.create_parcel(OTHER_USER_ID, parcel_input())

    parcels = await parcel_repository.list_parcels_for_user(USER_ID)
    assert [p.title for p in parcels] == ["Parcel 3", "Parcel 2", "Parcel 1", "Parcel 0"]


@pytest.mark.asyncio
async def test_list_for_user_without_parcels_is_empty(parcel_repository):
    assert await parcel_repository.list_parcels_for_user("nobody") == []


# Lookup

@pytest.mark.asyncio
async def test_find_by_tracking_number_is_case_insensitive(parcel_repository):
    tracking_number = await parcel_repository.create_parcel(USER_ID, parcel_input())
    parcel = await parcel_repository.find_by_tracking_number(f" {tracking_number.lower()} ", USER_ID)
    assert parcel.tracking_number == tracking_number


@pytest.mark.asyncio
async def test_other_users_parcel_is_not_found(parcel_repository):
    parcel = await create_and_fetch(parcel_repository)

    with pytest.raises(ResourceNotFoundError):
        await parcel_repository.get_parcel(parcel.id, OTHER_USER_ID)
    with pytest.raises(ResourceNotFoundError):
        await parcel_repository.find_by_tracking_number(parcel.tracking_number, OTHER_USER_ID)


# Status lifecycle

@pytest.mark.asyncio
async def test_same_status_update_is_noop(parcel_repository):
    parcel = await create_and_fetch(parcel_repository)

    for _ in range(2):
        result = await parcel_repository.update_parcel_status(parcel.id, ParcelStatus.PENDING, "Depot")
        assert len(result.status_history) == 1

    reloaded = await parcel_repository.get_parcel(parcel.id)
    assert len(reloaded.status_history) == 1
    assert reloaded.version == 1


@pytest.mark.asyncio
async def test_status_update_appends_exactly_one_entry(parcel_repository):
    parcel = await create_and_fetch(parcel_repository)

    updated = await parcel_repository.update_parcel_status(
        parcel.id, ParcelStatus.IN_TRANSIT, "Sorting hub", user_id=USER_ID
    )
    assert updated.status == ParcelStatus.IN_TRANSIT
    assert len(updated.status_history) == 2
    assert updated.status_history[-1].status == ParcelStatus.IN_TRANSIT
    assert updated.status_history[-1].location == "Sorting hub"

    reloaded = await parcel_repository.get_parcel(parcel.id)
    assert reloaded.status == ParcelStatus.IN_TRANSIT
    assert [e.status for e in reloaded.status_history] == [ParcelStatus.PENDING, ParcelStatus.IN_TRANSIT]
    assert reloaded.version == 2


@pytest.mark.asyncio
async def test_history_tail_tracks_current_status(parcel_repository):
    parcel = await create_and_fetch(parcel_repository)
    path = [ParcelStatus.IN_TRANSIT, ParcelStatus.DELIVERED, ParcelStatus.PENDING, ParcelStatus.CANCELLED]

    for index, status in enumerate(path, start=2):
        updated = await parcel_repository.update_parcel_status(parcel.id, status, f"Stop {index}")
        assert len(updated.status_history) == index
        assert updated.status_history[-1].status == updated.status == status

    reloaded = await parcel_repository.get_parcel(parcel.id)
    assert reloaded.status_history[-1].status == reloaded.status
    assert len(reloaded.status_history) == 5


@pytest.mark.asyncio
async def test_update_accepts_status_string(parcel_repository):
    parcel = await create_and_fetch(parcel_repository)
    updated = await parcel_repository.update_parcel_status(parcel.id, "in-transit", "Van")
    assert updated.status == ParcelStatus.IN_TRANSIT


@pytest.mark.asyncio
async def test_update_rejects_unknown_status(parcel_repository):
    parcel = await create_and_fetch(parcel_repository)
    with pytest.raises(InputValidationError):
        await parcel_repository.update_parcel_status(parcel.id, "lost", "Nowhere")


@pytest.mark.asyncio
async def test_update_missing_parcel_raises_not_found(parcel_repository):
    with pytest.raises(ResourceNotFoundError):
        await parcel_repository.update_parcel_status(9999, ParcelStatus.DELIVERED, "Door")


@pytest.mark.asyncio
async def test_forward_only_policy_blocks_backward_move(backend):
    repo = ParcelRepository(backend, policy=TransitionPolicy("forward_only"))
    parcel = await create_and_fetch(repo)
    await repo.update_parcel_status(parcel.id, ParcelStatus.DELIVERED, "Door")

    with pytest.raises(InputValidationError) as exc_info:
        await repo.update_parcel_status(parcel.id, ParcelStatus.PENDING, "Back to origin")
    assert "status" in exc_info.value.field_errors

    reloaded = await repo.get_parcel(parcel.id)
    assert reloaded.status == ParcelStatus.DELIVERED
    assert len(reloaded.status_history) == 2


@pytest.mark.asyncio
async def test_stale_expected_version_is_rejected(parcel_repository):
    parcel = await create_and_fetch(parcel_repository)
    await parcel_repository.update_parcel_status(
        parcel.id, ParcelStatus.IN_TRANSIT, "Hub", expected_version=1
    )

    with pytest.raises(ConcurrentUpdateError):
        await parcel_repository.update_parcel_status(
            parcel.id, ParcelStatus.DELIVERED, "Door", expected_version=1
        )

    reloaded = await parcel_repository.get_parcel(parcel.id)
    assert reloaded.status == ParcelStatus.IN_TRANSIT
    assert len(reloaded.status_history) == 2


@pytest.fixture
async def file_backend(test_settings, mock_redis, tmp_path):
    """Backend on a file database so two sessions use separate connections."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'parcels.db'}")
    client = BackendClient(
        test_settings,
        engine=engine,
        redis=mock_redis,
        blob_store=LocalBlobStore(str(tmp_path / "blobs"), "http://test/blobs"),
    )
    await client.init()
    yield client
    await client.shutdown()


@pytest.mark.asyncio
async def test_concurrent_writers_lose_no_history(file_backend, monkeypatch):
    repo = ParcelRepository(file_backend)
    parcel = await create_and_fetch(repo)

    # Hold both writers until each has read version 1
    loaded = 0
    both_loaded = asyncio.Event()
    original_load = repo._load

    async def load_then_wait(db, parcel_id, user_id):
        nonlocal loaded
        row = await original_load(db, parcel_id, user_id)
        loaded += 1
        if loaded == 2:
            both_loaded.set()
        await asyncio.wait_for(both_loaded.wait(), timeout=5)
        return row

    monkeypatch.setattr(repo, "_load", load_then_wait)
    results = await asyncio.gather(
        repo.update_parcel_status(parcel.id, ParcelStatus.IN_TRANSIT, "Hub"),
        repo.update_parcel_status(parcel.id, ParcelStatus.CANCELLED, "Counter"),
        return_exceptions=True,
    )
    monkeypatch.undo()

    conflicts = [r for r in results if isinstance(r, ConcurrentUpdateError)]
    winners = [r for r in results if isinstance(r, Parcel)]
    assert len(conflicts) == 1
    assert len(winners) == 1

    reloaded = await repo.get_parcel(parcel.id)
    assert reloaded.status == winners[0].status
    assert reloaded.version == 2
    assert len(reloaded.status_history) == 2
    assert reloaded.status_history[0].status == ParcelStatus.PENDING
    assert reloaded.status_history[-1].status == reloaded.status


# Photos

@pytest.mark.asyncio
async def test_add_photo_uploads_and_appends_url(parcel_repository, backend):
    parcel = await create_and_fetch(parcel_repository, photos=["file:///first.jpg"])

    updated = await parcel_repository.add_photo(parcel.id, USER_ID, b"\xff\xd8jpeg-bytes")

    assert len(updated.photos) == 2
    assert updated.photos[0] == "file:///first.jpg"
    url = updated.photos[1]
    assert url.startswith(f"http://test/blobs/parcels/{parcel.id}/")
    key = url.removeprefix("http://test/blobs/")
    assert await backend.blobs.download(key) == b"\xff\xd8jpeg-bytes"


@pytest.mark.asyncio
async def test_add_photo_rejects_empty_upload(parcel_repository):
    parcel = await create_and_fetch(parcel_repository)
    with pytest.raises(InputValidationError):
        await parcel_repository.add_photo(parcel.id, USER_ID, b"")
