"""
Parcel API Endpoints.

Create, browse, search, track and update the signed-in user's parcels.
"""

from typing import Optional
from fastapi import APIRouter, Depends, File, HTTPException, Path, Query, UploadFile, status
from parcel_tracker.app.backend.identity import AuthUser
from parcel_tracker.app.core.dependencies import get_current_user, get_parcel_repository
from parcel_tracker.app.domain.lifecycle.policy import (
    filter_by_status,
    parcel_stats,
    parse_status_key,
    search_parcels,
    status_counts,
)
from parcel_tracker.app.schemas.parcel import (
    ParcelCreate,
    ParcelCreatedResponse,
    ParcelListResponse,
    ParcelResponse,
    ParcelStatsResponse,
    ParcelStatusUpdate,
)
from parcel_tracker.app.services.parcel_repository import ParcelRepository

router = APIRouter(prefix="/parcels", tags=["Parcels"])


@router.post("", response_model=ParcelCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_parcel(
    parcel_data: ParcelCreate,
    current_user: AuthUser = Depends(get_current_user),
    parcels: ParcelRepository = Depends(get_parcel_repository),
):
    """
    Create a new parcel for the current user.

    Validates:
    - title, sender, recipient, recipient_address are not blank
    - payment_info.amount is numeric when given

    Returns the generated tracking number.
    """
    tracking_number = await parcels.create_parcel(current_user.uid, parcel_data)
    return ParcelCreatedResponse(tracking_number=tracking_number)


@router.get("", response_model=ParcelListResponse)
async def list_parcels(
    status_filter: Optional[str] = Query("all", alias="status", description="all, pending, in-transit, delivered, cancelled"),
    q: Optional[str] = Query(None, description="Search tracking number or title"),
    current_user: AuthUser = Depends(get_current_user),
    parcels: ParcelRepository = Depends(get_parcel_repository),
):
    """
    List the current user's parcels, newest first.

    Badge counts cover the whole (search-filtered) set regardless of the
    selected status bucket.
    """
    try:
        bucket = parse_status_key(status_filter)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Unknown status filter '{status_filter}'"
        )

    owned = await parcels.list_parcels_for_user(current_user.uid)
    matching = search_parcels(owned, q)
    selected = filter_by_status(matching, bucket)

    return ParcelListResponse(
        parcels=[ParcelResponse.model_validate(p) for p in selected],
        total=len(selected),
        counts=status_counts(matching),
    )


@router.get("/stats", response_model=ParcelStatsResponse)
async def get_parcel_stats(
    current_user: AuthUser = Depends(get_current_user),
    parcels: ParcelRepository = Depends(get_parcel_repository),
):
    owned = await parcels.list_parcels_for_user(current_user.uid)
    return ParcelStatsResponse(**parcel_stats(owned))


@router.get("/track/{tracking_number}", response_model=ParcelResponse)
async def track_parcel(
    tracking_number: str = Path(..., description="Tracking number, e.g. TRK1A2B3C4D"),
    current_user: AuthUser = Depends(get_current_user),
    parcels: ParcelRepository = Depends(get_parcel_repository),
):
    parcel = await parcels.find_by_tracking_number(tracking_number, current_user.uid)
    return ParcelResponse.model_validate(parcel)


@router.get("/{parcel_id}", response_model=ParcelResponse)
async def get_parcel(
    parcel_id: int = Path(..., description="Parcel ID"),
    current_user: AuthUser = Depends(get_current_user),
    parcels: ParcelRepository = Depends(get_parcel_repository),
):
    """Get details of a specific parcel (owner only)."""
    parcel = await parcels.get_parcel(parcel_id, current_user.uid)
    return ParcelResponse.model_validate(parcel)


@router.patch("/{parcel_id}/status", response_model=ParcelResponse)
async def update_parcel_status(
    parcel_id: int = Path(..., description="Parcel ID"),
    update: ParcelStatusUpdate = ...,
    current_user: AuthUser = Depends(get_current_user),
    parcels: ParcelRepository = Depends(get_parcel_repository),
):
    """
    Move a parcel to a new status and append it to the history.

    Sending the current status again changes nothing.
    """
    parcel = await parcels.update_parcel_status(
        parcel_id,
        update.status,
        update.location,
        user_id=current_user.uid,
        expected_version=update.expected_version,
    )
    return ParcelResponse.model_validate(parcel)


@router.post("/{parcel_id}/photos", response_model=ParcelResponse, status_code=status.HTTP_201_CREATED)
async def add_parcel_photo(
    parcel_id: int = Path(..., description="Parcel ID"),
    photo: UploadFile = File(...),
    current_user: AuthUser = Depends(get_current_user),
    parcels: ParcelRepository = Depends(get_parcel_repository),
):
    data = await photo.read()
    parcel = await parcels.add_photo(parcel_id, current_user.uid, data)
    return ParcelResponse.model_validate(parcel)
