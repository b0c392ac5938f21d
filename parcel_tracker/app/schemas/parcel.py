"""
Parcel Pydantic schemas.

Defines request and response models for parcel tracking. Required-field
checks live in the repository so that every failing field is reported
together; these models only enforce types.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List, Dict
from parcel_tracker.app.models.parcel_enums import ParcelStatus, PaymentMethod


class PaymentInfo(BaseModel):
    amount: str = Field(default="0", description="Numeric text, e.g. \"12.50\"")
    method: PaymentMethod = Field(default=PaymentMethod.CASH)
    status: str = Field(default="pending")


class ParcelCreate(BaseModel):
    """Schema for creating a new parcel."""
    title: str = ""
    description: str = ""
    sender: str = ""
    recipient: str = ""
    recipient_address: str = ""
    weight: str = ""
    dimensions: str = ""
    photos: List[str] = Field(default_factory=list, description="Photo URIs in display order")
    payment_info: PaymentInfo = Field(default_factory=PaymentInfo)


class StatusHistoryEntry(BaseModel):
    status: ParcelStatus
    timestamp: datetime
    location: str

    class Config:
        from_attributes = True


class ParcelStatusUpdate(BaseModel):
    """Schema for a status change."""
    status: ParcelStatus
    location: str = ""
    expected_version: Optional[int] = Field(None, ge=1, description="Reject if the parcel changed since this version")


class ParcelResponse(BaseModel):
    """Schema for parcel response."""
    id: int
    tracking_number: str
    title: str
    description: str
    sender: str
    recipient: str
    recipient_address: str
    weight: str
    dimensions: str
    status: ParcelStatus
    photos: List[str]
    payment_info: PaymentInfo
    status_history: List[StatusHistoryEntry]
    user_id: str
    version: int
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ParcelCreatedResponse(BaseModel):
    tracking_number: str


class ParcelListResponse(BaseModel):
    """Filtered parcel list with per-status badge counts."""
    parcels: List[ParcelResponse]
    total: int
    counts: Dict[str, int]


class ParcelStatsResponse(BaseModel):
    total: int
    pending: int
    in_transit: int
    delivered: int
