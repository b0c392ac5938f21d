"""
Parcel document model.

A parcel is a shipment tracking record owned by one user.
"""

from sqlalchemy import Column, Integer, String, Text, DateTime, ForeignKey, Enum, JSON
from sqlalchemy.orm import relationship
from parcel_tracker.app.db.session import Base
from parcel_tracker.app.models.parcel_enums import ParcelStatus, enum_values


class Parcel(Base):
    """
    Parcel model for the tracking app.

    `status_history` is append-only and oldest-first; its last entry always
    carries the current `status`. `version` is bumped on every write so a
    concurrent writer that lost the race fails instead of dropping history.
    """
    __tablename__ = "parcels"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Ownership
    user_id = Column(String(64), nullable=False, index=True)

    # Identification
    tracking_number = Column(String(16), unique=True, nullable=False, index=True)
    title = Column(Text, nullable=False)
    description = Column(Text, nullable=False, default="")

    # Parties
    sender = Column(Text, nullable=False)
    recipient = Column(Text, nullable=False)
    recipient_address = Column(Text, nullable=False)

    # Physical properties (free text as entered)
    weight = Column(Text, nullable=False, default="0")
    dimensions = Column(Text, nullable=False, default="0x0x0")

    photos = Column(JSON, nullable=False, default=list)
    payment_info = Column(JSON, nullable=False)

    # Status
    status = Column(
        Enum(ParcelStatus, values_callable=enum_values, native_enum=False, length=20),
        default=ParcelStatus.PENDING,
        nullable=False,
        index=True,
    )
    status_history = relationship(
        "ParcelStatusEvent",
        order_by="ParcelStatusEvent.id",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    # Timestamps (stamped by the client, not the server)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    version = Column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Parcel(id={self.id}, tracking='{self.tracking_number}', user_id={self.user_id}, status='{self.status.value}')>"


class ParcelStatusEvent(Base):
    """One entry in a parcel's status history."""
    __tablename__ = "parcel_status_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    parcel_id = Column(Integer, ForeignKey("parcels.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(Enum(ParcelStatus, values_callable=enum_values, native_enum=False, length=20), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    location = Column(Text, nullable=False, default="")

    def __repr__(self):
        return f"<ParcelStatusEvent(parcel_id={self.parcel_id}, status='{self.status.value}', location='{self.location}')>"
