"""
Database seeding script for a demo account.

Creates one user with a handful of parcels in different states for
development. Run this script after the database is reachable.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from parcel_tracker.app.backend.client import BackendClient
from parcel_tracker.app.core.exceptions import EmailInUseError
from parcel_tracker.app.models.parcel_enums import ParcelStatus
from parcel_tracker.app.schemas.parcel import ParcelCreate, PaymentInfo
from parcel_tracker.app.services.parcel_repository import ParcelRepository
from parcel_tracker.app.services.session_manager import SessionManager

DEMO_EMAIL = "demo@parceltracker.dev"
DEMO_PASSWORD = "demo123"

DEMO_PARCELS = [
    (ParcelCreate(title="Phone", sender="Shop A", recipient="Demo User", recipient_address="12 Market St",
                  weight="0.4kg", payment_info=PaymentInfo(amount="25.00", method="Card")), []),
    (ParcelCreate(title="Laptop", sender="Shop B", recipient="Demo User", recipient_address="12 Market St",
                  weight="2.1kg", dimensions="40x30x8"),
     [(ParcelStatus.IN_TRANSIT, "Regional sorting hub")]),
    (ParcelCreate(title="Books", sender="Library", recipient="Demo User", recipient_address="12 Market St"),
     [(ParcelStatus.IN_TRANSIT, "Regional sorting hub"), (ParcelStatus.DELIVERED, "Front door")]),
]


async def seed_demo():
    """
    Seed the demo account.

    Creates:
    - 1 account with profile
    - 1 pending, 1 in-transit and 1 delivered parcel
    """
    backend = await BackendClient().init()
    sessions = SessionManager(backend)
    try:
        print("🌱 Starting demo seeding...")
        try:
            session = await sessions.sign_up(DEMO_EMAIL, DEMO_PASSWORD, "Demo User")
        except EmailInUseError:
            print("ℹ️  Demo account already exists, skipping seeding")
            return

        parcels = ParcelRepository(backend)
        uid = session.user.uid
        for data, moves in DEMO_PARCELS:
            tracking_number = await parcels.create_parcel(uid, data)
            parcel = await parcels.find_by_tracking_number(tracking_number, uid)
            for status, location in moves:
                parcel = await parcels.update_parcel_status(parcel.id, status, location, user_id=uid)
            print(f"✅ Created {data.title} ({tracking_number}, {parcel.status.value})")

        print("\n🎉 Demo seeding completed successfully!")
        print(f"\nSign in with: {DEMO_EMAIL} / {DEMO_PASSWORD}")
    finally:
        sessions.close()
        await backend.shutdown()


if __name__ == "__main__":
    asyncio.run(seed_demo())
