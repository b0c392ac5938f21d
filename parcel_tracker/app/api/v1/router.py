"""
API v1 Router.

Aggregates all v1 API endpoints.
"""

from fastapi import APIRouter
from parcel_tracker.app.api.v1.endpoints import auth, parcels, profile, security

router = APIRouter()

# Authentication endpoints
router.include_router(auth.router)

# Parcel tracking endpoints
router.include_router(parcels.router)

# Profile & account endpoints
router.include_router(profile.router)

# Security monitoring endpoints
router.include_router(security.router)
