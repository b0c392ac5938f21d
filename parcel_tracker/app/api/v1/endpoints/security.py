"""
Security API endpoints.

Login history, security settings, suspicious-activity check and report.
"""

from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from parcel_tracker.app.backend.identity import AuthUser
from parcel_tracker.app.core.dependencies import get_current_user, get_security_service
from parcel_tracker.app.schemas.security import (
    LoginSessionResponse,
    SecurityReport,
    SecuritySettings,
    SuspiciousActivityCheck,
)
from parcel_tracker.app.services.security_service import SecurityService

router = APIRouter(prefix="/security", tags=["Security"])


@router.get("/history", response_model=List[LoginSessionResponse])
async def get_login_history(
    limit: Optional[int] = Query(None, ge=1, le=100, description="Defaults to the configured history size"),
    current_user: AuthUser = Depends(get_current_user),
    security: SecurityService = Depends(get_security_service),
):
    """Most recent sign-in attempts first."""
    sessions = await security.get_login_history(current_user.uid, limit)
    return [LoginSessionResponse.model_validate(s) for s in sessions]


@router.get("/settings", response_model=SecuritySettings)
async def get_security_settings(
    current_user: AuthUser = Depends(get_current_user),
    security: SecurityService = Depends(get_security_service),
):
    return await security.get_security_settings(current_user.uid)


@router.put("/settings", response_model=SecuritySettings)
async def replace_security_settings(
    settings: SecuritySettings,
    current_user: AuthUser = Depends(get_current_user),
    security: SecurityService = Depends(get_security_service),
):
    """Replace all security settings (omitted fields reset to defaults)."""
    return await security.update_security_settings(current_user.uid, settings)


@router.get("/suspicious", response_model=SuspiciousActivityCheck)
async def check_suspicious_activity(
    current_user: AuthUser = Depends(get_current_user),
    security: SecurityService = Depends(get_security_service),
):
    return await security.check_suspicious_activity(current_user.uid)


@router.get("/report", response_model=SecurityReport)
async def get_security_report(
    current_user: AuthUser = Depends(get_current_user),
    security: SecurityService = Depends(get_security_service),
):
    return await security.generate_security_report(current_user.uid)
