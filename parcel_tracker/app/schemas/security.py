"""
Security Pydantic schemas.

Login history, security settings, suspicious-activity checks and reports.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List


class LoginSessionResponse(BaseModel):
    id: int
    user_id: str
    timestamp: datetime
    ip_address: str
    user_agent: str
    location: Optional[str] = None
    device_type: Optional[str] = None
    success: bool
    failure_reason: Optional[str] = None

    class Config:
        from_attributes = True


class SecuritySettings(BaseModel):
    """Per-user security preferences. Missing fields fall back to defaults."""
    two_factor_enabled: bool = False
    login_notifications: bool = True
    suspicious_activity_alerts: bool = True
    session_timeout: int = Field(default=30, ge=1, description="Minutes")
    allowed_devices: List[str] = Field(default_factory=list)


class SuspiciousActivityCheck(BaseModel):
    is_suspicious: bool
    reasons: List[str]


class SecurityReport(BaseModel):
    total_logins: int
    successful_logins: int
    failed_logins: int
    unique_devices: int
    unique_locations: int
    last_login: Optional[datetime] = None
    suspicious_activity: bool
