"""
Profile Pydantic schemas.
"""

from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional
from parcel_tracker.app.schemas.security import SecuritySettings


class ProfileUpdate(BaseModel):
    """Partial profile update. Changing `email` here does not change the sign-in email."""
    name: Optional[str] = Field(None, min_length=1)
    phone: Optional[str] = Field(None, max_length=50)
    email: Optional[str] = Field(None, max_length=255)
    profile_picture: Optional[str] = Field(None, max_length=1000)


class EmailChange(BaseModel):
    new_email: str
    current_password: str


class PasswordChange(BaseModel):
    current_password: str
    new_password: str


class TwoFactorToggle(BaseModel):
    enabled: bool


class AccountDeletion(BaseModel):
    password: str


class ProfileResponse(BaseModel):
    uid: str
    name: str
    email: str
    phone: Optional[str] = None
    profile_picture: Optional[str] = None
    is_email_verified: bool
    two_factor_enabled: bool
    security_settings: Optional[SecuritySettings] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
