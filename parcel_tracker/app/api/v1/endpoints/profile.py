"""
Profile API endpoints.

Profile edits plus the account operations that require the current password.
"""

from fastapi import APIRouter, Depends, File, UploadFile, status
from parcel_tracker.app.backend.identity import AuthUser
from parcel_tracker.app.core.dependencies import get_current_user, get_profile_service
from parcel_tracker.app.schemas.profile import (
    AccountDeletion,
    EmailChange,
    PasswordChange,
    ProfileResponse,
    ProfileUpdate,
    TwoFactorToggle,
)
from parcel_tracker.app.services.profile_service import ProfileService

router = APIRouter(prefix="/profile", tags=["Profile"])


@router.get("", response_model=ProfileResponse)
async def get_profile(
    current_user: AuthUser = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
):
    profile = await profiles.get_profile(current_user.uid)
    return ProfileResponse.model_validate(profile)


@router.patch("", response_model=ProfileResponse)
async def update_profile(
    update: ProfileUpdate,
    current_user: AuthUser = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
):
    """
    Partially update the profile document.

    Does not change the sign-in email (see POST /profile/email).
    """
    profile = await profiles.update_profile(current_user.uid, update)
    return ProfileResponse.model_validate(profile)


@router.post("/email", response_model=ProfileResponse)
async def change_email(
    change: EmailChange,
    current_user: AuthUser = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
):
    profile = await profiles.update_email(current_user.uid, change.new_email, change.current_password)
    return ProfileResponse.model_validate(profile)


@router.post("/password", status_code=status.HTTP_204_NO_CONTENT)
async def change_password(
    change: PasswordChange,
    current_user: AuthUser = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
):
    await profiles.update_password(current_user.uid, change.current_password, change.new_password)


@router.post("/picture", response_model=ProfileResponse)
async def upload_profile_picture(
    picture: UploadFile = File(...),
    current_user: AuthUser = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
):
    await profiles.upload_profile_picture(current_user.uid, await picture.read())
    profile = await profiles.get_profile(current_user.uid)
    return ProfileResponse.model_validate(profile)


@router.delete("/picture", status_code=status.HTTP_204_NO_CONTENT)
async def delete_profile_picture(
    current_user: AuthUser = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
):
    await profiles.delete_profile_picture(current_user.uid)


@router.post("/two-factor", response_model=ProfileResponse)
async def toggle_two_factor(
    toggle: TwoFactorToggle,
    current_user: AuthUser = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
):
    profile = await profiles.toggle_two_factor(current_user.uid, toggle.enabled)
    return ProfileResponse.model_validate(profile)


@router.post("/delete", status_code=status.HTTP_204_NO_CONTENT)
async def delete_account(
    deletion: AccountDeletion,
    current_user: AuthUser = Depends(get_current_user),
    profiles: ProfileService = Depends(get_profile_service),
):
    """
    Permanently delete the account (password required).

    Outstanding tokens for the account stop working immediately.
    """
    await profiles.delete_account(current_user.uid, deletion.password)
