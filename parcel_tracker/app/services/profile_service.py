"""
Profile Service.

Profile document edits and the account operations that need
re-authentication (email change, password change, deletion).
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from parcel_tracker.app.backend.client import BackendClient
from parcel_tracker.app.core.exceptions import (
    AppException,
    InputValidationError,
    ProviderError,
    ResourceNotFoundError,
    collaborator_errors,
)
from parcel_tracker.app.models.user import UserProfile
from parcel_tracker.app.schemas.profile import ProfileUpdate

logger = logging.getLogger(__name__)

PROFILE_PICTURE_PREFIX = "profile-pictures"


def profile_picture_key(uid: str) -> str:
    return f"{PROFILE_PICTURE_PREFIX}/{uid}"


class ProfileService:
    """Profile administration bound to one backend client."""

    def __init__(self, backend: BackendClient):
        self._backend = backend

    async def create_profile(self, uid: str, name: str, email: str) -> UserProfile:
        now = datetime.now(timezone.utc)
        profile = UserProfile(
            uid=uid,
            name=name,
            email=email,
            is_email_verified=False,
            two_factor_enabled=False,
            created_at=now,
            updated_at=now,
        )
        with collaborator_errors("create profile"):
            async with self._backend.session() as db:
                db.add(profile)
                await db.commit()
        return profile

    async def get_profile(self, uid: str) -> UserProfile:
        with collaborator_errors("fetch profile"):
            async with self._backend.session() as db:
                profile = await db.get(UserProfile, uid)
        if profile is None:
            raise ResourceNotFoundError("User profile", uid)
        return profile

    async def _apply(self, uid: str, operation: str, **fields) -> UserProfile:
        with collaborator_errors(operation):
            async with self._backend.session() as db:
                profile = await db.get(UserProfile, uid)
                if profile is None:
                    raise ResourceNotFoundError("User profile", uid)
                for field, value in fields.items():
                    setattr(profile, field, value)
                profile.updated_at = datetime.now(timezone.utc)
                await db.commit()
        return profile

    async def update_profile(self, uid: str, data: ProfileUpdate) -> UserProfile:
        """
        Write a partial update to the profile document.

        Only the fields present in `data` change. The identity provider's
        sign-in email is untouched; use `update_email` for that.
        """
        update_data = data.model_dump(exclude_unset=True)
        if "name" in update_data and not (update_data["name"] or "").strip():
            raise InputValidationError({"name": "Name is required"})
        return await self._apply(uid, "update profile", **update_data)

    async def update_email(self, uid: str, new_email: str, current_password: str) -> UserProfile:
        """
        Change the sign-in email, then mirror it on the profile.

        The two writes are not transactional: if the profile write fails the
        identity email has already changed and the error says so.
        """
        with collaborator_errors("update email"):
            await self._backend.identity.reauthenticate(uid, current_password)
            normalized = await self._backend.identity.update_email(uid, new_email)

        try:
            return await self._apply(uid, "sync profile email", email=normalized)
        except AppException:
            logger.error("Identity email for %s changed but profile sync failed", uid)
            raise

    async def update_password(self, uid: str, current_password: str, new_password: str) -> None:
        with collaborator_errors("update password"):
            await self._backend.identity.reauthenticate(uid, current_password)
            await self._backend.identity.update_password(uid, new_password)

    async def upload_profile_picture(self, uid: str, data: bytes) -> str:
        """Store the picture under the user's key and record its URL."""
        if not data:
            raise InputValidationError({"profile_picture": "Image is empty"})
        with collaborator_errors("upload profile picture"):
            url = await self._backend.blobs.upload(profile_picture_key(uid), data)
        await self._apply(uid, "update profile picture", profile_picture=url)
        return url

    async def delete_profile_picture(self, uid: str) -> None:
        with collaborator_errors("delete profile picture"):
            await self._backend.blobs.delete(profile_picture_key(uid))
        await self._apply(uid, "clear profile picture", profile_picture=None)

    async def toggle_two_factor(self, uid: str, enabled: bool) -> UserProfile:
        with collaborator_errors("toggle two-factor"):
            async with self._backend.session() as db:
                profile = await db.get(UserProfile, uid)
                if profile is None:
                    raise ResourceNotFoundError("User profile", uid)
                profile.two_factor_enabled = enabled
                if profile.security_settings is not None:
                    profile.security_settings = {**profile.security_settings, "two_factor_enabled": enabled}
                profile.updated_at = datetime.now(timezone.utc)
                await db.commit()
        return profile

    async def _delete_profile_picture_quietly(self, uid: str) -> None:
        try:
            await self._backend.blobs.delete(profile_picture_key(uid))
        except (ProviderError, OSError) as exc:
            logger.warning("Profile picture for %s not found or already deleted: %s", uid, exc)

    async def delete_account(self, uid: str, password: str) -> None:
        """
        Permanently delete the account.

        Order: re-authenticate, delete the profile document, best-effort
        delete of the profile picture, then delete the identity account.
        """
        with collaborator_errors("delete account"):
            await self._backend.identity.reauthenticate(uid, password)

            async with self._backend.session() as db:
                profile: Optional[UserProfile] = await db.get(UserProfile, uid)
                if profile is not None:
                    await db.delete(profile)
                    await db.commit()

            await self._delete_profile_picture_quietly(uid)
            await self._backend.identity.delete_account(uid)

        logger.info("Account %s deleted", uid)
