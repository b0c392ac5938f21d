"""
Security Service.

Login-attempt audit trail, per-user security settings, the
suspicious-activity heuristic and the security report.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from sqlalchemy import desc, select

from parcel_tracker.app.backend.client import BackendClient
from parcel_tracker.app.core.exceptions import ResourceNotFoundError, collaborator_errors
from parcel_tracker.app.models.login_session import LoginSession
from parcel_tracker.app.models.user import UserProfile
from parcel_tracker.app.schemas.security import (
    SecurityReport,
    SecuritySettings,
    SuspiciousActivityCheck,
)

logger = logging.getLogger(__name__)

UNKNOWN_LOCATION = "Unknown Location"

REASON_FAILED_ATTEMPTS = "Multiple failed login attempts"
REASON_MULTIPLE_LOCATIONS = "Logins from multiple locations"
REASON_MULTIPLE_DEVICES = "Logins from multiple devices"

FAILED_ATTEMPTS_THRESHOLD = 3
MAX_LOCATIONS = 3
MAX_DEVICE_TYPES = 2


def device_type_from_user_agent(user_agent: Optional[str]) -> str:
    """Coarse device class from a User-Agent string (first match wins)."""
    if not user_agent:
        return "Unknown"
    if "Mobile" in user_agent:
        return "Mobile"
    if "Tablet" in user_agent:
        return "Tablet"
    if "Windows" in user_agent:
        return "Desktop (Windows)"
    if "Mac" in user_agent:
        return "Desktop (Mac)"
    if "Linux" in user_agent:
        return "Desktop (Linux)"
    return "Unknown"


def location_from_ip(ip_address: Optional[str]) -> Optional[str]:
    # No geolocation lookup: a known IP only yields a placeholder
    if not ip_address:
        return None
    return UNKNOWN_LOCATION


def detect_suspicious_activity(
    recent_sessions: Sequence,
    window: int = 10,
) -> SuspiciousActivityCheck:
    """
    Flag unusual sign-in patterns among the most recent sessions.

    Args:
        recent_sessions: Sessions newest first (objects with `success`,
            `location` and `device_type`)
        window: How many of the newest sessions to inspect

    Every check runs; each one that trips adds its reason.
    """
    sessions = list(recent_sessions)[:window]
    reasons: List[str] = []

    failures = sum(1 for session in sessions if not session.success)
    if failures >= FAILED_ATTEMPTS_THRESHOLD:
        reasons.append(REASON_FAILED_ATTEMPTS)

    successful = [session for session in sessions if session.success]

    locations = {session.location for session in successful if session.location}
    if len(locations) > MAX_LOCATIONS:
        reasons.append(REASON_MULTIPLE_LOCATIONS)

    devices = {session.device_type for session in successful if session.device_type}
    if len(devices) > MAX_DEVICE_TYPES:
        reasons.append(REASON_MULTIPLE_DEVICES)

    return SuspiciousActivityCheck(is_suspicious=bool(reasons), reasons=reasons)


def build_security_report(sessions: Sequence, window: int = 10) -> SecurityReport:
    """Aggregate a newest-first session list into report counters."""
    sessions = list(sessions)
    successful = sum(1 for session in sessions if session.success)
    return SecurityReport(
        total_logins=len(sessions),
        successful_logins=successful,
        failed_logins=len(sessions) - successful,
        unique_devices=len({s.device_type for s in sessions if s.device_type}),
        unique_locations=len({s.location for s in sessions if s.location}),
        last_login=sessions[0].timestamp if sessions else None,
        suspicious_activity=detect_suspicious_activity(sessions, window).is_suspicious,
    )


class SecurityService:
    """Security administration bound to one backend client."""

    def __init__(self, backend: BackendClient):
        self._backend = backend
        self._settings = backend.settings

    async def log_login_attempt(
        self,
        user_id: str,
        success: bool,
        failure_reason: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> LoginSession:
        """
        Append one login session record.

        Args:
            user_id: Account the attempt was made against
            success: Whether the attempt signed in
            failure_reason: Provider message for failed attempts
            ip_address: Client IP, if known
            user_agent: Client User-Agent header, if known

        Returns:
            Created LoginSession instance
        """
        session = LoginSession(
            user_id=user_id,
            timestamp=datetime.now(timezone.utc),
            ip_address=ip_address or "unknown",
            user_agent=user_agent or "unknown",
            location=location_from_ip(ip_address),
            device_type=device_type_from_user_agent(user_agent),
            success=success,
            failure_reason=failure_reason if not success else None,
        )
        with collaborator_errors("log login attempt"):
            async with self._backend.session() as db:
                db.add(session)
                await db.commit()
        return session

    async def get_login_history(self, user_id: str, limit: Optional[int] = None) -> List[LoginSession]:
        """Most recent login sessions first."""
        limit = limit or self._settings.login_history_limit
        with collaborator_errors("fetch login history"):
            async with self._backend.session() as db:
                query = (
                    select(LoginSession)
                    .where(LoginSession.user_id == user_id)
                    .order_by(desc(LoginSession.timestamp), desc(LoginSession.id))
                    .limit(limit)
                )
                result = await db.execute(query)
                return list(result.scalars().all())

    async def get_recent_sessions(self, user_id: str, limit: Optional[int] = None) -> List[LoginSession]:
        return await self.get_login_history(user_id, limit or self._settings.recent_sessions_limit)

    async def get_security_settings(self, user_id: str) -> SecuritySettings:
        """
        Read settings, creating the defaults on first read.

        A user without a profile document gets the defaults without a write.
        """
        with collaborator_errors("fetch security settings"):
            async with self._backend.session() as db:
                profile = await db.get(UserProfile, user_id)
                if profile is None:
                    return SecuritySettings()
                if profile.security_settings is None:
                    defaults = SecuritySettings()
                    profile.security_settings = defaults.model_dump()
                    profile.updated_at = datetime.now(timezone.utc)
                    await db.commit()
                    logger.info("Created default security settings for %s", user_id)
                    return defaults
                return SecuritySettings.model_validate(profile.security_settings)

    async def update_security_settings(self, user_id: str, settings: SecuritySettings) -> SecuritySettings:
        """Replace the stored settings wholesale."""
        with collaborator_errors("update security settings"):
            async with self._backend.session() as db:
                profile = await db.get(UserProfile, user_id)
                if profile is None:
                    raise ResourceNotFoundError("User profile", user_id)
                profile.security_settings = settings.model_dump()
                profile.two_factor_enabled = settings.two_factor_enabled
                profile.updated_at = datetime.now(timezone.utc)
                await db.commit()
        return settings

    async def check_suspicious_activity(self, user_id: str) -> SuspiciousActivityCheck:
        window = self._settings.suspicious_activity_window
        sessions = await self.get_login_history(user_id, window)
        return detect_suspicious_activity(sessions, window)

    async def generate_security_report(self, user_id: str) -> SecurityReport:
        sessions = await self.get_login_history(user_id, self._settings.security_report_window)
        return build_security_report(sessions, self._settings.suspicious_activity_window)
