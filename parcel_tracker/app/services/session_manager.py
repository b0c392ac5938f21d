"""
Session Manager.

Wraps the identity provider's sign-in, sign-up and sign-out, records every
sign-in attempt, and republishes the provider's auth-state events as a
`current_user` stream.
"""

import asyncio
import logging
from typing import Optional

from parcel_tracker.app.backend.client import BackendClient
from parcel_tracker.app.backend.identity import AuthSession, AuthUser
from parcel_tracker.app.core.exceptions import (
    AppException,
    InputValidationError,
    InvalidCredentialsError,
    collaborator_errors,
)
from parcel_tracker.app.core.streams import LatestValueStream
from parcel_tracker.app.services.profile_service import ProfileService
from parcel_tracker.app.services.security_service import SecurityService

logger = logging.getLogger(__name__)


class SessionManager:
    """
    Sign-in state for one backend client.

    `current_user` is driven only by the provider's auth-state events, so
    it may lag the call that caused the change. Use `wait_for_user` to
    await confirmation instead of reading it right after `sign_in`.
    """

    def __init__(self, backend: BackendClient):
        self._backend = backend
        self._profiles = ProfileService(backend)
        self._security = SecurityService(backend)
        self.current_user: LatestValueStream[AuthUser] = LatestValueStream()
        self._unsubscribe = backend.identity.on_auth_state_changed(self.current_user.publish)

    def close(self) -> None:
        self._unsubscribe()
        self.current_user.close()

    async def wait_for_user(self, timeout: Optional[float] = None) -> AuthUser:
        """
        Resolve once a signed-in user is published.

        Raises:
            asyncio.TimeoutError: when nobody signs in within `timeout`
        """
        async with self.current_user.subscribe() as subscription:
            async def first_user() -> AuthUser:
                async for user in subscription:
                    if user is not None:
                        return user
                raise RuntimeError("current_user stream closed")

            return await asyncio.wait_for(first_user(), timeout)

    async def _record_attempt(self, user_id: str, success: bool, **kwargs) -> None:
        try:
            await self._security.log_login_attempt(user_id, success, **kwargs)
        except AppException as exc:
            # Audit trail must not block sign-in
            logger.error("Could not record login attempt for %s: %s", user_id, exc.error_code)

    async def sign_in(
        self,
        email: str,
        password: str,
        user_agent: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> AuthSession:
        """
        Authenticate with email and password.

        Raises:
            InvalidCredentialsError: unknown email or wrong password
            NetworkError: provider unreachable
        """
        if not (email or "").strip() or not password:
            raise InputValidationError({"credentials": "Please fill in all fields"})

        try:
            with collaborator_errors("sign in"):
                session = await self._backend.identity.sign_in(email, password)
        except InvalidCredentialsError as exc:
            with collaborator_errors("look up account"):
                uid = await self._backend.identity.lookup_uid(email)
            if uid is not None:
                await self._record_attempt(
                    uid, False,
                    failure_reason=exc.message, ip_address=ip_address, user_agent=user_agent,
                )
            raise

        await self._record_attempt(
            session.user.uid, True, ip_address=ip_address, user_agent=user_agent
        )
        logger.info("User %s signed in", session.user.uid)
        return session

    async def sign_up(self, email: str, password: str, name: str) -> AuthSession:
        """
        Create an account and its profile document.

        Raises:
            EmailInUseError, WeakPasswordError, InvalidEmailError,
            NetworkError, ConfigurationError
        """
        if not (name or "").strip():
            raise InputValidationError({"name": "Name is required"})

        with collaborator_errors("sign up"):
            session = await self._backend.identity.sign_up(email, password)

        try:
            await self._profiles.create_profile(session.user.uid, name.strip(), session.user.email)
        except AppException:
            logger.error("Account %s created but profile document failed", session.user.uid)
            raise
        return session

    async def sign_out(self, token: str) -> None:
        """
        End the session.

        The current user is cleared even when the provider call fails; the
        failure is still raised afterwards.
        """
        try:
            with collaborator_errors("sign out"):
                await self._backend.identity.sign_out(token)
        finally:
            if self.current_user.value is not None:
                self.current_user.publish(None)
