"""
Identity provider adapter.

Email/password accounts, JWT session tokens and an auth-state event feed.
Failures are raised as `ProviderError` with Firebase-style string codes;
the service layer translates them (see `core.exceptions`).
"""

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from parcel_tracker.app.core.config import Settings
from parcel_tracker.app.core.exceptions import ProviderError
from parcel_tracker.app.core.jwt import create_access_token, decode_access_token
from parcel_tracker.app.core.security import get_password_hash, verify_password
from parcel_tracker.app.core.token_revocation import (
    are_user_tokens_revoked,
    is_token_revoked,
    revoke_all_user_tokens,
    revoke_token,
)
from parcel_tracker.app.models.user import Account

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthUser:
    uid: str
    email: str


@dataclass(frozen=True)
class AuthSession:
    user: AuthUser
    access_token: str
    token_type: str = "bearer"


AuthStateListener = Callable[[Optional[AuthUser]], None]


class IdentityProvider:
    """Credential store plus token issuance, backed by the document store and Redis."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession], redis, settings: Settings):
        self._session_factory = session_factory
        self._redis = redis
        self._settings = settings
        self._listeners: List[AuthStateListener] = []

    # Auth-state feed

    def on_auth_state_changed(self, listener: AuthStateListener) -> Callable[[], None]:
        """Register a listener; returns the matching unsubscribe callable."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _emit(self, user: Optional[AuthUser]) -> None:
        for listener in list(self._listeners):
            try:
                listener(user)
            except Exception:
                logger.exception("Auth-state listener failed")

    # Helpers

    @property
    def _token_ttl_seconds(self) -> int:
        return self._settings.access_token_expire_minutes * 60

    def _check_config(self) -> None:
        if not self._settings.backend_api_key:
            raise ProviderError("auth/invalid-api-key", "Backend API key is not configured")

    def _normalize_email(self, email: str) -> str:
        try:
            validated = validate_email((email or "").strip(), check_deliverability=False)
        except EmailNotValidError as exc:
            raise ProviderError("auth/invalid-email", str(exc)) from exc
        return validated.normalized.lower()

    def _check_password_strength(self, password: str) -> None:
        if len(password or "") < self._settings.min_password_length:
            raise ProviderError(
                "auth/weak-password",
                f"Password should be at least {self._settings.min_password_length} characters",
            )

    def _issue(self, account: Account) -> AuthSession:
        user = AuthUser(uid=account.uid, email=account.email)
        token = create_access_token({"sub": account.uid, "email": account.email}, self._settings)
        return AuthSession(user=user, access_token=token)

    async def _get_account(self, db: AsyncSession, uid: str) -> Account:
        account = await db.get(Account, uid)
        if account is None:
            raise ProviderError("auth/user-not-found", f"No account for uid {uid}")
        return account

    # Operations

    async def sign_up(self, email: str, password: str) -> AuthSession:
        self._check_config()
        normalized = self._normalize_email(email)
        self._check_password_strength(password)

        async with self._session_factory() as db:
            existing = await db.execute(select(Account.uid).where(Account.email == normalized))
            if existing.scalar_one_or_none() is not None:
                raise ProviderError("auth/email-already-in-use", normalized)

            account = Account(
                uid=uuid.uuid4().hex,
                email=normalized,
                hashed_password=get_password_hash(password),
                created_at=datetime.now(timezone.utc),
            )
            db.add(account)
            try:
                await db.commit()
            except IntegrityError as exc:
                await db.rollback()
                raise ProviderError("auth/email-already-in-use", normalized) from exc

        session = self._issue(account)
        logger.info("Account created uid=%s", account.uid)
        self._emit(session.user)
        return session

    async def lookup_uid(self, email: str) -> Optional[str]:
        """Return the uid registered for an email, if any."""
        normalized = (email or "").strip().lower()
        async with self._session_factory() as db:
            result = await db.execute(select(Account.uid).where(Account.email == normalized))
            return result.scalar_one_or_none()

    async def sign_in(self, email: str, password: str) -> AuthSession:
        self._check_config()
        # Malformed emails simply match no account
        normalized = (email or "").strip().lower()

        async with self._session_factory() as db:
            result = await db.execute(select(Account).where(Account.email == normalized))
            account = result.scalar_one_or_none()

        if account is None or not verify_password(password or "", account.hashed_password):
            raise ProviderError("auth/invalid-credential", "Invalid email or password")

        session = self._issue(account)
        self._emit(session.user)
        return session

    async def sign_out(self, token: str) -> None:
        payload = decode_access_token(token, self._settings)
        if payload is not None:
            revoked = await revoke_token(self._redis, token, payload.get("sub", ""), self._token_ttl_seconds)
            if not revoked:
                raise ProviderError("auth/network-request-failed", "Could not revoke session token")
        self._emit(None)

    async def verify_token(self, token: str) -> Optional[AuthUser]:
        """Resolve a bearer token to its user, or None when invalid/revoked/deleted."""
        payload = decode_access_token(token, self._settings)
        if payload is None or not payload.get("sub"):
            return None
        uid = payload["sub"]

        if await is_token_revoked(self._redis, token):
            return None
        if await are_user_tokens_revoked(self._redis, uid):
            return None

        async with self._session_factory() as db:
            account = await db.get(Account, uid)
        if account is None:
            return None
        return AuthUser(uid=account.uid, email=account.email)

    async def reauthenticate(self, uid: str, password: str) -> None:
        async with self._session_factory() as db:
            account = await self._get_account(db, uid)
        if not verify_password(password or "", account.hashed_password):
            raise ProviderError("auth/wrong-password", "Re-authentication failed")

    async def update_password(self, uid: str, new_password: str) -> None:
        self._check_password_strength(new_password)
        async with self._session_factory() as db:
            account = await self._get_account(db, uid)
            account.hashed_password = get_password_hash(new_password)
            await db.commit()
        logger.info("Password changed uid=%s", uid)

    async def update_email(self, uid: str, new_email: str) -> str:
        normalized = self._normalize_email(new_email)
        async with self._session_factory() as db:
            account = await self._get_account(db, uid)
            if account.email == normalized:
                return normalized

            clash = await db.execute(
                select(Account.uid).where(Account.email == normalized, Account.uid != uid)
            )
            if clash.scalar_one_or_none() is not None:
                raise ProviderError("auth/email-already-in-use", normalized)

            account.email = normalized
            try:
                await db.commit()
            except IntegrityError as exc:
                await db.rollback()
                raise ProviderError("auth/email-already-in-use", normalized) from exc
        logger.info("Email changed uid=%s", uid)
        return normalized

    async def delete_account(self, uid: str) -> None:
        async with self._session_factory() as db:
            account = await self._get_account(db, uid)
            await db.delete(account)
            await db.commit()
        await revoke_all_user_tokens(self._redis, uid, self._token_ttl_seconds)
        logger.info("Account deleted uid=%s", uid)
        self._emit(None)
