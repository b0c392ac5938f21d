"""
Backend client.

Owns the connections to the three collaborators (identity provider,
document store, blob store). Built once at process start with `init()`,
released with `shutdown()`, and passed explicitly to every service.
"""

import logging
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from parcel_tracker.app.backend.blobs import LocalBlobStore
from parcel_tracker.app.backend.identity import IdentityProvider
from parcel_tracker.app.core.config import Settings, settings as default_settings
from parcel_tracker.app.core.redis_client import create_redis
from parcel_tracker.app.db.session import Base, create_engine_from_settings, create_session_factory

# Import models to ensure they are registered with Base
from parcel_tracker.app.models.parcel import Parcel, ParcelStatusEvent  # noqa: F401
from parcel_tracker.app.models.user import Account, UserProfile  # noqa: F401
from parcel_tracker.app.models.login_session import LoginSession  # noqa: F401

logger = logging.getLogger(__name__)


class BackendClient:
    """
    Explicitly constructed handle on the backend collaborators.

    Any collaborator may be supplied up front (tests pass an in-memory
    SQLite engine, a Redis double and a temp-dir blob store); the rest are
    created from settings during `init()`.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        *,
        engine: Optional[AsyncEngine] = None,
        redis=None,
        blob_store=None,
    ):
        self.settings = settings or default_settings
        self._engine = engine
        self._redis = redis
        self._blobs = blob_store
        self._session_factory: Optional[async_sessionmaker[AsyncSession]] = None
        self._identity: Optional[IdentityProvider] = None

    @property
    def initialized(self) -> bool:
        return self._session_factory is not None

    async def init(self) -> "BackendClient":
        if self.initialized:
            return self

        if self._engine is None:
            self._engine = create_engine_from_settings(self.settings)
        if self._redis is None:
            self._redis = create_redis(self.settings)
        if self._blobs is None:
            self._blobs = LocalBlobStore(
                self.settings.blob_storage_root,
                self.settings.blob_public_base_url,
            )

        if self.settings.auto_create_schema:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)

        self._session_factory = create_session_factory(self._engine)
        self._identity = IdentityProvider(self._session_factory, self._redis, self.settings)
        logger.info(
            "Backend client initialized for project %s (auth domain %s, storage bucket %s)",
            self.settings.backend_project_id,
            self.settings.backend_auth_domain,
            self.settings.backend_storage_bucket,
        )
        return self

    async def shutdown(self) -> None:
        if self._redis is not None:
            await self._redis.aclose()
        if self._engine is not None:
            await self._engine.dispose()
        self._session_factory = None
        self._identity = None
        logger.info("Backend client shut down")

    def _require(self, value, name: str):
        if value is None or not self.initialized:
            raise RuntimeError(f"BackendClient.{name} used before init()")
        return value

    def session(self) -> AsyncSession:
        """Open a document store session (use as `async with`)."""
        factory = self._require(self._session_factory, "session")
        return factory()

    @property
    def identity(self) -> IdentityProvider:
        return self._require(self._identity, "identity")

    @property
    def blobs(self) -> LocalBlobStore:
        return self._require(self._blobs, "blobs")

    @property
    def redis(self):
        return self._require(self._redis, "redis")
