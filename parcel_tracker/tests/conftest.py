"""
Centralized Test Configuration.

Every test gets a fresh BackendClient wired to an in-memory SQLite document
store, an in-memory Redis double and a temp-dir blob store.
"""

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import StaticPool

from parcel_tracker.app.backend.blobs import LocalBlobStore
from parcel_tracker.app.backend.client import BackendClient
from parcel_tracker.app.core.config import Settings
from parcel_tracker.app.main import create_app
from parcel_tracker.app.services.parcel_repository import ParcelRepository
from parcel_tracker.app.services.profile_service import ProfileService
from parcel_tracker.app.services.security_service import SecurityService
from parcel_tracker.app.services.session_manager import SessionManager

# Setup In-Memory Test Database
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"
TEST_BLOB_BASE_URL = "http://test/blobs"


# Mock Redis for reliability in CI/CD
class MockRedis:
    def __init__(self):
        self.store = {}
        self._closed = False
        self.fail = False

    def _check(self):
        if self.fail:
            raise ConnectionError("Redis unavailable")

    async def ping(self):
        if self._closed:
            return False
        return True

    async def get(self, key):
        self._check()
        return self.store.get(key)

    async def set(self, key, value, ex=None):
        self._check()
        self.store[key] = value
        return True

    async def setex(self, key, ttl, value):
        self._check()
        self.store[key] = value
        return True

    async def delete(self, key):
        self._check()
        if key in self.store:
            del self.store[key]
            return 1
        return 0

    async def exists(self, key):
        self._check()
        return 1 if key in self.store else 0

    async def flushdb(self):
        self.store = {}

    async def aclose(self):
        self._closed = True
        self.store = {}


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        database_url=TEST_DATABASE_URL,
        redis_url="redis://test:6379/0",
        blob_storage_root=str(tmp_path / "blobs"),
        blob_public_base_url=TEST_BLOB_BASE_URL,
        secret_key="test-secret-key-with-at-least-32-characters",
        debug=False,
    )


@pytest.fixture
def mock_redis():
    return MockRedis()


@pytest.fixture
async def backend(test_settings, mock_redis, tmp_path):
    """Initialized backend client; tables are created on init."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    client = BackendClient(
        test_settings,
        engine=engine,
        redis=mock_redis,
        blob_store=LocalBlobStore(str(tmp_path / "blobs"), TEST_BLOB_BASE_URL),
    )
    await client.init()
    yield client
    await client.shutdown()


@pytest.fixture
def parcel_repository(backend):
    return ParcelRepository(backend)


@pytest.fixture
def profile_service(backend):
    return ProfileService(backend)


@pytest.fixture
def security_service(backend):
    return SecurityService(backend)


@pytest.fixture
def session_manager(backend):
    manager = SessionManager(backend)
    yield manager
    manager.close()


@pytest.fixture
async def signed_up_user(session_manager):
    """Account + profile for alice@test.com / password123."""
    return await session_manager.sign_up("alice@test.com", "password123", "Alice")


@pytest.fixture
async def client(test_settings, backend):
    """Async client for testing."""
    app = create_app(test_settings, backend=backend)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.state.session_manager.close()


@pytest.fixture
async def auth_headers(client):
    """Sign up through the API and return bearer headers."""
    response = await client.post("/v1/auth/signup", json={
        "email": "owner@test.com",
        "password": "password123",
        "name": "Parcel Owner",
    })
    token = response.json()["access_token"]
    return {"Authorization": f"Bearer {token}"}
