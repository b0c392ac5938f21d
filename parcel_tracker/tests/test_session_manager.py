"""
Tests for sign-up, sign-in, sign-out and the current-user stream.
"""

import asyncio

import pytest

from parcel_tracker.app.core.exceptions import (
    ConfigurationError,
    EmailInUseError,
    InputValidationError,
    InvalidCredentialsError,
    InvalidEmailError,
    NetworkError,
    WeakPasswordError,
)
from parcel_tracker.app.core.streams import LatestValueStream
from parcel_tracker.app.services.session_manager import SessionManager

DESKTOP_UA = "Mozilla/5.0 (Windows NT 10.0; Win64; x64)"


# Sign-up

@pytest.mark.asyncio
async def test_sign_up_creates_account_and_profile(session_manager, profile_service):
    session = await session_manager.sign_up("New.User@Test.com", "password123", "  New User ")

    assert session.user.email == "new.user@test.com"
    assert session.access_token
    profile = await profile_service.get_profile(session.user.uid)
    assert profile.name == "New User"
    assert profile.email == "new.user@test.com"
    assert profile.two_factor_enabled is False
    assert profile.security_settings is None


@pytest.mark.asyncio
async def test_sign_up_duplicate_email_is_rejected(session_manager, signed_up_user):
    with pytest.raises(EmailInUseError):
        await session_manager.sign_up("ALICE@test.com", "password456", "Other Alice")


@pytest.mark.asyncio
async def test_sign_up_short_password_is_weak(session_manager):
    with pytest.raises(WeakPasswordError):
        await session_manager.sign_up("bob@test.com", "12345", "Bob")


@pytest.mark.asyncio
async def test_sign_up_malformed_email(session_manager):
    with pytest.raises(InvalidEmailError):
        await session_manager.sign_up("not-an-email", "password123", "Bob")


@pytest.mark.asyncio
async def test_sign_up_requires_name(session_manager):
    with pytest.raises(InputValidationError) as exc_info:
        await session_manager.sign_up("bob@test.com", "password123", "   ")
    assert "name" in exc_info.value.field_errors


@pytest.mark.asyncio
async def test_sign_up_keeps_long_name_whole(session_manager, profile_service):
    long_name = "Bartholomew " * 100
    session = await session_manager.sign_up("bart@test.com", "password123", long_name)

    profile = await profile_service.get_profile(session.user.uid)
    assert profile.name == long_name.strip()


@pytest.mark.asyncio
async def test_missing_api_key_is_configuration_error(backend, session_manager):
    backend.settings.backend_api_key = ""
    with pytest.raises(ConfigurationError):
        await session_manager.sign_up("bob@test.com", "password123", "Bob")


# Sign-in

@pytest.mark.asyncio
async def test_sign_in_with_blank_fields_is_validation_error(session_manager):
    with pytest.raises(InputValidationError):
        await session_manager.sign_in("   ", "password123")
    with pytest.raises(InputValidationError):
        await session_manager.sign_in("alice@test.com", "")


@pytest.mark.asyncio
async def test_sign_in_success_records_session(session_manager, security_service, signed_up_user):
    session = await session_manager.sign_in(
        "alice@test.com", "password123", user_agent=DESKTOP_UA, ip_address="10.0.0.5"
    )

    assert session.user.uid == signed_up_user.user.uid
    history = await security_service.get_login_history(session.user.uid)
    assert len(history) == 1
    record = history[0]
    assert record.success is True
    assert record.device_type == "Desktop (Windows)"
    assert record.ip_address == "10.0.0.5"
    assert record.location == "Unknown Location"
    assert record.failure_reason is None


@pytest.mark.asyncio
async def test_long_user_agent_is_recorded_whole(session_manager, security_service, signed_up_user):
    user_agent = DESKTOP_UA + " Extension/1.0" * 200
    await session_manager.sign_in("alice@test.com", "password123", user_agent=user_agent)

    history = await security_service.get_login_history(signed_up_user.user.uid)
    assert history[0].user_agent == user_agent


@pytest.mark.asyncio
async def test_wrong_password_is_invalid_credentials_and_logged(
    session_manager, security_service, signed_up_user
):
    with pytest.raises(InvalidCredentialsError):
        await session_manager.sign_in("alice@test.com", "wrong-password")

    history = await security_service.get_login_history(signed_up_user.user.uid)
    assert len(history) == 1
    assert history[0].success is False
    assert history[0].failure_reason == "Invalid email or password"
    assert history[0].ip_address == "unknown"


@pytest.mark.asyncio
async def test_unknown_email_is_invalid_credentials(session_manager):
    with pytest.raises(InvalidCredentialsError):
        await session_manager.sign_in("ghost@test.com", "password123")
    with pytest.raises(InvalidCredentialsError):
        await session_manager.sign_in("not-an-email", "password123")


@pytest.mark.asyncio
async def test_sign_in_succeeds_when_audit_write_fails(backend, session_manager, signed_up_user, monkeypatch):
    async def broken(*args, **kwargs):
        raise NetworkError()

    monkeypatch.setattr(session_manager._security, "log_login_attempt", broken)
    session = await session_manager.sign_in("alice@test.com", "password123")
    assert session.user.uid == signed_up_user.user.uid


# Current-user stream

@pytest.mark.asyncio
async def test_current_user_follows_auth_events(session_manager, signed_up_user):
    assert session_manager.current_user.value == signed_up_user.user

    await session_manager.sign_out(signed_up_user.access_token)
    assert session_manager.current_user.value is None

    await session_manager.sign_in("alice@test.com", "password123")
    assert session_manager.current_user.value.email == "alice@test.com"


@pytest.mark.asyncio
async def test_wait_for_user_resolves_after_sign_in(session_manager, signed_up_user):
    await session_manager.sign_out(signed_up_user.access_token)

    waiter = asyncio.create_task(session_manager.wait_for_user(timeout=5))
    await asyncio.sleep(0)
    assert not waiter.done()

    await session_manager.sign_in("alice@test.com", "password123")
    user = await waiter
    assert user.uid == signed_up_user.user.uid


@pytest.mark.asyncio
async def test_wait_for_user_times_out(session_manager):
    with pytest.raises(asyncio.TimeoutError):
        await session_manager.wait_for_user(timeout=0.05)
    assert session_manager.current_user.subscriber_count == 0


@pytest.mark.asyncio
async def test_closed_manager_stops_receiving_events(backend, signed_up_user):
    manager = SessionManager(backend)
    manager.close()

    await manager.sign_in("alice@test.com", "password123")
    assert manager.current_user.value is None


# Sign-out

@pytest.mark.asyncio
async def test_sign_out_revokes_token(backend, session_manager, signed_up_user):
    token = signed_up_user.access_token
    assert await backend.identity.verify_token(token) == signed_up_user.user

    await session_manager.sign_out(token)
    assert await backend.identity.verify_token(token) is None


@pytest.mark.asyncio
async def test_sign_out_clears_user_even_when_revocation_fails(session_manager, signed_up_user, mock_redis):
    mock_redis.fail = True

    with pytest.raises(NetworkError):
        await session_manager.sign_out(signed_up_user.access_token)
    assert session_manager.current_user.value is None


@pytest.mark.asyncio
async def test_sign_out_with_garbage_token_still_signs_out(session_manager, signed_up_user):
    await session_manager.sign_out("not-a-jwt")
    assert session_manager.current_user.value is None


# LatestValueStream

@pytest.mark.asyncio
async def test_new_subscriber_gets_latest_value_first():
    stream = LatestValueStream()
    stream.publish("first")
    stream.publish("second")

    subscription = stream.subscribe()
    assert await subscription.get() == "second"

    stream.publish("third")
    assert await subscription.get() == "third"
    subscription.unsubscribe()


@pytest.mark.asyncio
async def test_slow_subscriber_only_sees_most_recent_value():
    stream = LatestValueStream("a")
    subscription = stream.subscribe()
    stream.publish("b")
    stream.publish("c")

    assert await subscription.get() == "c"


@pytest.mark.asyncio
async def test_unsubscribe_ends_iteration_and_detaches():
    stream = LatestValueStream()
    received = []

    async with stream.subscribe() as subscription:
        assert stream.subscriber_count == 1
        received.append(await subscription.get())

    assert stream.subscriber_count == 0
    assert subscription.closed
    stream.publish("ignored")
    with pytest.raises(StopAsyncIteration):
        await subscription.get()
    assert received == [None]


@pytest.mark.asyncio
async def test_close_releases_waiting_iterators():
    stream = LatestValueStream()
    subscription = stream.subscribe()
    await subscription.get()

    async def drain():
        return [value async for value in subscription]

    task = asyncio.create_task(drain())
    await asyncio.sleep(0)
    stream.publish("x")
    await asyncio.sleep(0)
    stream.close()

    assert await asyncio.wait_for(task, timeout=1) == ["x"]
