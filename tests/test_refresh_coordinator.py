import asyncio

import pytest
from conftest import FakeAuthClient, no_sleep, token_for, wait_for

from session_client.credential_store import EMAIL_KEY
from session_client.error_handler import AuthInvalidError, TransportError
from session_client.models import TokenResponse
from session_client.refresh_coordinator import RefreshCoordinator, RefreshState


def _tokens(sub: str, refresh_token=None) -> TokenResponse:
    payload = {"accessToken": token_for(sub)}
    if refresh_token:
        payload["refreshToken"] = refresh_token
    return TokenResponse.model_validate(payload)


@pytest.mark.asyncio
async def test_missing_refresh_token_returns_false_without_network(store):
    store.authenticated = True
    store.set(EMAIL_KEY, "kept@example.com")
    auth = FakeAuthClient()
    coordinator = RefreshCoordinator(store, auth, sleep=no_sleep)

    assert await coordinator.refresh() is False

    assert auth.calls == []
    assert coordinator.state is RefreshState.IDLE
    assert store.authenticated is False
    assert store.get(EMAIL_KEY) == "kept@example.com"


@pytest.mark.asyncio
async def test_second_attempt_success_resolves_all_three_waiters(store):
    store.refresh_token = "rt_old"
    gate = asyncio.Event()
    auth = FakeAuthClient([TransportError(), _tokens("user-2", "rt_new")], gate=gate)
    delays = []

    async def record_sleep(delay):
        delays.append(delay)

    refreshed = []
    coordinator = RefreshCoordinator(
        store, auth, sleep=record_sleep, on_refreshed=lambda: refreshed.append(True)
    )

    tasks = [asyncio.create_task(coordinator.refresh()) for _ in range(3)]
    await wait_for(lambda: coordinator.waiter_count == 3)
    assert coordinator.state is RefreshState.REFRESHING
    gate.set()

    results = await asyncio.gather(*tasks)

    assert results == [True, True, True]
    assert len(auth.calls) == 2
    assert delays == [2.0]
    assert coordinator.state is RefreshState.IDLE
    assert coordinator.waiter_count == 0
    assert refreshed == [True]

    assert store.access_token.startswith("Bearer ")
    assert store.refresh_token == "rt_new"
    assert store.user_id == "user-2"
    assert store.authenticated is True

    stats = coordinator.get_stats()
    assert stats["cycles"] == 1
    assert stats["network_calls"] == 2
    assert stats["queued_waiters"] == 2


@pytest.mark.asyncio
async def test_definitive_rejection_rejects_every_waiter_with_same_error(store):
    store.refresh_token = "rt_revoked"
    store.access_token = "Bearer stale"
    gate = asyncio.Event()
    rejection = AuthInvalidError("Invalid refresh token", code="INVALID_REFRESH_TOKEN")
    auth = FakeAuthClient([rejection], gate=gate)
    coordinator = RefreshCoordinator(store, auth, sleep=no_sleep)

    tasks = [asyncio.create_task(coordinator.refresh()) for _ in range(3)]
    await wait_for(lambda: coordinator.waiter_count == 3)
    gate.set()

    results = await asyncio.gather(*tasks, return_exceptions=True)

    assert all(result is rejection for result in results)
    assert len(auth.calls) == 1
    assert store.access_token is None
    assert store.refresh_token is None
    assert coordinator.state is RefreshState.IDLE


@pytest.mark.asyncio
async def test_exhausted_transport_retries_raise_and_clear(store):
    store.refresh_token = "rt"
    auth = FakeAuthClient([TransportError(), TransportError(), TransportError()])
    delays = []

    async def record_sleep(delay):
        delays.append(delay)

    coordinator = RefreshCoordinator(store, auth, sleep=record_sleep)

    with pytest.raises(TransportError):
        await coordinator.refresh()

    assert len(auth.calls) == 3
    assert delays == [2.0, 4.0]
    assert store.refresh_token is None
    assert coordinator.attempt == 3


@pytest.mark.asyncio
async def test_refresh_keeps_refresh_token_when_not_rotated(store):
    store.refresh_token = "rt_stable"
    auth = FakeAuthClient([_tokens("user-9")])
    coordinator = RefreshCoordinator(store, auth, sleep=no_sleep)

    assert await coordinator.refresh() is True
    assert store.refresh_token == "rt_stable"
    assert store.user_id == "user-9"

    # a later cycle starts from a clean slate
    auth.outcomes.append(_tokens("user-10"))
    assert await coordinator.refresh() is True
    assert coordinator.get_stats()["cycles"] == 2


def test_backoff_delay_is_capped(store):
    coordinator = RefreshCoordinator(store, FakeAuthClient(), backoff_base_seconds=1.0, backoff_max_seconds=10.0)

    assert coordinator.backoff_delay(1) == 2.0
    assert coordinator.backoff_delay(2) == 4.0
    assert coordinator.backoff_delay(4) == 10.0


def test_max_attempts_must_be_positive(store):
    with pytest.raises(ValueError):
        RefreshCoordinator(store, FakeAuthClient(), max_attempts=0)
