# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/session_client/refresh_coordinator.py
"""
Single-flight access token refresh.

The coordinator is a two-state machine (IDLE, REFRESHING). The first caller
that finds it idle starts the one refresh network exchange; every caller that
arrives while it is refreshing is queued as a waiter. When the exchange
settles, all waiters observe the same outcome: all True together, or all
raise the same exception together.

The state flag plays the role of a mutex and the waiter list the role of a
condition variable; resolving the futures is the broadcast. No asyncio.Lock is
needed because every state transition happens without an intervening await.
"""

import asyncio
import enum
import logging
from typing import Awaitable, Callable, Dict, List, Optional

from .auth_client import AuthServiceClient
from .credential_store import CredentialStore
from .error_handler import TransportError
from .models import TokenResponse
from .utils.redaction import mask_token

lib_logger = logging.getLogger("session_client")


class RefreshState(str, enum.Enum):
    IDLE = "idle"
    REFRESHING = "refreshing"


class RefreshCoordinator:
    """
    Owns the process-wide refresh operation.

    Construct one per credential store and inject it into every
    RequestPipeline that shares that store.

    Args:
        store: Credential store holding the refresh token
        auth_client: Performs the refresh exchange
        max_attempts: Total refresh calls per cycle when the transport fails
        backoff_base_seconds: First backoff step (doubles per retry)
        backoff_max_seconds: Backoff ceiling
        on_refreshed: Called after new tokens are persisted
        sleep: Awaitable sleep, injectable for tests
    """

    def __init__(
        self,
        store: CredentialStore,
        auth_client: AuthServiceClient,
        max_attempts: int = 3,
        backoff_base_seconds: float = 1.0,
        backoff_max_seconds: float = 10.0,
        on_refreshed: Optional[Callable[[], None]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")

        self._store = store
        self._auth_client = auth_client
        self._max_attempts = max_attempts
        self._backoff_base = backoff_base_seconds
        self._backoff_max = backoff_max_seconds
        self._on_refreshed = on_refreshed
        self._sleep = sleep

        self._state = RefreshState.IDLE
        self._waiters: List[asyncio.Future] = []
        self._attempt = 0
        self._task: Optional[asyncio.Task] = None

        self._stats: Dict[str, int] = {
            "cycles": 0,
            "network_calls": 0,
            "successes": 0,
            "failures": 0,
            "queued_waiters": 0,
        }

    @property
    def state(self) -> RefreshState:
        return self._state

    @property
    def attempt(self) -> int:
        return self._attempt

    @property
    def waiter_count(self) -> int:
        return len(self._waiters)

    def get_stats(self) -> Dict[str, int]:
        return dict(self._stats)

    def backoff_delay(self, retry_number: int) -> float:
        """Delay before retry N (1-based): base * 2**N, capped."""
        return min(self._backoff_base * (2 ** retry_number), self._backoff_max)

    async def refresh(self) -> bool:
        """
        Refresh the access token, or join the refresh already in flight.

        Returns:
            True when new tokens were stored, False when there was no refresh
            token to use (credentials are cleared, no network call is made).

        Raises:
            AuthInvalidError / MalformedResponseError: the server definitively
                rejected the refresh. Credentials are cleared.
            TransportError: every attempt failed at the transport level.
                Credentials are cleared.
        """
        loop = asyncio.get_running_loop()

        if self._state is RefreshState.REFRESHING:
            future = loop.create_future()
            self._waiters.append(future)
            self._stats["queued_waiters"] += 1
            lib_logger.debug(
                f"Token refresh already in progress; queued waiter #{len(self._waiters)}"
            )
            return await future

        self._state = RefreshState.REFRESHING
        self._attempt = 0
        self._stats["cycles"] += 1

        refresh_token = self._store.refresh_token
        if not refresh_token:
            lib_logger.warning("No refresh token available; clearing credentials")
            self._store.clear_all()
            self._settle(result=False)
            return False

        # The exchange runs as its own task so that a cancelled caller cannot
        # strand the waiters queued behind it.
        future = loop.create_future()
        self._waiters.append(future)
        self._task = loop.create_task(self._run(refresh_token))
        return await future

    async def _run(self, refresh_token: str) -> None:
        try:
            tokens = await self._refresh_with_backoff(refresh_token)
            self._persist(tokens)
        except asyncio.CancelledError:
            self._store.clear_all()
            self._stats["failures"] += 1
            self._settle(error=TransportError("Token refresh was cancelled"))
            raise
        except Exception as e:
            lib_logger.error(
                f"Token refresh failed after {self._attempt} attempt(s): {type(e).__name__}: {e}. "
                "Clearing credentials."
            )
            self._store.clear_all()
            self._stats["failures"] += 1
            self._settle(error=e)
            return

        self._stats["successes"] += 1
        self._settle(result=True)

    async def _refresh_with_backoff(self, refresh_token: str) -> TokenResponse:
        """Retry transport failures with capped exponential backoff; anything else is final."""
        last_error: Optional[TransportError] = None

        for attempt in range(1, self._max_attempts + 1):
            self._attempt = attempt
            self._stats["network_calls"] += 1
            lib_logger.debug(
                f"Refreshing access token (attempt {attempt}/{self._max_attempts}, "
                f"refresh={mask_token(refresh_token)})"
            )
            try:
                return await self._auth_client.refresh(refresh_token)
            except TransportError as e:
                last_error = e
                if attempt >= self._max_attempts:
                    break
                delay = self.backoff_delay(attempt)
                lib_logger.warning(
                    f"Token refresh transport failure (attempt {attempt}/{self._max_attempts}). "
                    f"Retrying in {delay:.1f}s"
                )
                await self._sleep(delay)

        raise last_error or TransportError()

    def _persist(self, tokens: TokenResponse) -> None:
        credential = self._store.store_tokens(tokens.access_token, tokens.refresh_token)
        lib_logger.info(f"Access token refreshed ({mask_token(credential.access_token)})")

        if self._on_refreshed is not None:
            self._on_refreshed()

    def _settle(self, result: bool = False, error: Optional[BaseException] = None) -> None:
        """Return to IDLE and hand the outcome to every waiter of this cycle."""
        waiters, self._waiters = self._waiters, []
        self._state = RefreshState.IDLE
        self._task = None

        for future in waiters:
            if future.done():
                continue
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(result)

        if waiters:
            lib_logger.debug(
                f"Token refresh settled ({'failed' if error else result}); notified {len(waiters)} waiter(s)"
            )
