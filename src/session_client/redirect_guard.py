# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/session_client/redirect_guard.py
"""
Redirect loop detection.

Counters live in the key-value store rather than on the instance so that they
survive the reload a redirect causes (or a process restart with a file-backed
store).
"""

import logging
import time
from typing import Callable, Optional

from .credential_store import (
    REDIRECT_COUNT_KEY,
    REDIRECT_IN_PROGRESS_KEY,
    REDIRECT_TIMESTAMP_KEY,
    CredentialStore,
)
from .models import RedirectAction, RedirectDecision, RedirectLoopState

lib_logger = logging.getLogger("session_client")


class RedirectLoopGuard:
    """
    Decides between a login redirect and a forced full reload.

    Args:
        store: Credential store holding the counters
        window_seconds: Attempts closer together than this count as a burst
        threshold: A burst longer than this is treated as a loop
        login_path: Redirect target for a normal re-login
        clock: Returns the current time in seconds
    """

    def __init__(
        self,
        store: CredentialStore,
        window_seconds: float = 2.0,
        threshold: int = 2,
        login_path: str = "/auth",
        clock: Callable[[], float] = time.time,
    ):
        self._store = store
        self.window_seconds = window_seconds
        self.threshold = threshold
        self.login_path = login_path
        self._clock = clock

    def state(self) -> RedirectLoopState:
        try:
            timestamp = float(self._store.get(REDIRECT_TIMESTAMP_KEY) or 0)
            count = int(self._store.get(REDIRECT_COUNT_KEY) or 0)
        except ValueError:
            lib_logger.warning("Corrupt redirect counters in store; resetting")
            self.reset()
            return RedirectLoopState()
        return RedirectLoopState(last_redirect_timestamp=timestamp, redirect_count=count)

    def reset(self) -> None:
        self._store.set(REDIRECT_TIMESTAMP_KEY, "0")
        self._store.set(REDIRECT_COUNT_KEY, "0")
        self._store.remove(REDIRECT_IN_PROGRESS_KEY)

    def record_redirect_attempt(self, now: Optional[float] = None) -> bool:
        """
        Record one redirect-to-login attempt.

        Returns:
            True when a loop was detected. Credentials and counters have been
            cleared and the caller must force a full reload.
        """
        current = self._clock() if now is None else now
        state = self.state()

        if current - state.last_redirect_timestamp < self.window_seconds:
            count = state.redirect_count + 1
        else:
            count = 1

        self._store.set(REDIRECT_TIMESTAMP_KEY, str(current))
        self._store.set(REDIRECT_COUNT_KEY, str(count))

        if count > self.threshold:
            lib_logger.warning(
                f"Redirect loop detected ({count} redirects within {self.window_seconds}s); "
                "clearing credentials"
            )
            self._store.clear_all()
            self.reset()
            return True

        lib_logger.debug(f"Redirect attempt {count}/{self.threshold} recorded")
        return False

    def decide(self, current_path: Optional[str] = None, now: Optional[float] = None) -> RedirectDecision:
        """
        Build the navigation decision for an unrecoverable auth failure.

        A caller already sitting on the login page gets a full reload instead
        of a redirect back to itself.
        """
        if self.record_redirect_attempt(now=now):
            return RedirectDecision(RedirectAction.FULL_RELOAD, self.login_path, loop_detected=True)

        if current_path and current_path.startswith(self.login_path):
            self._store.remove(REDIRECT_IN_PROGRESS_KEY)
            return RedirectDecision(RedirectAction.FULL_RELOAD, current_path)

        self._store.set(REDIRECT_IN_PROGRESS_KEY, "true")
        return RedirectDecision(RedirectAction.LOGIN, self.login_path)
