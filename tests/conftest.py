import asyncio
import base64
import json
import sys
import time
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = ROOT / "src"

if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from session_client.config import SessionClientSettings  # noqa: E402
from session_client.credential_store import CredentialStore, MemoryKeyValueStore  # noqa: E402

API_BASE = "http://api.test"


def build_jwt(payload: dict) -> str:
    header = {"alg": "HS256", "typ": "JWT"}

    def b64url(data: dict) -> str:
        raw = json.dumps(data, separators=(",", ":")).encode("utf-8")
        return base64.urlsafe_b64encode(raw).decode("utf-8").rstrip("=")

    return f"{b64url(header)}.{b64url(payload)}.signature"


def token_for(sub: str, ttl: int = 3600) -> str:
    return build_jwt({"sub": sub, "exp": int(time.time()) + ttl})


async def no_sleep(_delay: float) -> None:
    return None


@pytest.fixture
def store() -> CredentialStore:
    return CredentialStore(MemoryKeyValueStore())


@pytest.fixture
def settings() -> SessionClientSettings:
    return SessionClientSettings(api_base_url=API_BASE, auth_base_url=API_BASE)


class FakeAuthClient:
    """Stands in for AuthServiceClient; refresh() plays back scripted outcomes."""

    def __init__(self, outcomes=None, gate=None):
        self.outcomes = list(outcomes or [])
        self.gate = gate
        self.calls = []

    async def refresh(self, refresh_token):
        self.calls.append(refresh_token)
        if self.gate is not None:
            await self.gate.wait()
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


async def wait_for(predicate, max_spins: int = 1000) -> None:
    for _ in range(max_spins):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")
