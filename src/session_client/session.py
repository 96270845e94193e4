# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/session_client/session.py
"""
SessionClient: one object wiring the store, auth client, refresh coordinator,
redirect guard and request pipeline together.

There is exactly one RefreshCoordinator per SessionClient; every request made
through the client (and its services) shares it, which is what makes refresh
single-flight.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from .auth_client import AuthServiceClient
from .config import SessionClientSettings
from .credential_store import (
    EMAIL_KEY,
    CredentialStore,
    JsonFileKeyValueStore,
    KeyValueStore,
    MemoryKeyValueStore,
)
from .error_handler import SessionClientError
from .models import Credential, NormalizedResponse, RedirectDecision, RequestContext
from .redirect_guard import RedirectLoopGuard
from .refresh_coordinator import RefreshCoordinator
from .request_pipeline import RequestPipeline
from .response_normalizer import ResponseShape
from .utils.redaction import mask_token

lib_logger = logging.getLogger("session_client")


class SessionClient:
    """
    Entry point for host applications.

    Args:
        settings: Client settings (defaults are used when omitted)
        backend: Key-value store for credentials. Defaults to a JSON file at
            settings.store_path, or memory when no path is configured.
        http_client: Shared httpx client. Created (and owned) when omitted.
        on_auth_required: Navigator callback for unrecoverable auth failures
        current_path: Returns the host's current location
        sleep: Awaitable sleep used for refresh backoff
        clock: Time source for redirect loop detection
    """

    def __init__(
        self,
        settings: Optional[SessionClientSettings] = None,
        backend: Optional[KeyValueStore] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        on_auth_required: Optional[Callable[[RedirectDecision], None]] = None,
        current_path: Optional[Callable[[], Optional[str]]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        clock: Callable[[], float] = time.time,
    ):
        self.settings = settings or SessionClientSettings()
        self.settings.validate()

        if backend is None:
            if self.settings.store_path:
                backend = JsonFileKeyValueStore(self.settings.store_path)
            else:
                backend = MemoryKeyValueStore()
        self.store = CredentialStore(backend)

        self._owns_http_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(timeout=self.settings.timeout_seconds)

        self.auth = AuthServiceClient(
            self.settings.auth_base_url,
            http_client=self.http_client,
            timeout_seconds=self.settings.timeout_seconds,
        )
        self.redirect_guard = RedirectLoopGuard(
            self.store,
            window_seconds=self.settings.redirect_window_seconds,
            threshold=self.settings.redirect_threshold,
            login_path=self.settings.login_path,
            clock=clock,
        )
        self.coordinator = RefreshCoordinator(
            self.store,
            self.auth,
            max_attempts=self.settings.refresh_max_attempts,
            backoff_base_seconds=self.settings.refresh_backoff_base_seconds,
            backoff_max_seconds=self.settings.refresh_backoff_max_seconds,
            on_refreshed=self.redirect_guard.reset,
            sleep=sleep,
        )
        self.pipeline = RequestPipeline(
            self.store,
            self.coordinator,
            self.http_client,
            api_base_url=self.settings.api_base_url,
            auth_base_url=self.settings.auth_base_url,
            timeout_seconds=self.settings.timeout_seconds,
            redirect_guard=self.redirect_guard,
            on_auth_required=on_auth_required,
            current_path=current_path,
            proactive_refresh_seconds=self.settings.proactive_refresh_seconds,
        )

    @classmethod
    def from_env(cls, env_file: Optional[str] = None, **kwargs: Any) -> "SessionClient":
        return cls(settings=SessionClientSettings.from_env(env_file), **kwargs)

    async def __aenter__(self) -> "SessionClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_http_client:
            await self.http_client.aclose()

    @property
    def is_authenticated(self) -> bool:
        return self.store.authenticated and bool(self.store.access_token)

    def credential(self) -> Credential:
        return self.store.snapshot()

    async def login(self, email: str, password: str) -> Credential:
        """
        Exchange email/password for tokens and start a session.

        Raises:
            AuthInvalidError: credentials were rejected
            TransportError: the auth service could not be reached
            MalformedResponseError: the auth service answered without a token
        """
        tokens = await self.auth.login(email, password)
        credential = self.store.store_tokens(tokens.access_token, tokens.refresh_token)
        self.store.set(EMAIL_KEY, email)
        self.redirect_guard.reset()
        lib_logger.info(f"Logged in as user {credential.user_id} ({mask_token(credential.access_token)})")
        return credential

    async def logout(self) -> None:
        """Revoke the refresh token server-side when possible; always clear locally."""
        refresh_token = self.store.refresh_token
        try:
            if refresh_token:
                await self.auth.logout(refresh_token)
        except SessionClientError as e:
            lib_logger.warning(f"Server-side logout failed ({e.message}); clearing local session anyway")
        finally:
            self.store.clear_all()
            lib_logger.info("Logged out")

    async def send(
        self, context: RequestContext, shape: Optional[ResponseShape] = None
    ) -> NormalizedResponse:
        return await self.pipeline.send(context, shape)

    async def request(
        self,
        method: str,
        endpoint: str,
        body: Any = None,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
        shape: Optional[ResponseShape] = None,
    ) -> NormalizedResponse:
        context = RequestContext(
            endpoint=endpoint,
            method=method,
            body=body,
            params=params,
            headers=headers or {},
        )
        return await self.pipeline.send(context, shape)

    async def get(self, endpoint: str, **kwargs: Any) -> NormalizedResponse:
        return await self.request("GET", endpoint, **kwargs)

    async def post(self, endpoint: str, body: Any = None, **kwargs: Any) -> NormalizedResponse:
        return await self.request("POST", endpoint, body=body, **kwargs)

    async def put(self, endpoint: str, body: Any = None, **kwargs: Any) -> NormalizedResponse:
        return await self.request("PUT", endpoint, body=body, **kwargs)

    async def patch(self, endpoint: str, body: Any = None, **kwargs: Any) -> NormalizedResponse:
        return await self.request("PATCH", endpoint, body=body, **kwargs)

    async def delete(self, endpoint: str, **kwargs: Any) -> NormalizedResponse:
        return await self.request("DELETE", endpoint, **kwargs)
