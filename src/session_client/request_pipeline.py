# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/session_client/request_pipeline.py
"""
Authenticated request pipeline.

Every resource call goes through RequestPipeline.send(): normalize the path,
attach credentials, send, and turn whatever comes back into a
NormalizedResponse. Two recoveries are built in, each allowed at most once per
logical request:

- a transport failure (no response at all) is retried once as-is
- a 401 triggers a coordinated token refresh and one retry with the new token;
  if the token was already replaced while the request was in flight, the
  retry goes out with the current token and no new refresh is started

A 401 that survives both is terminal: credentials are cleared, the redirect
loop guard picks a navigation, and the caller gets failure(401).
"""

import json
import logging
from typing import Any, Callable, Dict, Optional

import httpx

from .credential_store import CredentialStore
from .endpoints import is_auth_endpoint, normalize_endpoint
from .error_handler import (
    CONNECTIVITY_MESSAGE,
    SESSION_EXPIRED_MESSAGE,
    AuthExpiredError,
    AuthInvalidError,
    SessionClientError,
    classify_status,
    extract_error_code,
    extract_error_message,
)
from .models import NormalizedResponse, RedirectDecision, RequestContext
from .redirect_guard import RedirectLoopGuard
from .refresh_coordinator import RefreshCoordinator
from .response_normalizer import ResponseShape, normalize
from .utils.redaction import mask_token, redact_headers
from .utils.token_codec import BEARER_PREFIX, DecodeFailure, decode_token, ensure_bearer

lib_logger = logging.getLogger("session_client")

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


def parse_body(response: httpx.Response) -> Any:
    """
    Parse a response body without ever raising.

    JSON when declared; otherwise JSON anyway if the text looks like it
    (servers mislabel content types); otherwise {"message": text}.
    An empty body is None.
    """
    text = response.text
    stripped = text.strip()
    if not stripped:
        return None

    if "json" in response.headers.get("content-type", "").lower():
        try:
            return response.json()
        except ValueError:
            lib_logger.warning(
                f"Response declared JSON but did not parse (HTTP {response.status_code})"
            )

    if (stripped[0], stripped[-1]) in (("{", "}"), ("[", "]")):
        try:
            return json.loads(stripped)
        except ValueError:
            lib_logger.debug("Body looked like JSON but did not parse; treating as text")

    return {"message": text}


class RequestPipeline:
    """
    Sends RequestContexts with credentials attached and normalizes the result.

    Args:
        store: Credential store shared with the refresh coordinator
        coordinator: The single RefreshCoordinator for this store
        http_client: Shared async client (its cookie jar carries session cookies)
        api_base_url: Base URL for resource endpoints
        auth_base_url: Base URL for /api/auth endpoints (defaults to api_base_url)
        timeout_seconds: Per-request timeout; a timeout counts as a transport failure
        redirect_guard: Decides the navigation after a terminal 401
        on_auth_required: Receives that RedirectDecision (the host's navigator)
        current_path: Returns the host's current location, if it has one
        proactive_refresh_seconds: Refresh before sending when the token
            expires within this window (0 disables)
    """

    def __init__(
        self,
        store: CredentialStore,
        coordinator: RefreshCoordinator,
        http_client: httpx.AsyncClient,
        api_base_url: str,
        auth_base_url: Optional[str] = None,
        timeout_seconds: float = 15.0,
        redirect_guard: Optional[RedirectLoopGuard] = None,
        on_auth_required: Optional[Callable[[RedirectDecision], None]] = None,
        current_path: Optional[Callable[[], Optional[str]]] = None,
        proactive_refresh_seconds: float = 0.0,
    ):
        self._store = store
        self._coordinator = coordinator
        self._http_client = http_client
        self.api_base_url = api_base_url.rstrip("/")
        self.auth_base_url = (auth_base_url or api_base_url).rstrip("/")
        self._timeout = timeout_seconds
        self._redirect_guard = redirect_guard
        self._on_auth_required = on_auth_required
        self._current_path = current_path
        self._proactive_refresh_seconds = proactive_refresh_seconds

        self._stats: Dict[str, int] = {
            "requests": 0,
            "transport_retries": 0,
            "auth_retries": 0,
            "stale_token_retries": 0,
            "session_expired": 0,
        }

    def get_stats(self) -> Dict[str, int]:
        return dict(self._stats)

    def build_url(self, endpoint: str) -> str:
        path = normalize_endpoint(endpoint)
        base = self.auth_base_url if is_auth_endpoint(path) else self.api_base_url
        return f"{base}{path}"

    async def send(
        self, context: RequestContext, shape: Optional[ResponseShape] = None
    ) -> NormalizedResponse:
        self._stats["requests"] += 1
        path = normalize_endpoint(context.endpoint)
        auth_call = is_auth_endpoint(path)
        transport_retried = False

        while True:
            if not auth_call:
                await self._prepare_credentials()

            headers = self._build_headers(context)
            try:
                response = await self._dispatch(context, headers)
            except httpx.TransportError as e:
                if not transport_retried:
                    transport_retried = True
                    self._stats["transport_retries"] += 1
                    lib_logger.warning(
                        f"{context.method} {path} transport failure ({type(e).__name__}); retrying once"
                    )
                    continue
                lib_logger.error(
                    f"{context.method} {path} failed twice at the transport level: {type(e).__name__}"
                )
                return NormalizedResponse.failure(0, CONNECTIVITY_MESSAGE)

            status = response.status_code
            body = parse_body(response)
            lib_logger.debug(f"{context.method} {path} -> HTTP {status} (retry={context.retry_count})")

            error_class = classify_status(status, has_refresh_token=bool(self._store.refresh_token))
            if error_class is None:
                return normalize(body, shape, status=status)

            if not auth_call and error_class in (AuthExpiredError, AuthInvalidError):
                if context.retry_count == 0:
                    if self._token_replaced(headers.get("Authorization")):
                        # Another request refreshed while this one was in flight
                        lib_logger.info(
                            f"{context.method} {path} was sent with a superseded token; retrying"
                        )
                        self._stats["stale_token_retries"] += 1
                        context = context.with_retry()
                        continue
                    if error_class is AuthExpiredError:
                        lib_logger.info(f"{context.method} {path} unauthorized; refreshing access token")
                        if await self._refresh():
                            self._stats["auth_retries"] += 1
                            context = context.with_retry()
                            continue
                return self._session_expired(path, body)

            message = extract_error_message(body, status)
            lib_logger.warning(
                f"{context.method} {path} failed with HTTP {status} ({error_class.__name__}): {message}"
            )
            return NormalizedResponse.failure(status, message, code=extract_error_code(body))

    def _token_replaced(self, sent_authorization: Optional[str]) -> bool:
        current = self._store.access_token
        return bool(current) and ensure_bearer(current) != sent_authorization

    async def _dispatch(self, context: RequestContext, headers: Dict[str, str]) -> httpx.Response:
        if lib_logger.isEnabledFor(logging.DEBUG):
            lib_logger.debug(
                f"Sending {context.method} {normalize_endpoint(context.endpoint)} "
                f"headers={redact_headers(headers)}"
            )
        return await self._http_client.request(
            context.method,
            self.build_url(context.endpoint),
            headers=headers,
            params=context.params,
            json=context.body,
            timeout=self._timeout,
        )

    def _build_headers(self, context: RequestContext) -> Dict[str, str]:
        headers = dict(DEFAULT_HEADERS)
        token = self._store.access_token
        if token:
            headers["Authorization"] = ensure_bearer(token)
        user_id = self._store.user_id
        if user_id:
            headers["X-User-ID"] = user_id
        headers.update(context.headers)
        return headers

    async def _prepare_credentials(self) -> None:
        """Repair what can be repaired locally before a request goes out."""
        token = self._store.access_token

        if token and not token.startswith(BEARER_PREFIX):
            token = ensure_bearer(token)
            self._store.access_token = token
            lib_logger.debug("Stored access token was missing its Bearer prefix; fixed")

        if not token and self._store.authenticated:
            lib_logger.warning("Authenticated flag set but no access token stored")
            if self._store.refresh_token:
                await self._refresh()
                token = self._store.access_token

        elif token and self._proactive_refresh_seconds > 0 and self._store.refresh_token:
            claims = decode_token(token)
            if claims and claims.is_expired(self._proactive_refresh_seconds):
                lib_logger.info(
                    f"Access token expires within {self._proactive_refresh_seconds:.0f}s; refreshing early"
                )
                await self._refresh()
                token = self._store.access_token

        if token and not self._store.user_id:
            claims = decode_token(token)
            if isinstance(claims, DecodeFailure):
                lib_logger.warning(f"Cannot derive user id from access token: {claims.reason}")
            else:
                self._store.user_id = claims.subject
                lib_logger.debug(f"Derived user id from access token ({mask_token(token)})")

    async def _refresh(self) -> bool:
        try:
            return await self._coordinator.refresh()
        except SessionClientError as e:
            lib_logger.warning(f"Token refresh did not recover the session: {e.message}")
            return False

    def _session_expired(self, path: str, body: Any) -> NormalizedResponse:
        self._stats["session_expired"] += 1
        lib_logger.warning(f"Session expired on {path}; clearing credentials")
        self._store.clear_all()

        if self._redirect_guard is not None:
            current = self._current_path() if self._current_path is not None else None
            decision = self._redirect_guard.decide(current_path=current)
            if self._on_auth_required is not None:
                self._on_auth_required(decision)

        return NormalizedResponse.failure(
            401, SESSION_EXPIRED_MESSAGE, code=extract_error_code(body)
        )
