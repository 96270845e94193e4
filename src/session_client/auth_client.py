# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/session_client/auth_client.py
"""
Client for the external authentication service.

Only performs the HTTP exchanges (login, refresh, logout) and maps their
outcomes onto the error taxonomy. It never touches the credential store;
persisting tokens is the job of the refresh coordinator and the login/logout
flows.
"""

import logging
from typing import Any, Dict, Optional

import httpx
from pydantic import ValidationError as PydanticValidationError

from .endpoints import LOGIN_PATH, LOGOUT_PATH, REFRESH_PATH, normalize_endpoint
from .error_handler import (
    AuthInvalidError,
    MalformedResponseError,
    TransportError,
    extract_error_code,
    extract_error_message,
)
from .models import LoginRequest, RefreshRequest, TokenResponse
from .utils.redaction import mask_token, redact_body

lib_logger = logging.getLogger("session_client")

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


class AuthServiceClient:
    def __init__(
        self,
        base_url: str,
        http_client: Optional[httpx.AsyncClient] = None,
        timeout_seconds: float = 15.0,
    ):
        self.base_url = base_url.rstrip("/")
        self._http_client = http_client
        self._timeout = timeout_seconds

    def _url(self, path: str) -> str:
        return f"{self.base_url}{normalize_endpoint(path)}"

    async def _post(self, path: str, payload: Dict[str, Any]) -> httpx.Response:
        url = self._url(path)
        lib_logger.debug(f"POST {normalize_endpoint(path)} body={redact_body(payload)}")
        try:
            if self._http_client is not None:
                return await self._http_client.post(
                    url, json=payload, headers=DEFAULT_HEADERS, timeout=self._timeout
                )
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                return await client.post(url, json=payload, headers=DEFAULT_HEADERS)
        except httpx.TransportError as e:
            lib_logger.debug(f"Auth service transport failure on {path}: {type(e).__name__}")
            raise TransportError() from e

    @staticmethod
    def _json_or_none(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return response.text or None

    def _parse_tokens(self, response: httpx.Response, operation: str) -> TokenResponse:
        body = self._json_or_none(response)

        if response.is_error:
            message = extract_error_message(body, response.status_code)
            lib_logger.warning(
                f"Auth service rejected {operation} (HTTP {response.status_code}): {message}"
            )
            raise AuthInvalidError(
                message, status=response.status_code, code=extract_error_code(body)
            )

        if not isinstance(body, dict):
            raise MalformedResponseError(
                f"Invalid response from {operation} endpoint", status=response.status_code
            )
        try:
            tokens = TokenResponse.model_validate(body)
        except PydanticValidationError as e:
            raise MalformedResponseError(
                f"{operation} response missing accessToken", status=response.status_code
            ) from e

        lib_logger.debug(
            f"Auth service {operation} succeeded (access={mask_token(tokens.access_token)}, "
            f"refresh_rotated={tokens.refresh_token is not None})"
        )
        return tokens

    async def login(self, email: str, password: str) -> TokenResponse:
        request = LoginRequest(email=email, password=password)
        response = await self._post(LOGIN_PATH, request.model_dump())
        return self._parse_tokens(response, "login")

    async def refresh(self, refresh_token: str) -> TokenResponse:
        request = RefreshRequest(refresh_token=refresh_token)
        response = await self._post(REFRESH_PATH, request.model_dump(by_alias=True))
        return self._parse_tokens(response, "refresh")

    async def logout(self, refresh_token: str) -> None:
        request = RefreshRequest(refresh_token=refresh_token)
        response = await self._post(LOGOUT_PATH, request.model_dump(by_alias=True))
        if response.is_error:
            body = self._json_or_none(response)
            raise AuthInvalidError(
                extract_error_message(body, response.status_code),
                status=response.status_code,
                code=extract_error_code(body),
            )
