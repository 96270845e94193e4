# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Error taxonomy for the authenticated request pipeline.

- TransportError: no response at all (connection failure, timeout). Retried.
- AuthExpiredError: 401 while a refresh token is available. Triggers a
  coordinated refresh followed by one retry.
- AuthInvalidError: 401 without a refresh token, or the refresh itself was
  rejected. Terminal; credentials are cleared.
- MalformedResponseError: unparseable or unrecognized body. Degrades to an
  empty successful result instead of failing the caller.
- ValidationError: any other 4xx. Passed through for domain handling.
"""

from typing import Any, Optional, Type

CONNECTIVITY_MESSAGE = "Unable to reach the server. Please check your connection."
SESSION_EXPIRED_MESSAGE = "Session expired"


class SessionClientError(Exception):
    """Base class for all session client errors."""

    def __init__(self, message: str, status: int = 0, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code


class ConfigurationError(SessionClientError, ValueError):
    pass


class TransportError(SessionClientError):
    """The request never produced an HTTP response."""

    def __init__(self, message: str = CONNECTIVITY_MESSAGE):
        super().__init__(message, status=0)


class AuthExpiredError(SessionClientError):
    def __init__(self, message: str = "Access token expired", code: Optional[str] = None):
        super().__init__(message, status=401, code=code)


class AuthInvalidError(SessionClientError):
    def __init__(
        self,
        message: str = SESSION_EXPIRED_MESSAGE,
        status: int = 401,
        code: Optional[str] = None,
    ):
        super().__init__(message, status=status, code=code)


class MalformedResponseError(SessionClientError):
    pass


class ValidationError(SessionClientError):
    pass


def classify_status(status: int, has_refresh_token: bool) -> Optional[Type[SessionClientError]]:
    """Map an HTTP status to its taxonomy class. None means success."""
    if status == 0:
        return TransportError
    if status == 401:
        return AuthExpiredError if has_refresh_token else AuthInvalidError
    if 200 <= status < 400:
        return None
    if 400 <= status < 500:
        return ValidationError
    return SessionClientError


def extract_error_message(body: Any, status: int) -> str:
    """
    Pull a human-readable message out of an error body.

    Handles the envelopes the backend is known to use:
    {"error": {"code", "message"}}, {"error": "..."}, {"message": "..."}.
    """
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            message = error.get("message")
            if isinstance(message, str) and message:
                return message
        if isinstance(error, str) and error:
            return error
        message = body.get("message")
        if isinstance(message, str) and message:
            return message
    if isinstance(body, str) and body.strip():
        return body.strip()[:500]
    return f"HTTP {status}"


def extract_error_code(body: Any) -> Optional[str]:
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and isinstance(error.get("code"), str):
            return error["code"]
        if isinstance(body.get("code"), str):
            return body["code"]
    return None
