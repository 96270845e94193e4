# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Data models for the session client.

Dataclasses carry in-process state (credentials, request contexts, results).
Pydantic models describe the authentication service's wire format.
"""

import enum
from dataclasses import dataclass, field, replace
from typing import Any, Dict, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")

HTTP_METHODS = frozenset({"GET", "POST", "PUT", "PATCH", "DELETE"})


@dataclass(frozen=True)
class Credential:
    """Snapshot of the persisted auth state."""

    access_token: Optional[str] = None
    refresh_token: Optional[str] = None
    user_id: Optional[str] = None
    authenticated: bool = False

    @property
    def is_consistent(self) -> bool:
        """An authenticated session must carry an access token."""
        return not self.authenticated or bool(self.access_token)


@dataclass(frozen=True)
class RequestContext:
    """One logical request. Immutable; a retry builds a new context."""

    endpoint: str
    method: str = "GET"
    body: Any = None
    headers: Dict[str, str] = field(default_factory=dict)
    params: Optional[Dict[str, Any]] = None
    retry_count: int = 0

    def __post_init__(self):
        method = self.method.upper()
        if method not in HTTP_METHODS:
            raise ValueError(f"Unsupported HTTP method: {self.method}")
        object.__setattr__(self, "method", method)
        if self.retry_count not in (0, 1):
            raise ValueError("retry_count must be 0 or 1")

    def with_retry(self) -> "RequestContext":
        return replace(self, retry_count=1)


@dataclass(frozen=True)
class NormalizedResponse(Generic[T]):
    """
    Canonical result of a pipeline call.

    ok is True exactly when error is None, and data is only carried by
    successful results. Use success()/failure() rather than the constructor.
    """

    status: int
    ok: bool
    data: Optional[T] = None
    error: Optional[str] = None
    code: Optional[str] = None
    meta: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if self.ok != (self.error is None):
            raise ValueError("ok must be True if and only if error is absent")
        if not self.ok and self.data is not None:
            raise ValueError("failed responses cannot carry data")

    @classmethod
    def success(
        cls, status: int, data: Optional[T] = None, meta: Optional[Dict[str, Any]] = None
    ) -> "NormalizedResponse[T]":
        return cls(status=status, ok=True, data=data, meta=meta or {})

    @classmethod
    def failure(
        cls, status: int, error: str, code: Optional[str] = None
    ) -> "NormalizedResponse[T]":
        return cls(status=status, ok=False, error=error or f"HTTP {status}", code=code)


@dataclass
class RedirectLoopState:
    last_redirect_timestamp: float = 0.0
    redirect_count: int = 0


class RedirectAction(str, enum.Enum):
    LOGIN = "login"
    FULL_RELOAD = "full_reload"


@dataclass(frozen=True)
class RedirectDecision:
    """What the host UI should do after an unrecoverable auth failure."""

    action: RedirectAction
    target: str
    loop_detected: bool = False


# =============================================================================
# Authentication service wire models
# =============================================================================


class LoginRequest(BaseModel):
    email: str
    password: str


class RefreshRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    refresh_token: str = Field(alias="refreshToken")


class TokenResponse(BaseModel):
    """Successful login/refresh payload: {accessToken, refreshToken?, user?}."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    access_token: str = Field(alias="accessToken", min_length=1)
    refresh_token: Optional[str] = Field(default=None, alias="refreshToken")
    user: Optional[Dict[str, Any]] = None
