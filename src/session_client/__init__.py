# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/session_client/__init__.py

from .auth_client import AuthServiceClient
from .config import SessionClientSettings
from .credential_store import (
    CredentialStore,
    JsonFileKeyValueStore,
    KeyValueStore,
    MemoryKeyValueStore,
)
from .endpoints import is_auth_endpoint, normalize_endpoint
from .error_handler import (
    CONNECTIVITY_MESSAGE,
    SESSION_EXPIRED_MESSAGE,
    AuthExpiredError,
    AuthInvalidError,
    ConfigurationError,
    MalformedResponseError,
    SessionClientError,
    TransportError,
    ValidationError,
    classify_status,
)
from .logging_config import configure_logging
from .models import (
    Credential,
    NormalizedResponse,
    RedirectAction,
    RedirectDecision,
    RedirectLoopState,
    RequestContext,
)
from .redirect_guard import RedirectLoopGuard
from .refresh_coordinator import RefreshCoordinator, RefreshState
from .request_pipeline import RequestPipeline
from .response_normalizer import ResponseShape, normalize
from .services import (
    NotificationService,
    ProfileService,
    SubscriptionService,
    TemplateService,
)
from .session import SessionClient
from .utils.token_codec import DecodeFailure, TokenClaims, decode_token

__all__ = [
    "AuthServiceClient",
    "SessionClientSettings",
    "CredentialStore",
    "JsonFileKeyValueStore",
    "KeyValueStore",
    "MemoryKeyValueStore",
    "is_auth_endpoint",
    "normalize_endpoint",
    "CONNECTIVITY_MESSAGE",
    "SESSION_EXPIRED_MESSAGE",
    "AuthExpiredError",
    "AuthInvalidError",
    "ConfigurationError",
    "MalformedResponseError",
    "SessionClientError",
    "TransportError",
    "ValidationError",
    "classify_status",
    "configure_logging",
    "Credential",
    "NormalizedResponse",
    "RedirectAction",
    "RedirectDecision",
    "RedirectLoopState",
    "RequestContext",
    "RedirectLoopGuard",
    "RefreshCoordinator",
    "RefreshState",
    "RequestPipeline",
    "ResponseShape",
    "normalize",
    "NotificationService",
    "ProfileService",
    "SubscriptionService",
    "TemplateService",
    "SessionClient",
    "DecodeFailure",
    "TokenClaims",
    "decode_token",
]
