# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/session_client/utils/__init__.py

from .token_codec import (
    BEARER_PREFIX,
    DecodeFailure,
    TokenClaims,
    decode_payload,
    decode_token,
    ensure_bearer,
    strip_bearer,
)
from .redaction import mask_token, redact_body, redact_headers

__all__ = [
    "BEARER_PREFIX",
    "DecodeFailure",
    "TokenClaims",
    "decode_payload",
    "decode_token",
    "ensure_bearer",
    "strip_bearer",
    "mask_token",
    "redact_body",
    "redact_headers",
]
