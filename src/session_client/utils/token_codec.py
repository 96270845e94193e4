# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""Bearer token claim extraction.

These helpers intentionally decode JWT payloads without signature verification.
They are only used to derive the user id for the X-User-ID header and to read
the expiry for proactive refresh, never for auth decisions. The server
validates signatures.
"""

import base64
import binascii
import json
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

BEARER_PREFIX = "Bearer "

# DecodeFailure reasons
SEGMENT_COUNT = "segment_count"
INVALID_BASE64 = "base64"
INVALID_JSON = "json"
MISSING_SUBJECT = "missing_subject"


@dataclass(frozen=True)
class TokenClaims:
    subject: str
    expires_at: Optional[float] = None

    def is_expired(self, buffer_seconds: float = 0.0, now: Optional[float] = None) -> bool:
        """True when exp falls before now + buffer. Tokens without exp never expire."""
        if self.expires_at is None:
            return False
        current = time.time() if now is None else now
        return self.expires_at < current + buffer_seconds


@dataclass(frozen=True)
class DecodeFailure:
    reason: str
    detail: str = ""

    def __bool__(self) -> bool:
        return False


def strip_bearer(token: str) -> str:
    if token.startswith(BEARER_PREFIX):
        return token[len(BEARER_PREFIX):]
    return token


def ensure_bearer(token: str) -> str:
    """Return the token with exactly one Bearer prefix."""
    if token.startswith(BEARER_PREFIX):
        return token
    return f"{BEARER_PREFIX}{token}"


def decode_payload(token: str) -> Union[Dict[str, Any], DecodeFailure]:
    """Decode the middle JWT segment as a JSON object."""
    if not token or not isinstance(token, str):
        return DecodeFailure(SEGMENT_COUNT, "empty token")

    parts = strip_bearer(token.strip()).split(".")
    if len(parts) != 3:
        return DecodeFailure(SEGMENT_COUNT, f"expected 3 segments, got {len(parts)}")

    payload_segment = parts[1]
    padding = "=" * (-len(payload_segment) % 4)

    try:
        payload_bytes = base64.urlsafe_b64decode(payload_segment + padding)
    except (binascii.Error, ValueError) as e:
        return DecodeFailure(INVALID_BASE64, str(e))

    try:
        payload = json.loads(payload_bytes.decode("utf-8"))
    except (UnicodeDecodeError, ValueError) as e:
        return DecodeFailure(INVALID_JSON, str(e))

    if not isinstance(payload, dict):
        return DecodeFailure(INVALID_JSON, "payload is not a JSON object")
    return payload


def decode_token(token: str) -> Union[TokenClaims, DecodeFailure]:
    """Decode subject and expiry claims from a (possibly Bearer-prefixed) JWT."""
    payload = decode_payload(token)
    if isinstance(payload, DecodeFailure):
        return payload

    sub = payload.get("sub")
    if not isinstance(sub, str) or not sub.strip():
        return DecodeFailure(MISSING_SUBJECT, "token has no sub claim")

    exp = payload.get("exp")
    expires_at = float(exp) if isinstance(exp, (int, float)) and not isinstance(exp, bool) else None

    return TokenClaims(subject=sub.strip(), expires_at=expires_at)
