# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/session_client/utils/redaction.py

from typing import Any, Dict, Mapping, Optional

SENSITIVE_HEADERS = {"authorization", "cookie", "set-cookie"}
SENSITIVE_BODY_FIELDS = {"password", "accessToken", "refreshToken", "access_token", "refresh_token", "token"}


def mask_token(token: Optional[str]) -> str:
    """Mask a credential for safe display in logs. Shows first 4 and last 4 chars."""
    if not token:
        return "<none>"
    value = token[7:] if token.startswith("Bearer ") else token
    if len(value) <= 12:
        return "****"
    return f"{value[:4]}****{value[-4:]}"


def redact_headers(headers: Mapping[str, str]) -> Dict[str, str]:
    return {
        name: (mask_token(value) if name.lower() in SENSITIVE_HEADERS else value)
        for name, value in headers.items()
    }


def redact_body(body: Any) -> Any:
    """Copy of a JSON-like body with secret fields masked (one level deep)."""
    if not isinstance(body, dict):
        return body
    return {
        key: ("********" if key in SENSITIVE_BODY_FIELDS and value else value)
        for key, value in body.items()
    }
