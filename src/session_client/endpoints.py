# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/session_client/endpoints.py

API_ROOT = "/api"
API_PREFIX = "/api/v1"
AUTH_PREFIX = "/api/auth"

LOGIN_PATH = "/auth/login"
REFRESH_PATH = "/auth/refresh"
LOGOUT_PATH = "/auth/logout"


def normalize_endpoint(path: str) -> str:
    """
    Rewrite a caller path onto the canonical API prefix.

    - already under /api/ (or exactly /api): unchanged
    - /auth... and /v1/...: short /api prefix
    - anything else: full /api/v1 prefix

    Every output starts with /api, so applying this twice is a no-op.
    Query strings are carried through untouched.
    """
    path = (path or "").strip()
    if not path.startswith("/"):
        path = f"/{path}"

    route = path.split("?", 1)[0]
    if route == API_ROOT or route.startswith(f"{API_ROOT}/"):
        return path

    if route in ("/auth", "/v1") or route.startswith(("/auth/", "/v1/")):
        return f"{API_ROOT}{path}"

    return f"{API_PREFIX}{path}"


def is_auth_endpoint(path: str) -> bool:
    """True for normalized paths served by the authentication service."""
    route = normalize_endpoint(path).split("?", 1)[0]
    return route == AUTH_PREFIX or route.startswith(f"{AUTH_PREFIX}/")
