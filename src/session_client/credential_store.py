# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/session_client/credential_store.py
"""
Credential storage.

CredentialStore is a thin typed view over a synchronous key-value store. It
holds no logic beyond reading and writing the auth keys; absence of a key is
a normal state, not an error.

Two backing stores are provided:
- MemoryKeyValueStore: process-local, used in tests and short-lived scripts
- JsonFileKeyValueStore: survives restarts (the equivalent of browser
  localStorage surviving page loads), written atomically
"""

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Protocol, Union

from .models import Credential
from .utils.token_codec import DecodeFailure, decode_token, ensure_bearer

lib_logger = logging.getLogger("session_client")

ACCESS_TOKEN_KEY = "accessToken"
REFRESH_TOKEN_KEY = "refreshToken"
USER_ID_KEY = "userId"
AUTHENTICATED_KEY = "isAuthenticated"
EMAIL_KEY = "email"
REDIRECT_TIMESTAMP_KEY = "auth_redirect_timestamp"
REDIRECT_COUNT_KEY = "auth_redirect_count"
REDIRECT_IN_PROGRESS_KEY = "auth_redirect_in_progress"
TOKEN_EXPIRED_KEY = "token_expired"

# Keys removed by clear_all(). Legacy duplicates written by older clients are
# included so a reset really is a clean slate.
AUTH_KEYS = (
    ACCESS_TOKEN_KEY,
    REFRESH_TOKEN_KEY,
    USER_ID_KEY,
    AUTHENTICATED_KEY,
    REDIRECT_IN_PROGRESS_KEY,
    TOKEN_EXPIRED_KEY,
    "auth_state",
    "nifya_auth_token",
    "nifya_refresh_token",
)


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...

    def keys(self) -> List[str]: ...


class MemoryKeyValueStore:
    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)


class JsonFileKeyValueStore:
    """
    Key-value store persisted as a flat JSON object.

    Every mutation rewrites the file via temp file + os.replace so a crash
    never leaves a half-written file. If the write fails the in-memory copy
    is kept and the error is logged; callers are never interrupted.
    """

    def __init__(self, file_path: Union[str, Path]):
        self.file_path = Path(file_path)
        self._data: Dict[str, str] = self._load()

    def _load(self) -> Dict[str, str]:
        try:
            with open(self.file_path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as e:
            lib_logger.warning(f"Ignoring unreadable credential store '{self.file_path.name}': {e}")
            return {}

        if not isinstance(data, dict):
            lib_logger.warning(f"Credential store '{self.file_path.name}' root is not an object; starting empty")
            return {}
        return {str(k): str(v) for k, v in data.items() if v is not None}

    def _flush(self) -> None:
        try:
            self.file_path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=str(self.file_path.parent), prefix=f".{self.file_path.name}.", suffix=".tmp"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(self._data, f, indent=2, sort_keys=True)
                os.chmod(tmp_path, 0o600)
                os.replace(tmp_path, self.file_path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            lib_logger.error(f"Failed to persist credential store '{self.file_path.name}': {e}")

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value
        self._flush()

    def remove(self, key: str) -> None:
        if key in self._data:
            del self._data[key]
            self._flush()

    def keys(self) -> List[str]:
        return list(self._data)


class CredentialStore:
    """Typed access to the auth keys of a KeyValueStore."""

    def __init__(self, backend: Optional[KeyValueStore] = None):
        self.backend: KeyValueStore = backend if backend is not None else MemoryKeyValueStore()

    # Raw contract -------------------------------------------------------------

    def get(self, key: str) -> Optional[str]:
        return self.backend.get(key)

    def set(self, key: str, value: str) -> None:
        self.backend.set(key, value)

    def remove(self, key: str) -> None:
        self.backend.remove(key)

    def clear_all(self, preserve: Iterable[str] = (EMAIL_KEY,)) -> None:
        """Remove every auth-related key, keeping convenience fields in `preserve`."""
        kept = set(preserve)
        for key in AUTH_KEYS:
            if key not in kept:
                self.backend.remove(key)

    # Typed accessors ----------------------------------------------------------

    @property
    def access_token(self) -> Optional[str]:
        return self.get(ACCESS_TOKEN_KEY) or None

    @access_token.setter
    def access_token(self, value: Optional[str]) -> None:
        self._set_or_remove(ACCESS_TOKEN_KEY, value)

    @property
    def refresh_token(self) -> Optional[str]:
        return self.get(REFRESH_TOKEN_KEY) or None

    @refresh_token.setter
    def refresh_token(self, value: Optional[str]) -> None:
        self._set_or_remove(REFRESH_TOKEN_KEY, value)

    @property
    def user_id(self) -> Optional[str]:
        return self.get(USER_ID_KEY) or None

    @user_id.setter
    def user_id(self, value: Optional[str]) -> None:
        self._set_or_remove(USER_ID_KEY, value)

    @property
    def authenticated(self) -> bool:
        return self.get(AUTHENTICATED_KEY) == "true"

    @authenticated.setter
    def authenticated(self, value: bool) -> None:
        self.set(AUTHENTICATED_KEY, "true" if value else "false")

    def store_tokens(self, access_token: str, refresh_token: Optional[str] = None) -> Credential:
        """
        Persist a freshly issued token pair and mark the session authenticated.

        The access token is stored Bearer-prefixed. A missing refresh token
        keeps the stored one (servers that do not rotate omit it). The user id
        is re-derived from the token; if that fails the stored id is kept.
        """
        access_token = ensure_bearer(access_token)
        self.access_token = access_token
        if refresh_token:
            self.refresh_token = refresh_token

        claims = decode_token(access_token)
        if isinstance(claims, DecodeFailure):
            lib_logger.warning(f"Could not derive user id from access token ({claims.reason}); keeping stored user id")
        else:
            self.user_id = claims.subject

        self.authenticated = True
        return self.snapshot()

    def snapshot(self) -> Credential:
        return Credential(
            access_token=self.access_token,
            refresh_token=self.refresh_token,
            user_id=self.user_id,
            authenticated=self.authenticated,
        )

    def _set_or_remove(self, key: str, value: Optional[str]) -> None:
        if value:
            self.set(key, value)
        else:
            self.remove(key)
