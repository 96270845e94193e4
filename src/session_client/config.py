# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

# src/session_client/config.py

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Union

from dotenv import load_dotenv

from .error_handler import ConfigurationError

ENV_PREFIX = "SESSION_CLIENT"


def _env_str(key: str, default: str) -> str:
    return os.getenv(f"{ENV_PREFIX}_{key}", default).strip()


def _env_bool(key: str, default: bool = False) -> bool:
    """Get boolean from environment variable."""
    return os.getenv(f"{ENV_PREFIX}_{key}", str(default).lower()).lower() in ("true", "1", "yes")


def _env_int(key: str, default: int) -> int:
    """Get integer from environment variable."""
    raw = os.getenv(f"{ENV_PREFIX}_{key}", str(default))
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{ENV_PREFIX}_{key} must be an integer, got {raw!r}")


def _env_float(key: str, default: float) -> float:
    raw = os.getenv(f"{ENV_PREFIX}_{key}", str(default))
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{ENV_PREFIX}_{key} must be a number, got {raw!r}")


@dataclass(frozen=True)
class SessionClientSettings:
    api_base_url: str = "http://localhost:3000"
    auth_base_url: str = "http://localhost:3000"
    timeout_seconds: float = 15.0
    refresh_max_attempts: int = 3
    refresh_backoff_base_seconds: float = 1.0
    refresh_backoff_max_seconds: float = 10.0
    redirect_window_seconds: float = 2.0
    redirect_threshold: int = 2
    proactive_refresh_seconds: float = 0.0
    login_path: str = "/auth"
    store_path: Optional[str] = None
    debug: bool = False

    @staticmethod
    def from_env(env_file: Optional[Union[str, Path]] = None) -> "SessionClientSettings":
        """
        Build settings from SESSION_CLIENT_* environment variables.

        A .env file (explicit path, or ./.env) is loaded first without
        overriding variables that are already set.
        """
        dotenv_path = Path(env_file) if env_file else Path.cwd() / ".env"
        if dotenv_path.is_file():
            load_dotenv(dotenv_path, override=False)

        api_base_url = _env_str("API_BASE_URL", "http://localhost:3000").rstrip("/")
        auth_base_url = _env_str("AUTH_BASE_URL", "").rstrip("/") or api_base_url

        settings = SessionClientSettings(
            api_base_url=api_base_url,
            auth_base_url=auth_base_url,
            timeout_seconds=_env_float("TIMEOUT_SECONDS", 15.0),
            refresh_max_attempts=_env_int("REFRESH_MAX_ATTEMPTS", 3),
            refresh_backoff_base_seconds=_env_float("REFRESH_BACKOFF_BASE_SECONDS", 1.0),
            refresh_backoff_max_seconds=_env_float("REFRESH_BACKOFF_MAX_SECONDS", 10.0),
            redirect_window_seconds=_env_float("REDIRECT_WINDOW_SECONDS", 2.0),
            redirect_threshold=_env_int("REDIRECT_THRESHOLD", 2),
            proactive_refresh_seconds=_env_float("PROACTIVE_REFRESH_SECONDS", 0.0),
            login_path=_env_str("LOGIN_PATH", "/auth"),
            store_path=_env_str("STORE_PATH", "") or None,
            debug=_env_bool("DEBUG", False),
        )
        settings.validate()
        return settings

    def validate(self) -> None:
        for name, url in (("API_BASE_URL", self.api_base_url), ("AUTH_BASE_URL", self.auth_base_url)):
            if not url.startswith(("http://", "https://")):
                raise ConfigurationError(f"{ENV_PREFIX}_{name} must be an http(s) URL, got {url!r}")

        if self.timeout_seconds <= 0:
            raise ConfigurationError(f"{ENV_PREFIX}_TIMEOUT_SECONDS must be greater than 0")

        if self.refresh_max_attempts < 1:
            raise ConfigurationError(f"{ENV_PREFIX}_REFRESH_MAX_ATTEMPTS must be 1 or greater")

        if self.refresh_backoff_base_seconds < 0 or self.refresh_backoff_max_seconds < 0:
            raise ConfigurationError("Refresh backoff delays must not be negative")

        if self.redirect_window_seconds <= 0:
            raise ConfigurationError(f"{ENV_PREFIX}_REDIRECT_WINDOW_SECONDS must be greater than 0")

        if self.redirect_threshold < 1:
            raise ConfigurationError(f"{ENV_PREFIX}_REDIRECT_THRESHOLD must be 1 or greater")

        if not self.login_path.startswith("/"):
            raise ConfigurationError(f"{ENV_PREFIX}_LOGIN_PATH must start with '/'")
