# SPDX-License-Identifier: LGPL-3.0-only
# Copyright (c) 2026 Mirrowel

"""
Logging setup for applications embedding the session client.

The library itself only ever logs to the "session_client" logger and never
installs handlers on import. Call configure_logging() from the host
application to get colored console output (and optionally a file log).
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

import colorlog

from .config import _env_bool

LOGGER_NAME = "session_client"

lib_logger = logging.getLogger(LOGGER_NAME)
lib_logger.addHandler(logging.NullHandler())


def configure_logging(
    level: int = logging.INFO,
    debug: Optional[bool] = None,
    log_file: Optional[Union[str, Path]] = None,
) -> logging.Logger:
    """
    Attach console (and optional file) handlers to the library logger.

    Args:
        level: Console level when debug is off
        debug: Enables token-lifecycle tracing (DEBUG level). Falls back to
            SESSION_CLIENT_DEBUG when omitted. Tokens are always masked
            before they reach a log record.
        log_file: Optional path for a plain-text log file

    Returns:
        The configured library logger
    """
    if debug is None:
        debug = _env_bool("DEBUG", False)

    for handler in list(lib_logger.handlers):
        lib_logger.removeHandler(handler)

    effective_level = logging.DEBUG if debug else level

    console_handler = colorlog.StreamHandler(sys.stdout)
    console_handler.setLevel(effective_level)
    console_handler.setFormatter(
        colorlog.ColoredFormatter(
            "%(log_color)s%(levelname)-8s%(reset)s %(message)s",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
        )
    )
    lib_logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(effective_level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
        lib_logger.addHandler(file_handler)

    lib_logger.setLevel(effective_level)
    lib_logger.propagate = False

    # httpx logs full URLs at INFO; keep it quiet unless tracing
    logging.getLogger("httpx").setLevel(logging.DEBUG if debug else logging.WARNING)
    return lib_logger
