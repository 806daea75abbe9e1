"""Package logging: one stream handler on the ``diarcore`` logger.

Every module logger (``logging.getLogger(__name__)``) propagates to it, so the
CLI can change verbosity for the whole package with :func:`set_verbosity`.
"""

from __future__ import annotations

import logging

PACKAGE_LOGGER = "diarcore"
LOG_FORMAT = "[%(levelname)s] %(message)s"


def _package_logger() -> logging.Logger:
    root = logging.getLogger(PACKAGE_LOGGER)
    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)
        root.setLevel(logging.INFO)
    return root


def set_verbosity(level: int | str) -> int:
    """Set the package log level; accepts a number or a name such as ``"debug"``."""

    if isinstance(level, str):
        resolved = logging.getLevelName(level.strip().upper())
        if not isinstance(resolved, int):
            raise ValueError(f"unknown log level: {level!r}")
        level = resolved
    _package_logger().setLevel(level)
    return level


_package_logger()
logger = logging.getLogger(f"{PACKAGE_LOGGER}.pipeline.diarization")

__all__ = ["LOG_FORMAT", "PACKAGE_LOGGER", "logger", "set_verbosity"]
