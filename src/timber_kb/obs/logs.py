"""Logging setup for the service entrypoint."""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str | int = "INFO") -> None:
    """Install one stream handler on the package logger; idempotent."""
    logger = logging.getLogger("timber_kb")
    logger.setLevel(level.upper() if isinstance(level, str) else level)
    if not any(getattr(h, "_timber_kb", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._timber_kb = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
