"""Process-wide logging for the board service.

One stdout handler on the root logger; ``liveboard.*`` module loggers and the
uvicorn loggers share it. ``LIVEBOARD_LOG_LEVEL`` overrides the level.
"""
from __future__ import annotations

import logging
import os
from logging.config import dictConfig

LOG_FORMAT = "%(asctime)s %(levelname)s:%(name)s:%(message)s"
DEFAULT_LEVEL = "INFO"


def _logging_dict(level: str) -> dict:
    console = {"level": level, "handlers": ["console"], "propagate": False}
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": {"format": LOG_FORMAT}},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "default",
                "stream": "ext://sys.stdout",
            }
        },
        "root": {"level": level, "handlers": ["console"]},
        "loggers": {
            "liveboard": {"level": level},
            "uvicorn": dict(console),
            "uvicorn.error": dict(console),
            "uvicorn.access": dict(console),
        },
    }


def configure_logging(level: str | None = None) -> None:
    """Install the handler once; later calls (reloads, pytest capture) are no-ops."""
    if logging.getLogger().handlers:
        return
    resolved = (level or os.environ.get("LIVEBOARD_LOG_LEVEL") or DEFAULT_LEVEL).strip().upper()
    if not isinstance(logging.getLevelName(resolved), int):
        resolved = DEFAULT_LEVEL
    dictConfig(_logging_dict(resolved))


__all__ = ["configure_logging", "LOG_FORMAT"]
