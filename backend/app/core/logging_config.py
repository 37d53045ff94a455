from __future__ import annotations

import logging
import os
from typing import Any, Dict


def resolve_level(level: int | str | None = None) -> int:
    """Turn a level name (or APP_LOG_LEVEL when None) into a logging level int."""
    if level is None:
        level = os.environ.get("APP_LOG_LEVEL", "INFO")
    if isinstance(level, int):
        return level
    resolved = getattr(logging, str(level).upper(), None)
    return resolved if isinstance(resolved, int) else logging.INFO


def get_uvicorn_log_config(level: int | str = logging.INFO) -> Dict[str, Any]:
    """Return a logging dictConfig for uvicorn and the gateway loggers.

    - Time format: HH:MM:SS
    - Applies to uvicorn error/access logs and our backend.* loggers.
    """
    level = resolve_level(level)

    time_format = "%H:%M:%S"
    default_fmt = "%(asctime)s %(levelprefix)s [%(name)s] %(message)s"
    access_fmt = "%(asctime)s %(levelprefix)s %(client_addr)s - \"%(request_line)s\" %(status_code)s"

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "()": "uvicorn.logging.DefaultFormatter",
                "fmt": default_fmt,
                "datefmt": time_format,
                "use_colors": True,
            },
            "access": {
                "()": "uvicorn.logging.AccessFormatter",
                "fmt": access_fmt,
                "datefmt": time_format,
                "use_colors": True,
            },
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "level": level,
                "stream": "ext://sys.stdout",
            },
            "access": {
                "class": "logging.StreamHandler",
                "formatter": "access",
                "level": level,
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "uvicorn": {"handlers": ["default"], "level": level, "propagate": False},
            "uvicorn.error": {"handlers": ["default"], "level": level, "propagate": False},
            "uvicorn.access": {"handlers": ["access"], "level": level, "propagate": False},
            # Gateway loggers: searches, probing rounds, stores
            "backend": {"handlers": ["default"], "level": level, "propagate": False},
            "backend.app": {"handlers": ["default"], "level": level, "propagate": False},
        },
        "root": {"handlers": ["default"], "level": level},
    }
