"""Central logging configuration for the MySQL service."""

from __future__ import annotations

import logging
import logging.config
import os
from typing import Optional


_CONFIGURED = False

_SERVER_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access")


def build_logging_config(level_name: str) -> dict:
    """Return the ``dictConfig`` mapping used by :func:`configure_logging`."""

    config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s %(levelname)s [%(name)s] %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            }
        },
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "stream": "ext://sys.stdout",
            }
        },
        "root": {
            "level": level_name,
            "handlers": ["stdout"],
        },
        "loggers": {},
    }
    for name in _SERVER_LOGGERS:
        config["loggers"][name] = {
            "level": level_name,
            "handlers": ["stdout"],
            "propagate": False,
        }
    return config


def configure_logging(default_level: Optional[str] = None) -> None:
    """Ensure the service logs to stdout with a consistent formatter."""

    global _CONFIGURED
    if _CONFIGURED:
        return

    level_name = (default_level or os.getenv("LOG_LEVEL", "INFO")).upper()
    logging.config.dictConfig(build_logging_config(level_name))

    _CONFIGURED = True
