"""Logging setup for the stdio servers.

stdout carries the JSON-RPC stream, so every handler here writes to
stderr (or a file). Nothing may ever log to stdout.
"""

from __future__ import annotations

import copy
import logging
from logging.config import dictConfig
from typing import Any

_LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"

LOGGING_CONFIG: dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "default": {"format": _LOG_FORMAT},
    },
    "handlers": {
        "stderr": {
            "class": "logging.StreamHandler",
            "formatter": "default",
            "stream": "ext://sys.stderr",
        },
    },
    "loggers": {
        "": {"handlers": ["stderr"], "level": "INFO"},
        "httpx": {"level": "WARNING"},
        "httpcore": {"level": "WARNING"},
    },
}


def setup_logging(level: str = "INFO", file: str = "") -> None:
    """Configure root logging to stderr, plus an optional log file."""
    config = copy.deepcopy(LOGGING_CONFIG)
    root = config["loggers"][""]
    root["level"] = level.upper()
    if file:
        config["handlers"]["file"] = {
            "class": "logging.FileHandler",
            "formatter": "default",
            "filename": file,
            "encoding": "utf-8",
        }
        root["handlers"].append("file")
    dictConfig(config)
    logging.getLogger(__name__).debug("Logging configured with level %s", level)
