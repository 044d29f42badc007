"""
Logging setup for the import engine.

Library modules only call ``logging.getLogger(__name__)`` and never attach
handlers themselves. Entry points (the console) call ``configure_logging``
once; records then go to stderr so ``--json`` output on stdout stays parseable.
"""
from __future__ import annotations

import logging
from logging.config import dictConfig
from typing import Any, Dict, Optional

from .config import settings


PACKAGE_LOGGER = "application_import"
LOG_FORMAT = "%(asctime)s | %(levelname)-7s | %(name)s | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_is_configured = False


def _resolve_level(level: Optional[str]) -> str:
    name = (level or settings.log_level or "INFO").upper()
    if not isinstance(logging.getLevelName(name), int):
        logging.getLogger(__name__).warning(f"Unknown log level '{level}', using INFO")
        return "INFO"
    return name


def build_logging_config(level: str) -> Dict[str, Any]:
    """dictConfig payload with a single stderr handler shared by every logger."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "import_engine": {"format": LOG_FORMAT, "datefmt": LOG_DATE_FORMAT},
        },
        "handlers": {
            "stderr": {
                "class": "logging.StreamHandler",
                "formatter": "import_engine",
                "level": level,
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": {
            PACKAGE_LOGGER: {"level": level},
        },
        "root": {"handlers": ["stderr"], "level": level},
    }


def configure_logging(level: Optional[str] = None, *, force: bool = False) -> None:
    """
    Install the stderr handler unless it is already in place.

    Args:
        level: Level name such as "DEBUG"; defaults to ``settings.log_level``.
            Unknown names fall back to INFO.
        force: Apply the configuration again, e.g. to change the level.
    """
    global _is_configured

    if _is_configured and not force:
        return

    dictConfig(build_logging_config(_resolve_level(level)))
    _is_configured = True
