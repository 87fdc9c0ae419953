"""Logging configuration for the planning poker bots.

The packages are silent by default; the entry points opt in with one of
the helpers below, usually `configure_from_env()`.

Environment variables:
    PP_LOGGING: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    PP_LOG_JSON: Set to "1" for JSON output
"""

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from typing import List, Union

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
DEFAULT_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Top-level packages whose module loggers this module controls.
LOGGER_NAMES = ("application", "domain", "infrastructure", "interfaces")


class JsonFormatter(logging.Formatter):
    """Formats log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data)


def _get_level(level: Union[str, int]) -> int:
    if isinstance(level, int):
        return level
    return getattr(logging, level.upper(), logging.INFO)


def _get_loggers() -> List[logging.Logger]:
    return [logging.getLogger(name) for name in LOGGER_NAMES]


def _install(handler: logging.Handler, level: Union[str, int]) -> logging.Handler:
    handler.setLevel(_get_level(level))
    for logger in _get_loggers():
        logger.setLevel(_get_level(level))
        logger.addHandler(handler)
    return handler


def enable_console_logging(
    level: Union[str, int] = "INFO",
    format: str = DEFAULT_FORMAT,
    date_format: str = DEFAULT_DATE_FORMAT,
) -> logging.Handler:
    """Log to stderr with a plain text format."""

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(format, date_format))
    return _install(handler, level)


def enable_json_logging(level: Union[str, int] = "INFO") -> logging.Handler:
    """Log to stderr as JSON lines."""

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    return _install(handler, level)


def disable_logging() -> None:
    for logger in _get_loggers():
        for handler in logger.handlers[:]:
            if not isinstance(handler, logging.NullHandler):
                logger.removeHandler(handler)
                handler.close()


def configure_from_env() -> None:
    """
    Configure logging from `PP_LOGGING` / `PP_LOG_JSON`.

    Does nothing when `PP_LOGGING` is not set.
    """

    level = os.environ.get("PP_LOGGING", "").upper()
    if not level:
        return

    if os.environ.get("PP_LOG_JSON", "") == "1":
        enable_json_logging(level=level)
    else:
        enable_console_logging(level=level)


for _logger in _get_loggers():
    if not _logger.handlers:
        _logger.addHandler(logging.NullHandler())
