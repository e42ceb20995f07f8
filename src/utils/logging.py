"""Centralized logging configuration for the factor engine.

Every module calls ``get_logger(__name__)``. Records are written to stdout as
one JSON object per line. Structured fields go through ``log_event`` so they
land as top-level keys instead of being formatted into the message.
"""
import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any, Optional


class JSONFormatter(logging.Formatter):
    """Format log records as JSON for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        extra_fields = getattr(record, "extra_fields", None)
        if extra_fields:
            log_data.update(extra_fields)

        # default=str keeps dates and enums from breaking a log line
        return json.dumps(log_data, default=str)


def setup_logger(
    name: str,
    level: Optional[str] = None,
    json_format: bool = True,
) -> logging.Logger:
    """Set up a logger with consistent formatting.

    Args:
        name: Logger name (usually __name__ of the module)
        level: Logging level name. If None, uses LOG_LEVEL env var or INFO.
        json_format: If False, use a human-readable line format instead.

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if logger.handlers:
        return logger

    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    level = level.upper()

    logger.setLevel(getattr(logging, level, logging.INFO))

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(getattr(logging, level, logging.INFO))

    if json_format:
        formatter: logging.Formatter = JSONFormatter()
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get or create a logger with the standard configuration."""
    return setup_logger(name)


def log_event(logger: logging.Logger, level: int, message: str, **fields: Any) -> None:
    """Log ``message`` with ``fields`` attached as structured JSON keys.

    Example:
        log_event(logger, logging.INFO, "bundle fetched", away="BOS", calls=6)
    """
    logger.log(level, message, extra={"extra_fields": fields})
