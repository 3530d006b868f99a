"""Structured JSON logging with correlation ID support."""

import json
import logging
import sys
from datetime import datetime, timezone
from logging.handlers import TimedRotatingFileHandler
from pathlib import Path
from typing import Any

from .correlation import get_correlation_id

ROOT_LOGGER_NAME = "warelay"

# Daily files, two weeks of history
LOG_FILE_NAME = "warelay.log"
LOG_RETENTION_DAYS = 14


class JsonFormatter(logging.Formatter):
    """JSON formatter that includes correlation ID."""

    def format(self, record: logging.LogRecord) -> str:
        log_obj: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        correlation_id = get_correlation_id()
        if correlation_id:
            log_obj["correlationId"] = correlation_id

        if record.exc_info:
            log_obj["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            log_obj.update(record.extra_fields)

        return json.dumps(log_obj, default=str)


def _root_logger() -> logging.Logger:
    root = logging.getLogger(ROOT_LOGGER_NAME)

    # Only configure once (avoid duplicate handlers)
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JsonFormatter())
        root.addHandler(handler)
        root.setLevel(logging.INFO)
        root.propagate = False

    return root


def get_logger(name: str) -> logging.Logger:
    """Get a logger under the warelay hierarchy configured for JSON output."""
    root = _root_logger()
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return root.getChild(name)


def configure_logging(level: str = "INFO", log_dir: str = "") -> logging.Logger:
    """Apply the runtime log level and optionally add a rotating file handler.

    Args:
        level: Log level name (e.g. "INFO", "DEBUG").
        log_dir: Directory for daily rotated log files. Empty disables file output.

    Returns:
        The configured root warelay logger.
    """
    root = _root_logger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    if log_dir and not any(isinstance(h, TimedRotatingFileHandler) for h in root.handlers):
        path = Path(log_dir)
        path.mkdir(parents=True, exist_ok=True)
        file_handler = TimedRotatingFileHandler(
            path / LOG_FILE_NAME,
            when="midnight",
            backupCount=LOG_RETENTION_DAYS,
            encoding="utf-8",
        )
        file_handler.setFormatter(JsonFormatter())
        root.addHandler(file_handler)

    return root
