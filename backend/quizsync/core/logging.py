"""Structured JSON logging configuration."""

import logging
import sys
from datetime import datetime, timezone
from typing import Any

from pythonjsonlogger import jsonlogger

from quizsync.core.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter with consistent fields.

    Timestamps are UTC ISO-8601 like every timestamp on the sync wire, so a
    device report can be lined up with server logs without conversion.
    """

    def add_fields(self, log_record: dict[str, Any], record: logging.LogRecord, message_dict: dict) -> None:
        """Add custom fields to log record."""
        super().add_fields(log_record, record, message_dict)

        # Standard fields
        log_record["timestamp"] = datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(
            timespec="milliseconds"
        )
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["module"] = record.module
        log_record["function"] = record.funcName
        log_record["env"] = settings.ENV
        # Message text is the event name ("Sync completed", "Item failed", ...)
        log_record["event"] = log_record.get("event") or record.getMessage()

        # Remove default fields we don't need
        log_record.pop("message", None)
        log_record.pop("asctime", None)


def setup_logging() -> None:
    """Configure application logging."""
    # Get root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    # Remove existing handlers
    root_logger.handlers.clear()

    # Create JSON formatter
    formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(logger)s %(module)s %(function)s")

    # Console handler (always JSON for consistency)
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Set levels for noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("uvicorn").setLevel(logging.INFO)
    # Remote config polling would otherwise log every fetch
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(name)
