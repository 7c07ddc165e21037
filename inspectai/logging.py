"""Structured logging configuration and utilities."""

import logging
import sys
from typing import Any, Dict, Optional

from pythonjsonlogger import jsonlogger

from inspectai.config import get_settings


class StructuredFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter for structured logging."""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        """Add custom fields to log record."""
        super().add_fields(log_record, record, message_dict)
        settings = get_settings()

        log_record["timestamp"] = self.formatTime(record)
        log_record["level"] = record.levelname
        log_record["logger"] = record.name
        log_record["module"] = record.module
        log_record["function"] = record.funcName
        log_record["line"] = record.lineno

        log_record["environment"] = settings.environment
        log_record["version"] = settings.version

        # Surface context set through LoggerAdapter
        if hasattr(record, "surface"):
            log_record["surface"] = record.surface
        if hasattr(record, "report_id"):
            log_record["report_id"] = record.report_id


def setup_logging() -> None:
    """Configure logging for the application."""
    settings = get_settings()
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    if settings.environment == "development":
        handler.setFormatter(
            logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
        )
    else:
        handler.setFormatter(StructuredFormatter("%(timestamp)s %(level)s %(logger)s %(message)s"))
    root_logger.addHandler(handler)

    # Set specific log levels for noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("anthropic").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


class LoggerAdapter(logging.LoggerAdapter):
    """Logger adapter that adds context information."""

    def __init__(self, logger: logging.Logger, context: Optional[Dict[str, Any]] = None):
        self.context = context or {}
        super().__init__(logger, self.context)

    def process(self, msg: str, kwargs: Any) -> tuple:
        """Process log message with context."""
        if "extra" not in kwargs:
            kwargs["extra"] = {}
        kwargs["extra"].update(self.context)
        return msg, kwargs


def get_logger(name: str, context: Optional[Dict[str, Any]] = None) -> LoggerAdapter:
    """Get a logger with optional context."""
    return LoggerAdapter(logging.getLogger(name), context)
