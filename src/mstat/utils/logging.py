"""Structured logging configuration."""

import logging
import json
import sys
from typing import Any, Callable, Dict, Optional

from ..config.settings import settings

# Caller-supplied receiver for structured pipeline events
EventSink = Callable[[Dict[str, Any]], None]


class JSONFormatter(logging.Formatter):
    """Format logs as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        log_data: Dict[str, Any] = {
            "timestamp": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if hasattr(record, "extra"):
            log_data.update(record.extra)  # type: ignore
        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)
        return json.dumps(log_data, default=str)


def get_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler(sys.stdout)
        if settings.log_format == "json":
            handler.setFormatter(JSONFormatter())
        else:
            handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
        logger.addHandler(handler)
        logger.setLevel(getattr(logging, settings.log_level.upper(), logging.INFO))
    return logger


def emit_event(sink: Optional[EventSink], logger: logging.Logger, event: str, **fields: Any) -> None:
    """Send a structured event to ``sink`` and log it at DEBUG.

    The record carries the fields under ``extra`` so the JSON formatter
    merges them into its output.
    """
    payload: Dict[str, Any] = {"event": event, **fields}
    logger.debug(event, extra={"extra": payload})
    if sink is not None:
        sink(payload)
