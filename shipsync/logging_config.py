"""
Logging setup.

Services attach session, order and carrier-call context through
``extra=``; production renders one JSON object per line, development
renders text with the context appended as ``key=value`` pairs.
"""

import sys
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from shipsync.config import settings

# Record attributes set via ``extra=`` that are worth shipping
CONTEXT_FIELDS = ("session_id", "order_id", "tracking_number", "carrier_method", "attempt", "transport")

TEXT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def record_context(record: logging.LogRecord) -> Dict[str, Any]:
    return {
        field: getattr(record, field)
        for field in CONTEXT_FIELDS
        if getattr(record, field, None) is not None
    }


class JSONFormatter(logging.Formatter):
    """One JSON object per record, context fields at top level."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        entry.update(record_context(record))
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, default=str)


class ContextTextFormatter(logging.Formatter):

    def formatMessage(self, record: logging.LogRecord) -> str:
        line = super().formatMessage(record)
        context = record_context(record)
        if context:
            line += " [" + " ".join(f"{key}={value}" for key, value in context.items()) + "]"
        return line


def configure_logging():
    """Install a single stdout handler on the root logger."""
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.INFO if settings.is_production else logging.DEBUG)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(JSONFormatter() if settings.is_production else ContextTextFormatter(TEXT_FORMAT))
    root_logger.addHandler(handler)

    # httpx logs every request line; the carrier client does its own audit logging
    for name in ("httpx", "uvicorn.access", "sqlalchemy.engine"):
        logging.getLogger(name).setLevel(logging.WARNING)
