"""
bulkload.logger — Structured JSON logging.

One JSON object per line on stderr. Pipeline context (sku, stage, row) is
lifted to top-level keys; any other keyword goes under "data".
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, TextIO

from bulkload.config import LogLevel

CONTEXT_FIELDS = ("sku", "stage", "row")

LEVELS = {
    LogLevel.DEBUG: logging.DEBUG,
    LogLevel.INFO: logging.INFO,
    LogLevel.WARN: logging.WARNING,
    LogLevel.ERROR: logging.ERROR,
}


class JSONFormatter(logging.Formatter):
    """Format log records as JSON."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname.lower(),
            "message": record.getMessage(),
            "logger": record.name,
        }

        for name in CONTEXT_FIELDS:
            value = getattr(record, name, None)
            if value not in (None, ""):
                entry[name] = value

        data = getattr(record, "data", None)
        if data:
            entry["data"] = data

        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, ensure_ascii=False, default=str)


class BulkLoadLogger:
    """Thin wrapper over a stdlib logger that takes context as keywords."""

    def __init__(
        self,
        name: str = "bulkload",
        level: LogLevel = LogLevel.INFO,
        stream: TextIO | None = None,
    ):
        self._logger = logging.getLogger(name)
        self._logger.setLevel(LEVELS.get(level, logging.INFO))
        self._logger.handlers.clear()
        self._logger.propagate = False

        handler = logging.StreamHandler(stream or sys.stderr)
        handler.setFormatter(JSONFormatter())
        self._logger.addHandler(handler)

    def _log(self, level: int, message: str, fields: dict[str, Any]) -> None:
        if not self._logger.isEnabledFor(level):
            return

        extra = {name: fields.pop(name) for name in CONTEXT_FIELDS if name in fields}
        extra["data"] = fields
        self._logger.log(level, message, extra=extra)

    def debug(self, message: str, **fields: Any) -> None:
        self._log(logging.DEBUG, message, fields)

    def info(self, message: str, **fields: Any) -> None:
        self._log(logging.INFO, message, fields)

    def warn(self, message: str, **fields: Any) -> None:
        self._log(logging.WARNING, message, fields)

    def error(self, message: str, **fields: Any) -> None:
        self._log(logging.ERROR, message, fields)


_logger: BulkLoadLogger | None = None


def get_logger() -> BulkLoadLogger:
    """Get the global logger instance."""
    global _logger
    if _logger is None:
        _logger = BulkLoadLogger()
    return _logger


def configure_logger(level: LogLevel, stream: TextIO | None = None) -> BulkLoadLogger:
    """Replace the global logger; used once by the CLI at startup."""
    global _logger
    _logger = BulkLoadLogger(level=level, stream=stream)
    return _logger
