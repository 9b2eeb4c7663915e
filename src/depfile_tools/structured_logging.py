"""
Structured logging configuration for depfile-tools.

Provides consistent, machine-readable event logs for depfile parsing and
writing. Events go to stderr so command output on stdout stays clean.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .error_handling import DEFAULT_LOG_FORMAT

_RESERVED_ATTRIBUTES = {
    "name",
    "msg",
    "args",
    "levelname",
    "levelno",
    "pathname",
    "filename",
    "module",
    "lineno",
    "funcName",
    "created",
    "msecs",
    "relativeCreated",
    "thread",
    "threadName",
    "processName",
    "process",
    "taskName",
    "getMessage",
    "exc_info",
    "exc_text",
    "stack_info",
}


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "component": getattr(record, "component", record.name),
            "message": record.getMessage(),
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRIBUTES:
                log_entry[key] = value

        return json.dumps(log_entry, default=str)


class DepfileLogger:
    """Structured logger for depfile events."""

    def __init__(self, name: str = "depfile_tools.events"):
        self.logger = logging.getLogger(name)
        self._setup_logger()
        self.context: Dict[str, Any] = {}

    def _setup_logger(self) -> None:
        """Setup logger with structured formatting."""
        if not self.logger.handlers:
            handler = logging.StreamHandler(sys.stderr)
            handler.setFormatter(StructuredFormatter())
            self.logger.addHandler(handler)
            self.logger.setLevel(logging.WARNING)
            self.logger.propagate = False

    def use_json(self, enabled: bool, log_format: str = DEFAULT_LOG_FORMAT) -> None:
        """Switch the handlers between JSON and plain text output."""
        formatter = StructuredFormatter() if enabled else logging.Formatter(log_format)
        for handler in self.logger.handlers:
            handler.setFormatter(formatter)

    def set_context(self, source: Optional[str] = None, dialect: Optional[str] = None) -> None:
        """Set fields attached to every subsequent event."""
        self.context = {}
        if source:
            self.context["source"] = source
        if dialect:
            self.context["dialect"] = dialect

    def clear_context(self) -> None:
        """Clear event context."""
        self.context.clear()

    def _log(self, level: str, event_type: str, **kwargs) -> None:
        """Internal logging method."""
        log_data = {"event_type": event_type, **self.context, **kwargs}
        getattr(self.logger, level.lower())(event_type, extra=log_data)

    def info(self, event_type: str, **kwargs) -> None:
        """Log info level event."""
        self._log("info", event_type, **kwargs)

    def warning(self, event_type: str, **kwargs) -> None:
        """Log warning level event."""
        self._log("warning", event_type, **kwargs)

    def error(self, event_type: str, **kwargs) -> None:
        """Log error level event."""
        self._log("error", event_type, **kwargs)

    def debug(self, event_type: str, **kwargs) -> None:
        """Log debug level event."""
        self._log("debug", event_type, **kwargs)


_depfile_logger = DepfileLogger()


def get_depfile_logger() -> DepfileLogger:
    """Get depfile events logger."""
    return _depfile_logger


def log_depfile_parsed(
    dialect: str, output_count: int, input_count: int, source: Optional[str] = None
) -> None:
    """Log a completed parse."""
    log_data: Dict[str, Any] = {
        "dialect": dialect,
        "output_count": output_count,
        "input_count": input_count,
    }
    if source:
        log_data["source"] = source

    if output_count == 0 and input_count == 0:
        _depfile_logger.info("depfile_empty", **log_data)
    else:
        _depfile_logger.debug("depfile_parsed", **log_data)


def log_depfile_written(destination: str, output_count: int, input_count: int) -> None:
    """Log a serialized depfile being written."""
    _depfile_logger.info(
        "depfile_written",
        destination=destination,
        output_count=output_count,
        input_count=input_count,
    )


def log_uri_skipped(line_number: int, reason: str) -> None:
    """Log a URI-list line that did not yield an input."""
    _depfile_logger.debug("uri_skipped", line_number=line_number, reason=reason)


def configure_logging(
    log_level: str = "WARNING",
    enable_json: bool = True,
    log_format: str = DEFAULT_LOG_FORMAT,
) -> None:
    """
    Configure logging for the application.

    Args:
        log_level: Level name applied to event and error loggers
        enable_json: Emit events as JSON lines instead of plain text
        log_format: logging.Formatter format string for plain text events
    """
    level = getattr(logging, log_level.upper(), logging.WARNING)
    _depfile_logger.logger.setLevel(level)
    _depfile_logger.use_json(enable_json, log_format)
    logging.getLogger("depfile_tools").setLevel(level)
