"""
Structured logging configuration for Netfetch.

Provides consistent logging across all modules with a human-readable
format for the terminal and a JSON-lines format for log aggregation when
Netfetch runs inside the cluster.
"""

from __future__ import annotations

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

# LogRecord attributes that are not user-supplied extra fields
_RESERVED_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "exc_info",
        "exc_text",
        "thread",
        "threadName",
        "taskName",
        "message",
    }
)


class StructuredFormatter(logging.Formatter):
    """Formatter that outputs one JSON object per record."""

    def __init__(
        self,
        include_timestamp: bool = True,
        include_location: bool = False,
        extra_fields: dict[str, Any] | None = None,
    ):
        """
        Initialize structured formatter.

        Args:
            include_timestamp: Include timestamp in output
            include_location: Include file/line location
            extra_fields: Additional fields to include in every log
        """
        super().__init__()
        self.include_timestamp = include_timestamp
        self.include_location = include_location
        self.extra_fields = extra_fields or {}

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: dict[str, Any] = {}

        if self.include_timestamp:
            log_data["timestamp"] = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")

        log_data["level"] = record.levelname.lower()
        log_data["logger"] = record.name
        log_data["message"] = record.getMessage()

        if self.include_location:
            log_data["location"] = {
                "file": record.pathname,
                "line": record.lineno,
                "function": record.funcName,
            }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS:
                log_data[key] = value

        log_data.update(self.extra_fields)

        return json.dumps(log_data, default=str)


class HumanReadableFormatter(logging.Formatter):
    """Formatter for terminal use."""

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True, include_timestamp: bool = False):
        """
        Initialize human-readable formatter.

        Args:
            use_colors: Use ANSI colors when stderr is a terminal
            include_timestamp: Include timestamp in output
        """
        super().__init__()
        self.use_colors = use_colors and sys.stderr.isatty()
        self.include_timestamp = include_timestamp

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as human-readable text."""
        parts = []

        if self.include_timestamp:
            timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
            parts.append(f"[{timestamp}]")

        level = record.levelname
        if self.use_colors and level in self.COLORS:
            level = f"{self.COLORS[level]}{level}{self.RESET}"
        parts.append(f"{level:>8}")

        parts.append(record.getMessage())

        output = " ".join(parts)

        if record.exc_info:
            output += "\n" + self.formatException(record.exc_info)

        return output


class NetfetchLogger:
    """
    Wrapper around a stdlib logger with persistent context and scan events.

    Event helpers attach an event_type field, which StructuredFormatter
    emits alongside the message.
    """

    def __init__(self, name: str):
        """
        Initialize Netfetch logger.

        Args:
            name: Logger name
        """
        self.logger = logging.getLogger(name)
        self._context: dict[str, Any] = {}

    def set_context(self, **kwargs: Any) -> None:
        """Set persistent context fields for all logs."""
        self._context.update(kwargs)

    def clear_context(self) -> None:
        """Clear context fields."""
        self._context.clear()

    def _log(self, level: int, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        extra = {**self._context, **kwargs}
        self.logger.log(level, message, exc_info=exc_info, extra=extra)

    def debug(self, message: str, **kwargs: Any) -> None:
        """Log debug message."""
        self._log(logging.DEBUG, message, **kwargs)

    def info(self, message: str, **kwargs: Any) -> None:
        """Log info message."""
        self._log(logging.INFO, message, **kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log warning message."""
        self._log(logging.WARNING, message, **kwargs)

    def error(self, message: str, exc_info: bool = False, **kwargs: Any) -> None:
        """Log error message."""
        self._log(logging.ERROR, message, exc_info=exc_info, **kwargs)

    def scan_started(self, dialect: str, namespaces: list[str]) -> None:
        """Log scan start event."""
        self.info(
            f"{dialect} network policy scan started",
            event_type="scan.started",
            dialect=dialect,
            namespace_count=len(namespaces),
        )

    def scan_completed(self, dialect: str, unprotected_count: int, score: int, duration_seconds: float) -> None:
        """Log scan completion event."""
        self.info(
            f"{dialect} network policy scan completed",
            event_type="scan.completed",
            dialect=dialect,
            unprotected_count=unprotected_count,
            score=score,
            duration_seconds=round(duration_seconds, 3),
        )

    def scan_failed(self, dialect: str, error: str) -> None:
        """Log scan failure event."""
        self.error(
            f"{dialect} network policy scan failed: {error}",
            event_type="scan.failed",
            dialect=dialect,
        )

    def namespace_skipped(self, namespace: str, error: str) -> None:
        """Log a namespace dropped after a fetch error."""
        self.warning(
            f"Skipping namespace {namespace}: {error}",
            event_type="namespace.skipped",
            namespace=namespace,
        )

    def pod_protected(self, namespace: str, pod: str, reason: str, policy: str | None = None) -> None:
        """Log a pod proven protected."""
        self.debug(
            f"Pod {namespace}/{pod} protected ({reason})",
            event_type="pod.protected",
            namespace=namespace,
            pod=pod,
            reason=reason,
            policy=policy,
        )

    def remediation_applied(self, target: str, dialect: str) -> None:
        """Log a successful remediation."""
        self.info(
            f"Applied default deny {dialect} policy to {target}",
            event_type="remediation.applied",
            target=target,
            dialect=dialect,
        )

    def remediation_failed(self, target: str, error: str) -> None:
        """Log a failed remediation."""
        self.error(
            error,
            event_type="remediation.failed",
            target=target,
        )


def configure_logging(
    level: str = "WARNING",
    format: str = "human",
    output: str = "stderr",
    extra_fields: dict[str, Any] | None = None,
) -> None:
    """
    Configure logging for Netfetch.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format: Output format (human, json)
        output: Output destination (stderr, stdout)
        extra_fields: Extra fields to include in structured logs
    """
    root_logger = logging.getLogger("netfetch")
    root_logger.setLevel(getattr(logging, level.upper(), logging.WARNING))

    root_logger.handlers.clear()

    if output == "stdout":
        handler = logging.StreamHandler(sys.stdout)
    else:
        handler = logging.StreamHandler(sys.stderr)

    if format == "json":
        formatter: logging.Formatter = StructuredFormatter(extra_fields=extra_fields)
    else:
        formatter = HumanReadableFormatter()

    handler.setFormatter(formatter)
    root_logger.addHandler(handler)


def get_logger(name: str) -> NetfetchLogger:
    """
    Get a Netfetch logger instance.

    Args:
        name: Logger name, usually __name__

    Returns:
        NetfetchLogger instance
    """
    if not name.startswith("netfetch"):
        name = f"netfetch.{name}"
    return NetfetchLogger(name)


# Configure logging from environment on import
_log_level = os.getenv("NETFETCH_LOG_LEVEL", "WARNING")
_log_format = os.getenv("NETFETCH_LOG_FORMAT", "human")
configure_logging(level=_log_level, format=_log_format)
