"""Structured logging utilities for the ChargeAmps sync engine.

This module provides:
- Structured logging with consistent format
- Per-task context (device, cycle, operation) for log correlation
- Security-aware logging (tokens, passwords and API keys are redacted)
- Domain helpers for API calls, charging events and performance
"""

import contextvars
import dataclasses
import json
import logging
import logging.handlers
import os
import sys
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, cast


@dataclasses.dataclass
class LogContext:
    """Context information for structured logging."""

    operation: Optional[str] = None
    component: Optional[str] = None
    device_id: Optional[str] = None
    port: Optional[int] = None
    cycle_id: Optional[int] = None
    correlation_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert context to dictionary for logging."""
        return {k: v for k, v in dataclasses.asdict(self).items() if v is not None}


class StructuredFormatter(logging.Formatter):
    """Custom formatter for structured logging."""

    CONTEXT_KEYS = ("device_id", "component", "operation", "port", "cycle_id")

    def __init__(self, json_format: bool = False) -> None:
        super().__init__(datefmt="%Y-%m-%d %H:%M:%S")
        self.json_format = json_format

    def format(self, record: logging.LogRecord) -> str:
        """Format log record with structured data."""
        formatted_time = self.formatTime(record)
        structured_data = getattr(record, "structured_data", {})

        log_entry = {
            "timestamp": formatted_time,
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }

        if structured_data:
            log_entry.update(structured_data)
            # Keep the rendered timestamp and message
            log_entry["timestamp"] = formatted_time
            log_entry["message"] = record.getMessage()

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        if self.json_format:
            return json.dumps(log_entry, default=str)
        return self._format_human_readable(log_entry)

    def _format_human_readable(self, log_entry: Dict[str, Any]) -> str:
        """Format log entry in human-readable format."""
        base = (
            f"{log_entry['timestamp']} [{log_entry['level']:8}] "
            f"{log_entry['logger']}: {log_entry['message']}"
        )

        context_parts = [
            f"{key}={log_entry[key]}" for key in self.CONTEXT_KEYS if key in log_entry
        ]
        if context_parts:
            base += f" [{', '.join(context_parts)}]"

        if "duration_ms" in log_entry:
            base += f" (took {log_entry['duration_ms']:.1f}ms)"

        if "exception" in log_entry:
            base += f"\n{log_entry['exception']}"

        return base


# Context follows the asyncio task that set it
_context_var: contextvars.ContextVar[Optional[LogContext]] = contextvars.ContextVar(
    "chargeamps_log_context", default=None
)


def set_context(context: LogContext) -> None:
    """Set logging context for the current task."""
    _context_var.set(context)


def get_context() -> LogContext:
    """Get current logging context."""
    return _context_var.get() or LogContext()


def _sanitize_data(data: Dict[str, Any]) -> Dict[str, Any]:
    """Sanitize sensitive information from log data."""
    sensitive_keys = {"password", "token", "key", "secret", "auth", "credential"}

    sanitized: Dict[str, Any] = {}
    for key, value in data.items():
        key_lower = key.lower()
        if any(sensitive in key_lower for sensitive in sensitive_keys):
            sanitized[key] = "***REDACTED***"
        elif isinstance(value, dict):
            sanitized[key] = _sanitize_data(cast(Dict[str, Any], value))
        else:
            sanitized[key] = value

    return sanitized


def _log_with_context(
    logger: logging.Logger,
    level: int,
    message: str,
    extra_data: Optional[Dict[str, Any]] = None,
) -> None:
    """Log message with structured context."""
    if not logger.isEnabledFor(level):
        return

    log_data = {
        "timestamp": time.time(),
        "level": logging.getLevelName(level),
        "logger": logger.name,
        **get_context().to_dict(),
    }

    if extra_data:
        log_data.update(_sanitize_data(extra_data))

    logger.log(level, message, extra={"structured_data": log_data})


def log_api_call(
    logger: logging.Logger,
    method: str,
    path: str,
    success: bool,
    duration_ms: float,
    status: Optional[int] = None,
    **kwargs: Any,
) -> None:
    """Log a vendor API request with its outcome and latency."""
    level = logging.DEBUG if success else logging.WARNING
    _log_with_context(
        logger,
        level,
        f"API {method} {path}",
        {
            "operation_type": "api",
            "method": method,
            "path": path,
            "status": status,
            "success": success,
            "duration_ms": duration_ms,
            **kwargs,
        },
    )


def log_charging_event(
    logger: logging.Logger,
    event: str,
    port: Optional[int] = None,
    state: Optional[str] = None,
    energy_kwh: Optional[float] = None,
    **kwargs: Any,
) -> None:
    """Log connection and charging events."""
    message_parts = [f"Charging: {event}"]
    if port is not None:
        message_parts.append(f"port={port}")
    if state is not None:
        message_parts.append(f"state={state}")
    if energy_kwh is not None:
        message_parts.append(f"energy={energy_kwh:.2f}kWh")

    _log_with_context(
        logger,
        logging.INFO,
        " ".join(message_parts),
        {
            "operation_type": "charging",
            "event": event,
            "port": port,
            "state": state,
            "energy_kwh": energy_kwh,
            **kwargs,
        },
    )


def log_config_event(
    logger: logging.Logger, event: str, source: Optional[str] = None, **kwargs: Any
) -> None:
    """Log configuration events."""
    _log_with_context(
        logger,
        logging.INFO,
        f"Config: {event}",
        {
            "operation_type": "configuration",
            "event": event,
            "source": source,
            **kwargs,
        },
    )


def log_performance(
    logger: logging.Logger,
    operation: str,
    duration_ms: float,
    success: bool = True,
    **kwargs: Any,
) -> None:
    """Log performance metrics."""
    level = logging.DEBUG if success else logging.WARNING
    _log_with_context(
        logger,
        level,
        f"Performance: {operation}",
        {
            "operation_type": "performance",
            "operation": operation,
            "duration_ms": duration_ms,
            "success": success,
            **kwargs,
        },
    )


@contextmanager
def log_context(**context_kwargs: Any) -> Iterator[LogContext]:
    """Context manager for setting logging context.

    Fields not given are inherited from the enclosing context, so a cycle
    context can be narrowed to a single port or operation.
    """
    old_context = get_context()
    merged = {**old_context.to_dict(), **context_kwargs}
    context = LogContext(**merged)
    token = _context_var.set(context)

    try:
        yield context
    finally:
        _context_var.reset(token)


def get_logger(name: str) -> logging.Logger:
    """Get a standard logger instance.

    All handler configuration is done through setup_root_logging().
    """
    return logging.getLogger(name)


def setup_root_logging(config: Optional[Any] = None) -> None:
    """Set up root logging configuration with both console and file output."""
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    logging_cfg = getattr(config, "logging", None)
    formatter = StructuredFormatter(
        json_format=bool(getattr(logging_cfg, "json_format", False))
    )

    if logging_cfg is None or getattr(logging_cfg, "console_output", True):
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(formatter)
        root_logger.addHandler(console_handler)

    log_file = getattr(logging_cfg, "file", None)
    if log_file:
        try:
            log_dir = os.path.dirname(log_file)
            if log_dir and not os.path.exists(log_dir):
                os.makedirs(log_dir, exist_ok=True)

            max_bytes = getattr(logging_cfg, "max_file_size_mb", 10) * 1024 * 1024
            backup_count = getattr(logging_cfg, "backup_count", 5)

            file_handler = logging.handlers.RotatingFileHandler(
                log_file,
                maxBytes=max_bytes,
                backupCount=backup_count,
            )
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)

            root_logger.info(f"Log file configured: {log_file}")

        except OSError as e:
            # Console only
            root_logger.warning(f"Failed to set up file logging: {e}")

    level = getattr(logging_cfg, "level", "INFO")
    root_logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    root_logger.info(
        "Logging initialized",
        extra={
            "structured_data": {
                "log_level": level,
                "handlers": [type(h).__name__ for h in root_logger.handlers],
            }
        },
    )
