"""
Logging and error monitoring utilities for the Vinti4Net gateway client.

Events are emitted as JSON lines on stdout. Everything that may carry gateway
data goes through `sanitize_fields()` first so that the POS auth code never
reaches a log collector and card numbers are masked.
"""

import inspect
import logging
import time
import json
import traceback
from typing import Dict, Any, Set
from functools import wraps
from datetime import datetime, timezone
from vinti4net.core.exceptions import Vinti4Error


# Field names whose values are never logged
SENSITIVE_KEYS: Set[str] = {
    "posauthcode", "pos_auth_code", "authcode",
    "password", "secret", "token", "api_key",
    "authorization", "cookie",
}

# Field names holding a card number (masked, not dropped)
PAN_KEYS: Set[str] = {"merchantresppan", "pan", "card_number"}


def mask_pan(pan: Any) -> str:
    """Keep the first six and last four digits of a card number."""
    pan = "" if pan is None else str(pan)
    if len(pan) < 8:
        return "•••• •••• •••• ••••"
    return f"{pan[:6]}••••{pan[-4:]}"


def sanitize_fields(data: Any, depth: int = 0) -> Any:
    """Recursively redact secrets and mask card numbers in dicts and lists."""
    if depth > 10:
        return "[DEPTH_LIMIT]"

    if isinstance(data, dict):
        sanitized = {}
        for key, value in data.items():
            lowered = str(key).lower()
            if lowered in SENSITIVE_KEYS:
                sanitized[key] = "[REDACTED]"
            elif lowered in PAN_KEYS:
                sanitized[key] = mask_pan(value)
            else:
                sanitized[key] = sanitize_fields(value, depth + 1)
        return sanitized

    elif isinstance(data, (list, tuple)):
        return [sanitize_fields(item, depth + 1) for item in data]

    return data


class ErrorMonitor:
    """Centralized error monitoring and logging utility"""

    def __init__(self):
        self.logger = logging.getLogger("vinti4net.monitor")
        self.error_counts_memory: Dict[str, int] = {}

    def log_error(self, error: Exception, context: Dict[str, Any] = None):
        """
        Log error with context and an in-process occurrence count.

        Args:
            error: The exception that occurred
            context: Additional context information (sanitized before logging)
        """
        error_type = type(error).__name__
        error_id = f"{error_type}_{int(time.time())}"

        self.error_counts_memory[error_type] = self.error_counts_memory.get(error_type, 0) + 1
        count = self.error_counts_memory[error_type]

        log_data = {
            "event": "error",
            "error_id": error_id,
            "error_type": error_type,
            "error_message": str(error),
            "context": sanitize_fields(context or {}),
            "count": count,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        # Stack traces only for unexpected errors
        if not isinstance(error, Vinti4Error) or error.http_status_code >= 500:
            log_data["stack_trace"] = traceback.format_exc()

        self.logger.error(json.dumps(log_data, default=str))

    def log_performance(self, operation: str, duration: float, context: Dict[str, Any] = None):
        """
        Log performance metrics as structured JSON.

        Args:
            operation: Name of the operation
            duration: Duration in seconds
            context: Additional context information
        """
        log_data = {
            "event": "performance",
            "operation": operation,
            "duration": duration,
            "context": sanitize_fields(context or {}),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        if duration > 1.0:
            self.logger.warning(json.dumps(log_data, default=str))
        else:
            self.logger.debug(json.dumps(log_data, default=str))

    def get_error_summary(self) -> Dict[str, Any]:
        """Get summary of in-memory error statistics."""
        return {
            "error_counts": self.error_counts_memory,
            "total_errors": sum(self.error_counts_memory.values()),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }


# Global error monitor instance
error_monitor = ErrorMonitor()


def _record(op_name: str, started: float, error: Exception = None):
    elapsed = time.perf_counter() - started
    if error is None:
        error_monitor.log_performance(op_name, elapsed)
    else:
        error_monitor.log_error(error, {"operation": op_name, "duration": elapsed})


def monitor_errors(operation_name: str = None):
    """
    Decorator logging failures (then re-raising) and timings of sync or async callables.
    """
    def decorator(func):
        op_name = operation_name or f"{func.__module__}.{func.__name__}"

        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                started = time.perf_counter()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _record(op_name, started, e)
                    raise
                _record(op_name, started)
                return result

            return async_wrapper

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            started = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _record(op_name, started, e)
                raise
            _record(op_name, started)
            return result

        return sync_wrapper

    return decorator


def setup_monitoring(level: str = "INFO"):
    """Send JSON event lines to stdout at `level`."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(message)s",
        handlers=[logging.StreamHandler()],
    )

    logging.getLogger("vinti4net").info(json.dumps({
        "event": "monitoring_started",
        "level": level.upper(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }))
