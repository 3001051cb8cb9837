"""
Centralized error handling for engine operations.

Engine computations are deterministic given their inputs, so errors are
logged and tracked but never retried.
"""

import logging
import threading
from collections import Counter, deque
from dataclasses import dataclass
from datetime import datetime, timedelta
from functools import wraps
from typing import Any, Deque, Dict, Optional

from .exceptions import ErrorSeverity, PortfolioEngineError

SEVERITY_LOG_LEVELS = {
    ErrorSeverity.LOW: logging.INFO,
    ErrorSeverity.MEDIUM: logging.WARNING,
    ErrorSeverity.HIGH: logging.ERROR,
    ErrorSeverity.CRITICAL: logging.CRITICAL,
}


@dataclass(frozen=True)
class ErrorRecord:
    occurred_at: datetime
    error_type: str
    error_code: Optional[str]
    operation: Optional[str]


class ErrorTracker:
    """Counts failures by exception type, error code and engine operation."""

    def __init__(self, window_size: int = 100, time_window_hours: int = 24):
        self.time_window = timedelta(hours=time_window_hours)
        self._records: Deque[ErrorRecord] = deque(maxlen=window_size)
        self._type_totals: Counter = Counter()
        self._lock = threading.RLock()

    def record_error(self, error: Exception, operation: Optional[str] = None):
        record = ErrorRecord(
            occurred_at=datetime.utcnow(),
            error_type=type(error).__name__,
            error_code=getattr(error, "error_code", None),
            operation=operation
        )
        with self._lock:
            self._records.append(record)
            self._type_totals[record.error_type] += 1

    def get_error_count(self, error_type: str) -> int:
        """Occurrences of an exception type since start-up."""
        with self._lock:
            return self._type_totals[error_type]

    def get_error_patterns(self) -> Dict[str, Any]:
        """Breakdown of the recent failures still inside the time window."""
        cutoff = datetime.utcnow() - self.time_window
        with self._lock:
            recent = [r for r in self._records if r.occurred_at > cutoff]

        if not recent:
            return {}

        return {
            "total_errors": len(recent),
            "error_types": dict(Counter(r.error_type for r in recent)),
            "error_codes": dict(Counter(r.error_code for r in recent if r.error_code)),
            "operations": dict(Counter(r.operation for r in recent if r.operation)),
            "time_window_hours": self.time_window.total_seconds() / 3600
        }


class ErrorHandler:
    """Logs engine failures at a level matching their severity and tracks them."""

    def __init__(self, enable_tracking: bool = True):
        self.tracker = ErrorTracker() if enable_tracking else None
        self.logger = logging.getLogger(f"{self.__class__.__module__}.{self.__class__.__name__}")

    def handle_error(self, error: Exception, operation_name: Optional[str] = None) -> Dict[str, Any]:
        """
        Log and record an error.

        Returns:
            Classification of the error: operation, id, code and severity
        """
        if self.tracker:
            self.tracker.record_error(error, operation_name)

        severity = self.classify(error)
        operation = operation_name or "engine operation"

        if isinstance(error, PortfolioEngineError):
            self.logger.log(
                SEVERITY_LOG_LEVELS[severity],
                "%s failed: %s",
                operation,
                error.message,
                extra={
                    "error_id": error.error_id,
                    "error_code": error.error_code,
                    "category": error.category.value,
                    "error_context": error.context,
                }
            )
        else:
            # Anything outside the engine hierarchy is a bug; keep the traceback
            self.logger.log(
                SEVERITY_LOG_LEVELS[severity],
                "%s raised %s: %s",
                operation,
                type(error).__name__,
                error,
                exc_info=error
            )

        return {
            "handled": True,
            "operation": operation_name,
            "error_id": getattr(error, "error_id", None),
            "error_code": getattr(error, "error_code", None),
            "severity": severity.value
        }

    @staticmethod
    def classify(error: Exception) -> ErrorSeverity:
        if isinstance(error, PortfolioEngineError):
            return error.severity
        if isinstance(error, MemoryError):
            return ErrorSeverity.CRITICAL
        if isinstance(error, (ValueError, TypeError, KeyError)):
            return ErrorSeverity.MEDIUM
        return ErrorSeverity.HIGH

    def get_error_statistics(self) -> Dict[str, Any]:
        if not self.tracker:
            return {}
        return {"error_patterns": self.tracker.get_error_patterns()}


_error_handler: Optional[ErrorHandler] = None
_handler_lock = threading.Lock()


def get_error_handler() -> ErrorHandler:
    """Get the process-wide error handler."""
    global _error_handler
    with _handler_lock:
        if _error_handler is None:
            _error_handler = ErrorHandler()
    return _error_handler


def handle_errors(operation_name: Optional[str] = None, reraise: bool = True):
    """
    Decorator that logs and tracks errors raised by an engine operation.

    Args:
        operation_name: Name used in log records, defaults to the function name
        reraise: Re-raise after handling; otherwise the call returns None
    """
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                get_error_handler().handle_error(e, operation_name=operation_name or func.__name__)
                if reraise:
                    raise
                return None

        return wrapper
    return decorator
