"""
Cooperative cancellation token for long-running engine computations.
"""

import threading
import time
from typing import Optional

from ...infrastructure.error_handling import OperationCancelledError


class CancellationToken:
    """
    Thread-safe cancellation flag with an optional wall-clock deadline.

    Iterative solvers poll ``raise_if_cancelled`` between iterations; the
    token never interrupts a computation on its own.
    """

    def __init__(self, timeout_seconds: Optional[float] = None):
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout_seconds if timeout_seconds is not None else None

    def cancel(self):
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def deadline_exceeded(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    def raise_if_cancelled(self, operation: Optional[str] = None):
        if self.is_cancelled:
            raise OperationCancelledError(
                f"Operation {operation or 'computation'} was cancelled",
                operation=operation
            )
        if self.deadline_exceeded:
            raise OperationCancelledError(
                f"Operation {operation or 'computation'} exceeded its deadline",
                operation=operation,
                context={"reason": "deadline"}
            )

    @classmethod
    def none(cls) -> "CancellationToken":
        """A token that is never cancelled."""
        return cls()
