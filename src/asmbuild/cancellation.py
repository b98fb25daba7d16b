"""Cooperative cancellation for long-running pipeline steps.

A CancellationToken is created once per invocation (the CLI wires SIGINT to
it) and handed to every component that runs external tools. Components call
``raise_if_cancelled()`` between steps; the tool runner polls ``is_cancelled``
while waiting on a child process and terminates the process tree when it
flips.
"""

import threading
from enum import Enum
from typing import Optional

from .errors import OperationCancelledException


class CancellationReason(Enum):
    """Why an operation was cancelled."""

    NOT_CANCELLED = "not_cancelled"
    USER_INTERRUPT = "user_interrupt"
    REQUESTED = "requested"


class CancellationToken:
    """Thread-safe, one-way cancellation flag."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._reason = CancellationReason.NOT_CANCELLED

    def cancel(self, reason: CancellationReason = CancellationReason.REQUESTED) -> None:
        with self._lock:
            if self._reason is CancellationReason.NOT_CANCELLED:
                self._reason = reason
        self._event.set()

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def reason(self) -> CancellationReason:
        with self._lock:
            return self._reason

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until cancelled or timeout; returns True if cancelled."""
        return self._event.wait(timeout)

    def raise_if_cancelled(self, operation: str = "operation") -> None:
        if self._event.is_set():
            raise OperationCancelledException(f"{operation} cancelled ({self.reason.value})")


def check_and_raise_if_cancelled(token: Optional[CancellationToken], operation: str = "operation") -> None:
    """Raise OperationCancelledException if ``token`` is set; no-op for None."""
    if token is not None:
        token.raise_if_cancelled(operation)
