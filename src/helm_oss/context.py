"""Cancellation context threaded through long-running storage operations."""

from __future__ import annotations

import threading
import time
from typing import Optional

from .exceptions import OperationCancelledError


class Context:
    """Deadline plus cancel flag shared between an operation and its workers.

    A context is safe to share across threads. Storage methods call check()
    before every network call so a cancelled operation stops at the next
    suspension point.
    """

    def __init__(self, timeout: Optional[float] = None) -> None:
        self._cancelled = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    @classmethod
    def background(cls) -> Context:
        """Context that never expires unless cancelled explicitly."""
        return cls()

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def done(self) -> bool:
        return self.cancelled or self.expired

    def remaining(self) -> Optional[float]:
        """Seconds until the deadline, or None when there is no deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def check(self) -> None:
        """Raise OperationCancelledError if the context is cancelled or expired."""
        if self.cancelled:
            raise OperationCancelledError("operation cancelled")
        if self.expired:
            raise OperationCancelledError("operation deadline exceeded", {"reason": "deadline"})
