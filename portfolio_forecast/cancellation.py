#!/usr/bin/env python3
"""
Cooperative cancellation for model training and backtest loops.

A CancellationToken wraps a threading.Event and an optional monotonic
deadline. Long-running loops call raise_if_cancelled() once per unit of work.
"""

import logging
import threading
import time
from typing import Optional

from .exceptions import OperationCancelledError


class CancellationToken:
    """
    Thread-safe cancellation flag with an optional deadline.

    Parameters:
    -----------
    timeout : float, optional
        Seconds from construction after which the token reports cancelled
    """

    def __init__(self, timeout: Optional[float] = None):
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self.reason: Optional[str] = None

    @classmethod
    def with_timeout(cls, seconds: float) -> 'CancellationToken':
        """Create a token that expires after `seconds`."""
        if seconds <= 0:
            raise ValueError(f"timeout must be positive, got {seconds}")
        return cls(timeout=seconds)

    def cancel(self, reason: str = "cancelled by caller") -> None:
        """Signal cancellation to every holder of this token."""
        self.reason = reason
        self._event.set()
        logging.info(f"Cancellation requested: {reason}")

    @property
    def deadline_expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def is_cancelled(self) -> bool:
        return self._event.is_set() or self.deadline_expired

    def raise_if_cancelled(self, operation: str = "operation") -> None:
        """Raise OperationCancelledError if cancelled or past the deadline."""
        if self._event.is_set():
            raise OperationCancelledError(f"{operation} cancelled: {self.reason}")
        if self.deadline_expired:
            raise OperationCancelledError(f"{operation} exceeded its deadline")


def check_cancelled(token: Optional[CancellationToken], operation: str) -> None:
    """No-op when token is None, otherwise token.raise_if_cancelled()."""
    if token is not None:
        token.raise_if_cancelled(operation)
