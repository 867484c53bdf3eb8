"""
Cancellation Scopes

Lets a caller abandon an in-flight operation so adapters stop issuing
upstream requests (and stop spending rate-limit quota) on its behalf.

The active scope lives in a ContextVar. Worker threads spawned by the
composite run inside a copy of the caller's context, so they see the same
scope.

Usage:
    with CancellationScope(timeout=5.0) as scope:
        # another thread may call scope.cancel()
        data = composite.get_financial_data("0000320193")
"""

import threading
import time
from contextvars import ContextVar
from typing import Optional

_current_scope: ContextVar[Optional["CancellationScope"]] = ContextVar(
    "financial_data_cancellation_scope", default=None
)


class OperationCancelled(Exception):
    """Raised inside adapters when the active scope is cancelled or past its deadline."""


class CancellationScope:
    """A cancellable region with an optional deadline."""

    def __init__(self, timeout: Optional[float] = None):
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        self._token = None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        if self._event.is_set():
            return True
        if self._deadline is not None and time.monotonic() >= self._deadline:
            self._event.set()
            return True
        return False

    def remaining(self) -> Optional[float]:
        """Seconds left before the deadline, None without a deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def wait(self, seconds: float) -> bool:
        """Sleep up to `seconds`; returns True if cancelled meanwhile."""
        remaining = self.remaining()
        if remaining is not None:
            seconds = min(seconds, remaining)
        self._event.wait(seconds)
        return self.cancelled

    def __enter__(self) -> "CancellationScope":
        self._token = _current_scope.set(self)
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        _current_scope.reset(self._token)
        self._token = None


def current_scope() -> Optional[CancellationScope]:
    return _current_scope.get()


def raise_if_cancelled() -> None:
    scope = _current_scope.get()
    if scope is not None and scope.cancelled:
        raise OperationCancelled("operation cancelled by caller")


def sleep(seconds: float) -> None:
    """Cancellation-aware sleep."""
    if seconds <= 0:
        return
    scope = _current_scope.get()
    if scope is None:
        time.sleep(seconds)
        return
    if scope.wait(seconds):
        raise OperationCancelled("operation cancelled by caller")


def effective_timeout(timeout: float) -> float:
    """Clamp a request timeout to the active scope's remaining time."""
    scope = _current_scope.get()
    if scope is None:
        return timeout
    remaining = scope.remaining()
    if remaining is None:
        return timeout
    return max(0.001, min(timeout, remaining))
