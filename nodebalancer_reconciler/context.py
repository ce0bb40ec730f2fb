"""Cancellation token handed to every reconcile operation."""

from __future__ import annotations

import threading
import time

from .exceptions import ReconcileCancelled


class ReconcileContext:
    """Cancellable execution context with an optional deadline.

    Usage:
        ctx = ReconcileContext(timeout=60)
        load_balancers.ensure_load_balancer("cluster", service, nodes, ctx=ctx)
        # another thread may call ctx.cancel() to abort before the next API call

    Operations check the context before each blocking call and raise
    ReconcileCancelled instead of issuing it. Nothing is retried.
    """

    def __init__(self, timeout: float | None = None):
        self._event = threading.Event()
        self._deadline = time.monotonic() + timeout if timeout is not None else None

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    @property
    def expired(self) -> bool:
        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def done(self) -> bool:
        return self.cancelled or self.expired

    def remaining(self) -> float | None:
        """Seconds left before the deadline, or None when there is none."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def check(self) -> None:
        """Raise ReconcileCancelled if the context is cancelled or expired."""
        if self.cancelled:
            raise ReconcileCancelled("reconcile cancelled")
        if self.expired:
            raise ReconcileCancelled("reconcile deadline exceeded")

    def timeout_for(self, default: float) -> float:
        """Cap a per-request timeout at the time remaining."""
        remaining = self.remaining()
        if remaining is None:
            return default
        return min(default, remaining)
