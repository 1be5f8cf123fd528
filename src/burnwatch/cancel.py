"""Cancellation tokens for loops, collectors and alert delivery.

A ``CancelToken`` is cancelled explicitly, by its deadline passing, or by
its parent being cancelled. Blocking waits go through :meth:`CancelToken.wait`
so that periodic loops and retry back-off wake up as soon as cancellation
happens.
"""

from __future__ import annotations

import threading
import time
import weakref


class CancelToken:
    """Cooperative cancellation signal with an optional deadline."""

    def __init__(
        self,
        timeout: float | None = None,
        parent: CancelToken | None = None,
    ) -> None:
        self._event = threading.Event()
        self._lock = threading.Lock()
        self._children: weakref.WeakSet[CancelToken] = weakref.WeakSet()
        self._deadline = time.monotonic() + timeout if timeout is not None else None
        if parent is not None:
            parent._adopt(self)

    def child(self, timeout: float | None = None) -> CancelToken:
        """Create a token cancelled with this one, optionally with its own deadline."""
        token = CancelToken(timeout=timeout, parent=self)
        if self._deadline is not None:
            # A child never outlives its parent's deadline
            if token._deadline is None or token._deadline > self._deadline:
                token._deadline = self._deadline
        return token

    def _adopt(self, child: CancelToken) -> None:
        with self._lock:
            if not self._event.is_set():
                self._children.add(child)
                return
        child.cancel()

    def cancel(self) -> None:
        """Cancel this token and every child derived from it."""
        with self._lock:
            self._event.set()
            children = list(self._children)
            self._children.clear()
        for child in children:
            child.cancel()

    @property
    def cancelled(self) -> bool:
        if not self._event.is_set() and self._deadline is not None:
            if time.monotonic() >= self._deadline:
                self.cancel()
        return self._event.is_set()

    def remaining(self) -> float | None:
        """Seconds until the deadline, or None when there is no deadline."""
        if self._deadline is None:
            return None
        return max(0.0, self._deadline - time.monotonic())

    def wait(self, seconds: float) -> bool:
        """Sleep up to *seconds*; return True if cancelled before they elapsed."""
        limit = max(0.0, seconds)
        remaining = self.remaining()
        if remaining is not None:
            limit = min(limit, remaining)
        if self._event.wait(limit):
            return True
        return self.cancelled

    def __repr__(self) -> str:
        return f"CancelToken(cancelled={self.cancelled}, remaining={self.remaining()})"
