"""Per-key alert cooldown.

A key is reserved and checked in one locked step, so two threads sending
the same alert at the same moment cannot both get through. The reservation
becomes a cooldown only once delivery succeeds; a failed delivery releases
it so the next evaluation may try again.
"""

from __future__ import annotations

import threading
import time
from typing import Callable, Dict, Hashable, Set


class CooldownTracker:
    """Thread-safe suppression of repeated alerts within a time window."""

    def __init__(
        self,
        cooldown_seconds: float = 900,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._cooldown_seconds = cooldown_seconds
        self._clock = clock
        self._lock = threading.Lock()
        self._expiry: Dict[Hashable, float] = {}  # key -> cooldown end timestamp
        self._in_flight: Set[Hashable] = set()
        self._total_suppressed = 0

    @property
    def cooldown_seconds(self) -> float:
        return self._cooldown_seconds

    # -- public API ----------------------------------------------------------

    def try_acquire(self, key: Hashable) -> bool:
        """Reserve *key* for delivery. False if cooling down or already in flight."""
        with self._lock:
            now = self._clock()
            until = self._expiry.get(key)
            if until is not None:
                if now < until:
                    self._total_suppressed += 1
                    return False
                del self._expiry[key]
            if key in self._in_flight:
                self._total_suppressed += 1
                return False
            self._in_flight.add(key)
            return True

    def commit(self, key: Hashable) -> None:
        """Delivery succeeded: start the cooldown for *key*."""
        with self._lock:
            self._in_flight.discard(key)
            self._expiry[key] = self._clock() + self._cooldown_seconds

    def release(self, key: Hashable) -> None:
        """Delivery failed: drop the reservation without starting a cooldown."""
        with self._lock:
            self._in_flight.discard(key)

    def in_cooldown(self, key: Hashable) -> bool:
        with self._lock:
            until = self._expiry.get(key)
            return until is not None and self._clock() < until

    def get_stats(self) -> dict:
        """Return suppression statistics."""
        with self._lock:
            now = self._clock()
            return {
                "cooling_down": sum(1 for until in self._expiry.values() if now < until),
                "in_flight": len(self._in_flight),
                "total_suppressed": self._total_suppressed,
            }

    def clear(self) -> None:
        """Reset all cooldown state."""
        with self._lock:
            self._expiry.clear()
            self._in_flight.clear()
            self._total_suppressed = 0
