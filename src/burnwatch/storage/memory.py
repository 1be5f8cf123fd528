"""In-memory measurement store."""

from __future__ import annotations

import threading

from burnwatch.storage.base import (
    Aggregation,
    AggregationType,
    DataPoint,
    QueryFilter,
    aggregate_points,
    check_metadata,
    copy_point,
    order_and_limit,
)


class InMemoryMeasurementStore:
    """Process-local implementation of MeasurementStore.

    Thread-safe. Points are deep-copied on write, so mutating the caller's
    tag or metadata dicts afterwards cannot change stored history.
    Suitable for tests and single-process deployments where history does
    not need to survive a restart.
    """

    def __init__(self) -> None:
        self._points: list[DataPoint] = []
        self._lock = threading.Lock()

    def store(self, point: DataPoint) -> None:
        check_metadata(point)
        stored = copy_point(point)
        with self._lock:
            self._points.append(stored)

    def query(self, filter: QueryFilter) -> list[DataPoint]:
        with self._lock:
            matched = [p for p in self._points if filter.matches(p)]
        # Hand out copies so callers cannot reach the stored bags either
        return [copy_point(p) for p in order_and_limit(matched, filter.limit)]

    def aggregate(
        self,
        filter: QueryFilter,
        kind: AggregationType | str,
        group_by: str | None = None,
    ) -> Aggregation:
        return aggregate_points(self.query(filter), kind, filter, group_by)

    def prune(self, older_than: float) -> int:
        """Drop points with a timestamp before *older_than*; return how many."""
        with self._lock:
            kept = [p for p in self._points if p.timestamp >= older_than]
            removed = len(self._points) - len(kept)
            self._points = kept
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._points)
