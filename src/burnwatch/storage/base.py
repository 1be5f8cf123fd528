"""Measurement store contract and shared aggregation math.

Both backends filter and order points the same way and then hand the
matched points to :func:`aggregate_points`, so the two return identical
aggregations for identical input.
"""

from __future__ import annotations

import copy
import math
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from burnwatch.errors import StorageError


class AggregationType(str, Enum):
    """Statistical reductions supported by :meth:`MeasurementStore.aggregate`."""

    AVERAGE = "average"
    SUM = "sum"
    MIN = "min"
    MAX = "max"
    P50 = "p50"
    P90 = "p90"
    P95 = "p95"
    P99 = "p99"
    COUNT = "count"


_PERCENTILES = {
    AggregationType.P50: 0.50,
    AggregationType.P90: 0.90,
    AggregationType.P95: 0.95,
    AggregationType.P99: 0.99,
}


@dataclass(frozen=True)
class DataPoint:
    """A single SLI measurement. Immutable once stored.

    ``metadata`` must be JSON-native (str keys; str, number, bool, None,
    list and dict values) so that every backend returns it unchanged.
    """

    sli_id: str
    value: float
    timestamp: float
    tags: dict[str, str] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "sli_id": self.sli_id,
            "value": self.value,
            "timestamp": self.timestamp,
            "tags": dict(self.tags),
            "metadata": dict(self.metadata),
        }


@dataclass
class QueryFilter:
    """Selects data points.

    Every populated criterion must match: ``sli_ids`` membership, the
    inclusive ``[start_time, end_time]`` range and equality on every entry
    of ``tags``. ``limit`` truncates the timestamp-ordered result; 0 means
    no limit.
    """

    sli_ids: list[str] = field(default_factory=list)
    start_time: float | None = None
    end_time: float | None = None
    tags: dict[str, str] = field(default_factory=dict)
    limit: int = 0

    def matches(self, point: DataPoint) -> bool:
        if self.sli_ids and point.sli_id not in self.sli_ids:
            return False
        if self.start_time is not None and point.timestamp < self.start_time:
            return False
        if self.end_time is not None and point.timestamp > self.end_time:
            return False
        return all(point.tags.get(k) == v for k, v in self.tags.items())


@dataclass
class Aggregation:
    """Result of aggregating a set of data points."""

    value: float = 0.0
    count: int = 0
    start_time: float | None = None
    end_time: float | None = None
    breakdown: dict[str, Aggregation] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "value": self.value,
            "count": self.count,
            "start_time": self.start_time,
            "end_time": self.end_time,
        }
        if self.breakdown:
            result["breakdown"] = {k: v.to_dict() for k, v in self.breakdown.items()}
        return result


@runtime_checkable
class MeasurementStore(Protocol):
    """Port for time-series persistence of SLI data points.

    Implementations must accept concurrent ``store`` calls from many threads.
    """

    def store(self, point: DataPoint) -> None:
        """Append a data point."""
        ...

    def query(self, filter: QueryFilter) -> list[DataPoint]:
        """Return matching points ordered by timestamp ascending."""
        ...

    def aggregate(
        self,
        filter: QueryFilter,
        kind: AggregationType | str,
        group_by: str | None = None,
    ) -> Aggregation:
        """Reduce the points matched by *filter* to a single value."""
        ...


def check_metadata(point: DataPoint) -> None:
    """Reject metadata that would not survive a JSON round-trip unchanged."""
    stack: list[Any] = [point.metadata]
    while stack:
        value = stack.pop()
        if isinstance(value, dict):
            for key, item in value.items():
                if not isinstance(key, str):
                    raise StorageError(
                        f"Metadata for {point.sli_id} has non-string key {key!r}"
                    )
                stack.append(item)
        elif isinstance(value, list):
            stack.extend(value)
        elif value is not None and not isinstance(value, (str, int, float, bool)):
            raise StorageError(
                f"Metadata for {point.sli_id} holds unsupported {type(value).__name__} value"
            )


def copy_point(point: DataPoint) -> DataPoint:
    """Deep-copy the tag and metadata bags of *point*."""
    return DataPoint(
        sli_id=point.sli_id,
        value=float(point.value),
        timestamp=float(point.timestamp),
        tags=dict(point.tags),
        metadata=copy.deepcopy(point.metadata),
    )


def order_and_limit(points: Iterable[DataPoint], limit: int = 0) -> list[DataPoint]:
    """Sort by timestamp (stable, insertion order breaks ties) and truncate."""
    ordered = sorted(points, key=lambda p: p.timestamp)
    if limit > 0:
        ordered = ordered[:limit]
    return ordered


def percentile(values: Sequence[float], p: float) -> float:
    """Linearly interpolated percentile at fractional rank ``p * (n - 1)``.

    ``p`` is a fraction in [0, 1]; an empty input yields 0.
    """
    if not values:
        return 0.0
    ordered = sorted(values)
    index = p * (len(ordered) - 1)
    lower = math.floor(index)
    upper = min(lower + 1, len(ordered) - 1)
    weight = index - lower
    if weight == 0:
        return ordered[lower]
    return ordered[lower] * (1 - weight) + ordered[upper] * weight


def reduce_values(values: Sequence[float], kind: AggregationType) -> float:
    """Apply a single aggregation to raw values."""
    if not values:
        return 0.0
    if kind is AggregationType.AVERAGE:
        return math.fsum(values) / len(values)
    if kind is AggregationType.SUM:
        return math.fsum(values)
    if kind is AggregationType.MIN:
        return min(values)
    if kind is AggregationType.MAX:
        return max(values)
    if kind is AggregationType.COUNT:
        return float(len(values))
    return percentile(values, _PERCENTILES[kind])


def aggregate_points(
    points: Sequence[DataPoint],
    kind: AggregationType | str,
    filter: QueryFilter,
    group_by: str | None = None,
) -> Aggregation:
    """Aggregate points already selected and ordered by a backend's query.

    The resolved time range is the filter's bounds, falling back to the
    first/last matched timestamp for an unset bound.
    """
    kind = AggregationType(kind)
    if not points:
        return Aggregation(value=0.0, count=0, start_time=filter.start_time, end_time=filter.end_time)

    start = filter.start_time if filter.start_time is not None else points[0].timestamp
    end = filter.end_time if filter.end_time is not None else points[-1].timestamp

    breakdown: dict[str, Aggregation] = {}
    if group_by:
        groups: dict[str, list[DataPoint]] = {}
        for point in points:
            key = point.tags.get(group_by)
            if key is not None:
                groups.setdefault(key, []).append(point)
        for key, members in groups.items():
            breakdown[key] = Aggregation(
                value=reduce_values([p.value for p in members], kind),
                count=len(members),
                start_time=members[0].timestamp,
                end_time=members[-1].timestamp,
            )

    return Aggregation(
        value=reduce_values([p.value for p in points], kind),
        count=len(points),
        start_time=start,
        end_time=end,
        breakdown=breakdown,
    )
