"""Service Level Indicators and the periodic collection loop."""

from __future__ import annotations

import logging
import math
import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Protocol, runtime_checkable

from burnwatch.cancel import CancelToken
from burnwatch.errors import CollectionError, NotFoundError, ValidationError
from burnwatch.storage import Aggregation, AggregationType, DataPoint, MeasurementStore, QueryFilter

if TYPE_CHECKING:
    from burnwatch.integrations import MetricsSink

logger = logging.getLogger(__name__)


class SLIType(str, Enum):
    """Kinds of indicator; each needs a registered collector."""

    AVAILABILITY = "availability"
    LATENCY = "latency"
    THROUGHPUT = "throughput"
    ERROR_RATE = "error_rate"
    SATURATION = "saturation"
    CUSTOM = "custom"


@dataclass
class SLI:
    """A named, measurable signal.

    ``config`` is an open bag read by the collector for this indicator's
    type (for example ``{"endpoint": "https://..."}`` for HTTP collectors).
    ``id``, ``created_at`` and ``updated_at`` are filled in on registration.
    """

    name: str
    type: SLIType
    threshold: float = 0.0
    unit: str = ""
    description: str = ""
    tags: dict[str, str] = field(default_factory=dict)
    config: dict[str, Any] = field(default_factory=dict)
    id: str = ""
    created_at: float = 0.0
    updated_at: float = 0.0

    def __post_init__(self) -> None:
        self.type = SLIType(self.type)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "threshold": self.threshold,
            "unit": self.unit,
            "description": self.description,
            "tags": dict(self.tags),
            "config": dict(self.config),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


@runtime_checkable
class Collector(Protocol):
    """Plugin that measures indicators of one type."""

    def collect(self, sli: SLI, token: CancelToken) -> float:
        """Take one measurement. Raise to signal a failed collection."""
        ...

    def validate(self, sli: SLI) -> None:
        """Raise if *sli* is not configured well enough to be collected."""
        ...


@dataclass
class CollectionReport:
    """Outcome of one collection tick."""

    started_at: float
    stored: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at,
            "stored": list(self.stored),
            "failed": dict(self.failed),
        }


class IndicatorRegistry:
    """Owns SLI definitions and collectors, and writes measurements to a store.

    Usage:
        registry = IndicatorRegistry(InMemoryMeasurementStore())
        registry.register_collector(SLIType.AVAILABILITY, AvailabilityCollector())
        registry.register_sli(SLI(name="api", type=SLIType.AVAILABILITY,
                                  config={"endpoint": "https://api/health"}))

        stop = CancelToken()
        threading.Thread(target=registry.run_collection, args=(60.0, stop)).start()
        ...
        stop.cancel()
    """

    def __init__(
        self,
        store: MeasurementStore,
        clock: Callable[[], float] = time.time,
        max_workers: int = 32,
        metrics: MetricsSink | None = None,
    ) -> None:
        self._store = store
        self._clock = clock
        self._max_workers = max(1, max_workers)
        self._metrics = metrics
        self._indicators: dict[str, SLI] = {}
        self._collectors: dict[SLIType, Collector] = {}
        self._lock = threading.Lock()

    @property
    def store(self) -> MeasurementStore:
        return self._store

    # -- registration --------------------------------------------------------

    def register_collector(self, sli_type: SLIType | str, collector: Collector) -> None:
        """Associate *collector* with *sli_type*; the last registration wins."""
        with self._lock:
            self._collectors[SLIType(sli_type)] = collector

    def register_sli(self, sli: SLI) -> SLI:
        """Validate and register an indicator.

        Raises:
            ValidationError: the name is taken, no collector handles the
                type, or the collector rejects the configuration.
        """
        with self._lock:
            if sli.name in self._indicators:
                raise ValidationError(sli.name, "an SLI with this name is already registered")
            collector = self._collectors.get(sli.type)
            if collector is None:
                raise ValidationError(sli.name, f"no collector registered for type '{sli.type.value}'")
            try:
                collector.validate(sli)
            except Exception as e:
                raise ValidationError(sli.name, str(e)) from e

            if not sli.id:
                sli.id = str(uuid.uuid4())
            now = self._clock()
            sli.created_at = now
            sli.updated_at = now
            self._indicators[sli.name] = sli

        logger.info("Registered SLI %s (%s)", sli.name, sli.type.value)
        return sli

    def get_sli(self, name: str) -> SLI:
        with self._lock:
            sli = self._indicators.get(name)
        if sli is None:
            raise NotFoundError("SLI", name)
        return sli

    def has_sli(self, name: str) -> bool:
        with self._lock:
            return name in self._indicators

    def list_slis(self) -> list[SLI]:
        with self._lock:
            return list(self._indicators.values())

    def collector_types(self) -> list[SLIType]:
        with self._lock:
            return list(self._collectors)

    # -- collection ----------------------------------------------------------

    def collect_all(self, token: CancelToken | None = None) -> CollectionReport:
        """Collect every registered SLI concurrently and wait for all of them."""
        token = token or CancelToken()
        with self._lock:
            work = [(sli, self._collectors.get(sli.type)) for sli in self._indicators.values()]

        report = CollectionReport(started_at=self._clock())
        if not work:
            return report

        futures: dict[str, Future[DataPoint]] = {}
        with ThreadPoolExecutor(
            max_workers=min(len(work), self._max_workers),
            thread_name_prefix="burnwatch-collect",
        ) as pool:
            for sli, collector in work:
                futures[sli.name] = pool.submit(self._collect_one, sli, collector, token)

        for name, future in futures.items():
            exc = future.exception()
            if exc is None:
                report.stored.append(name)
            else:
                report.failed[name] = str(exc)
                logger.warning("Dropped data point for SLI %s: %s", name, exc)

        logger.debug(
            "Collection tick: %d stored, %d failed", len(report.stored), len(report.failed)
        )
        return report

    def _collect_one(
        self,
        sli: SLI,
        collector: Collector | None,
        token: CancelToken,
    ) -> DataPoint:
        if collector is None:
            raise CollectionError(sli.name, f"no collector for type '{sli.type.value}'")
        try:
            value = float(collector.collect(sli, token))
        except Exception as e:
            self._emit_collection(sli, None)
            if isinstance(e, CollectionError):
                raise
            raise CollectionError(sli.name, str(e)) from e
        if not math.isfinite(value):
            self._emit_collection(sli, None)
            raise CollectionError(sli.name, f"collector returned non-finite value {value}")

        point = DataPoint(
            sli_id=sli.id,
            value=value,
            timestamp=self._clock(),
            tags=dict(sli.tags),
            metadata={"sli_name": sli.name, "sli_type": sli.type.value},
        )
        self._store.store(point)
        self._emit_collection(sli, value)
        return point

    def _emit_collection(self, sli: SLI, value: float | None) -> None:
        if self._metrics is None:
            return
        try:
            self._metrics.record_collection(sli.name, sli.type.value, value)
        except Exception:
            logger.debug("Metrics sink failed for SLI %s", sli.name, exc_info=True)

    def run_collection(self, interval: float, token: CancelToken) -> None:
        """Collect on every *interval* seconds until *token* is cancelled.

        Blocks the calling thread. A tick finishes before the next one is
        scheduled, and failures inside a tick never end the loop.
        """
        if interval <= 0:
            raise ValueError("collection interval must be positive")
        logger.info("SLI collection started (interval=%ss)", interval)
        while not token.wait(interval):
            try:
                self.collect_all(token)
            except Exception:
                logger.exception("Collection tick failed")
        logger.info("SLI collection stopped")

    # -- queries -------------------------------------------------------------

    def get_sli_data(
        self,
        name: str,
        start_time: float | None,
        end_time: float | None,
    ) -> list[DataPoint]:
        """Return the stored points of SLI *name* within the time range."""
        sli = self.get_sli(name)
        return self._store.query(
            QueryFilter(sli_ids=[sli.id], start_time=start_time, end_time=end_time)
        )

    def get_sli_aggregation(
        self,
        name: str,
        start_time: float | None,
        end_time: float | None,
        kind: AggregationType | str = AggregationType.AVERAGE,
    ) -> Aggregation:
        """Aggregate the stored points of SLI *name* within the time range."""
        sli = self.get_sli(name)
        return self._store.aggregate(
            QueryFilter(sli_ids=[sli.id], start_time=start_time, end_time=end_time),
            kind,
        )
