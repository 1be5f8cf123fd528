"""SLO definitions, error-budget math and the burn-rate evaluation loop.

Every value here is a percentage in [0, 100]. For an objective with target
``T`` the error budget is ``100 - T``; a window averaging ``v`` has used
``100 - v`` of it, and its burn rate is ``(100 - v) / (100 - T)``. A burn
rate of 1.0 consumes the budget exactly over the objective's window.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Optional

from burnwatch.alerts import Alert, Alerter, AlertSeverity
from burnwatch.cancel import CancelToken
from burnwatch.errors import DeliveryError, NotFoundError, StorageError, ValidationError
from burnwatch.slo.durations import format_duration
from burnwatch.slo.indicators import SLI, IndicatorRegistry, SLIType
from burnwatch.storage import AggregationType

if TYPE_CHECKING:
    from burnwatch.integrations import MetricsSink

logger = logging.getLogger(__name__)

HOUR = 3600.0
DAY = 24 * HOUR


@dataclass
class AlertRule:
    """A burn-rate alert evaluated over its own window.

    ``burn_rate`` is the multiplier that fires the rule. ``threshold`` is the
    fraction of budget the rule is meant to catch; it is carried into alert
    metadata for responders and does not affect firing.
    """

    name: str
    severity: AlertSeverity
    burn_rate: float
    window: float  # seconds
    threshold: float = 0.0

    def __post_init__(self) -> None:
        self.severity = AlertSeverity(self.severity)

    def is_firing(self, rule_burn_rate: float) -> bool:
        return rule_burn_rate >= self.burn_rate

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "severity": self.severity.value,
            "burn_rate": self.burn_rate,
            "window": self.window,
            "threshold": self.threshold,
        }


@dataclass
class SLO:
    """A target for one indicator over a rolling window."""

    name: str
    sli_name: str
    target: float  # percent, e.g. 99.9
    window: float  # seconds
    alert_rules: list[AlertRule] = field(default_factory=list)
    tags: dict[str, str] = field(default_factory=dict)
    description: str = ""
    id: str = ""
    created_at: float = 0.0
    updated_at: float = 0.0

    @property
    def error_budget(self) -> float:
        return 100.0 - self.target

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "sli_name": self.sli_name,
            "target": self.target,
            "window": self.window,
            "description": self.description,
            "alert_rules": [r.to_dict() for r in self.alert_rules],
            "tags": dict(self.tags),
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }


def time_to_exhaustion(burn_rate: float, remaining_budget: float, window: float) -> Optional[float]:
    """Seconds until the remaining budget is gone at the current burn rate.

    Returns None ("never") when nothing is burning or the budget is
    already exhausted.
    """
    if burn_rate <= 0 or remaining_budget <= 0:
        return None
    return remaining_budget / (burn_rate * 100.0) * window


@dataclass
class SLOStatus:
    """Point-in-time view of an objective's error budget."""

    slo_name: str
    target: float
    current_value: float
    error_budget: float
    used_error_budget: float
    remaining_error_budget: float  # negative once exhausted
    burn_rate: float
    time_to_exhaustion: Optional[float]
    is_healthy: bool
    sample_count: int
    last_evaluated: float

    @property
    def is_exhausted(self) -> bool:
        return self.remaining_error_budget <= 0

    @classmethod
    def compute(
        cls,
        slo: SLO,
        current_value: float,
        sample_count: int,
        evaluated_at: float,
    ) -> SLOStatus:
        budget = slo.error_budget
        used = 100.0 - current_value
        remaining = budget - used
        burn_rate = used / budget
        return cls(
            slo_name=slo.name,
            target=slo.target,
            current_value=current_value,
            error_budget=budget,
            used_error_budget=used,
            remaining_error_budget=remaining,
            burn_rate=burn_rate,
            time_to_exhaustion=time_to_exhaustion(burn_rate, remaining, slo.window),
            is_healthy=current_value >= slo.target,
            sample_count=sample_count,
            last_evaluated=evaluated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "slo_name": self.slo_name,
            "target": self.target,
            "current_value": self.current_value,
            "error_budget": self.error_budget,
            "used_error_budget": self.used_error_budget,
            "remaining_error_budget": self.remaining_error_budget,
            "burn_rate": self.burn_rate,
            "time_to_exhaustion": self.time_to_exhaustion,
            "is_healthy": self.is_healthy,
            "is_exhausted": self.is_exhausted,
            "sample_count": self.sample_count,
            "last_evaluated": self.last_evaluated,
        }


@dataclass
class EvaluationReport:
    """Outcome of one evaluation tick."""

    started_at: float
    evaluated: list[str] = field(default_factory=list)
    alerts: list[Alert] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)
    timed_out: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed and not self.timed_out

    def to_dict(self) -> dict[str, Any]:
        return {
            "started_at": self.started_at,
            "evaluated": list(self.evaluated),
            "alerts": [a.to_dict() for a in self.alerts],
            "failed": dict(self.failed),
            "timed_out": list(self.timed_out),
        }


class ObjectiveEngine:
    """Owns SLOs and evaluates their alert rules against stored measurements.

    Usage:
        engine = ObjectiveEngine(registry, alerter=webhook_channel(url))
        engine.register_slo(default_availability_slo())
        engine.evaluate_all()
        status = engine.get_slo_status("availability_slo")
    """

    def __init__(
        self,
        registry: IndicatorRegistry,
        alerter: Optional[Alerter] = None,
        clock: Callable[[], float] = time.time,
        metrics: Optional[MetricsSink] = None,
        evaluation_timeout: float = 30.0,
        max_workers: int = 8,
        skip_empty_windows: bool = False,
    ) -> None:
        self._registry = registry
        self._alerter = alerter
        self._clock = clock
        self._metrics = metrics
        self._evaluation_timeout = evaluation_timeout
        self._max_workers = max(1, max_workers)
        self._skip_empty_windows = skip_empty_windows
        self._objectives: dict[str, SLO] = {}
        self._lock = threading.Lock()

    @property
    def registry(self) -> IndicatorRegistry:
        return self._registry

    # -- registration --------------------------------------------------------

    def register_slo(self, slo: SLO) -> SLO:
        """Validate and register an objective.

        Raises:
            NotFoundError: the referenced SLI is not registered.
            ValidationError: the name is taken, or the target, window or a
                rule is out of range.
        """
        if not self._registry.has_sli(slo.sli_name):
            raise NotFoundError("SLI", slo.sli_name)
        _validate_slo(slo)

        with self._lock:
            if slo.name in self._objectives:
                raise ValidationError(slo.name, "an SLO with this name is already registered")
            if not slo.id:
                slo.id = str(uuid.uuid4())
            now = self._clock()
            slo.created_at = now
            slo.updated_at = now
            self._objectives[slo.name] = slo

        logger.info(
            "Registered SLO %s (target=%s%%, %d rule(s))", slo.name, slo.target, len(slo.alert_rules)
        )
        return slo

    def get_slo(self, name: str) -> SLO:
        with self._lock:
            slo = self._objectives.get(name)
        if slo is None:
            raise NotFoundError("SLO", name)
        return slo

    def list_slos(self) -> list[SLO]:
        with self._lock:
            return list(self._objectives.values())

    # -- evaluation ----------------------------------------------------------

    def evaluate_slo(
        self,
        slo: SLO,
        token: Optional[CancelToken] = None,
        now: Optional[float] = None,
    ) -> list[Alert]:
        """Evaluate every rule of *slo* and dispatch the ones that fire.

        Returns the alerts that fired, whether or not they were delivered.
        Storage and delivery failures are logged and never stop the
        remaining rules. A window without data averages to 0 and so burns
        at the maximum rate; pass ``skip_empty_windows=True`` to the engine
        to skip such rules instead.
        """
        token = token or CancelToken()
        now = self._clock() if now is None else now

        status = self._status_at(slo, now)
        self._emit_status(status)
        logger.debug(
            "SLO %s: value=%.4f burn_rate=%.3f samples=%d",
            slo.name, status.current_value, status.burn_rate, status.sample_count,
        )

        fired: list[Alert] = []
        for rule in slo.alert_rules:
            if token.cancelled:
                logger.debug("Evaluation of SLO %s cancelled", slo.name)
                break
            try:
                agg = self._registry.get_sli_aggregation(
                    slo.sli_name, now - rule.window, now, AggregationType.AVERAGE
                )
            except StorageError as e:
                logger.warning("SLO %s rule %s: aggregation failed: %s", slo.name, rule.name, e)
                continue
            if agg.count == 0 and self._skip_empty_windows:
                logger.debug("SLO %s rule %s: no data in window", slo.name, rule.name)
                continue

            rule_burn_rate = (100.0 - agg.value) / slo.error_budget
            if not rule.is_firing(rule_burn_rate):
                continue

            alert = Alert(
                slo_name=slo.name,
                rule_name=rule.name,
                severity=rule.severity,
                message=(
                    f"SLO {slo.name} burn rate {rule_burn_rate:.2f} "
                    f"exceeds threshold {rule.burn_rate:.2f}"
                ),
                value=rule_burn_rate,
                threshold=rule.burn_rate,
                timestamp=now,
                tags=dict(slo.tags),
                metadata={
                    "sli_value": agg.value,
                    "error_budget": slo.error_budget,
                    "time_window": format_duration(rule.window),
                    "rule_threshold": rule.threshold,
                },
            )
            fired.append(alert)
            self._dispatch(alert, token)
        return fired

    def _dispatch(self, alert: Alert, token: CancelToken) -> None:
        if self._alerter is None:
            logger.warning(
                "Alert %s:%s fired but no alerter is configured", alert.slo_name, alert.rule_name
            )
            self._emit_alert(alert, delivered=False)
            return
        try:
            self._alerter.send_alert(alert, token)
        except DeliveryError as e:
            logger.warning("Failed to deliver alert %s:%s: %s", alert.slo_name, alert.rule_name, e)
            self._emit_alert(alert, delivered=False)
            return
        except Exception:
            logger.exception("Alerter raised while sending %s:%s", alert.slo_name, alert.rule_name)
            self._emit_alert(alert, delivered=False)
            return
        self._emit_alert(alert, delivered=True)

    def evaluate_all(self, token: Optional[CancelToken] = None) -> EvaluationReport:
        """Evaluate every registered SLO concurrently.

        Waits at most ``evaluation_timeout`` seconds. Objectives still
        running then are cancelled and reported as timed out; their
        workers finish in the background.
        """
        token = token or CancelToken()
        objectives = self.list_slos()
        now = self._clock()
        report = EvaluationReport(started_at=now)
        if not objectives:
            return report

        pool = ThreadPoolExecutor(
            max_workers=min(len(objectives), self._max_workers),
            thread_name_prefix="burnwatch-evaluate",
        )
        futures: dict[Future[list[Alert]], tuple[str, CancelToken]] = {}
        try:
            for slo in objectives:
                child = token.child()
                futures[pool.submit(self.evaluate_slo, slo, child, now)] = (slo.name, child)
            done, pending = wait(futures, timeout=self._evaluation_timeout)
        finally:
            pool.shutdown(wait=False)

        for future in done:
            name, _ = futures[future]
            exc = future.exception()
            if exc is None:
                report.evaluated.append(name)
                report.alerts.extend(future.result())
            else:
                report.failed[name] = str(exc)
                logger.warning("Evaluation of SLO %s failed: %s", name, exc)
        for future in pending:
            name, child = futures[future]
            child.cancel()
            report.timed_out.append(name)
            logger.warning(
                "Evaluation of SLO %s exceeded %ss; cancelled", name, self._evaluation_timeout
            )

        logger.debug(
            "Evaluation tick: %d evaluated, %d alert(s), %d failed, %d timed out",
            len(report.evaluated), len(report.alerts), len(report.failed), len(report.timed_out),
        )
        return report

    def run_evaluation(self, interval: float, token: CancelToken) -> None:
        """Evaluate every *interval* seconds until *token* is cancelled."""
        if interval <= 0:
            raise ValueError("evaluation interval must be positive")
        logger.info("SLO evaluation started (interval=%ss)", interval)
        while not token.wait(interval):
            try:
                self.evaluate_all(token)
            except Exception:
                logger.exception("Evaluation tick failed")
        logger.info("SLO evaluation stopped")

    # -- status --------------------------------------------------------------

    def get_slo_status(self, name: str, now: Optional[float] = None) -> SLOStatus:
        """Compute the error-budget snapshot of SLO *name* over its window."""
        slo = self.get_slo(name)
        status = self._status_at(slo, self._clock() if now is None else now)
        self._emit_status(status)
        return status

    def all_statuses(self, now: Optional[float] = None) -> list[SLOStatus]:
        now = self._clock() if now is None else now
        return [self.get_slo_status(slo.name, now) for slo in self.list_slos()]

    def _status_at(self, slo: SLO, now: float) -> SLOStatus:
        agg = self._registry.get_sli_aggregation(
            slo.sli_name, now - slo.window, now, AggregationType.AVERAGE
        )
        return SLOStatus.compute(slo, agg.value, agg.count, now)

    # -- telemetry -----------------------------------------------------------

    def _emit_status(self, status: SLOStatus) -> None:
        if self._metrics is None:
            return
        try:
            self._metrics.record_slo_status(status)
        except Exception:
            logger.debug("Metrics sink failed for SLO %s", status.slo_name, exc_info=True)

    def _emit_alert(self, alert: Alert, delivered: bool) -> None:
        if self._metrics is None:
            return
        try:
            self._metrics.record_alert(
                alert.slo_name, alert.rule_name, alert.severity.value, delivered
            )
        except Exception:
            logger.debug("Metrics sink failed for alert %s", alert.slo_name, exc_info=True)


def _validate_slo(slo: SLO) -> None:
    if not 0 < slo.target < 100:
        raise ValidationError(slo.name, f"target must be between 0 and 100 exclusive, got {slo.target}")
    if slo.window <= 0:
        raise ValidationError(slo.name, "window must be positive")
    seen: set[str] = set()
    for rule in slo.alert_rules:
        if rule.name in seen:
            raise ValidationError(slo.name, f"duplicate alert rule '{rule.name}'")
        seen.add(rule.name)
        if rule.burn_rate <= 0:
            raise ValidationError(slo.name, f"rule '{rule.name}' burn rate must be positive")
        if rule.window <= 0:
            raise ValidationError(slo.name, f"rule '{rule.name}' window must be positive")


# ---------------------------------------------------------------------------
# Built-in definitions
# ---------------------------------------------------------------------------


def default_availability_sli(
    endpoint: str,
    name: str = "availability",
    tags: Optional[dict[str, str]] = None,
) -> SLI:
    """Health-check availability, 100 when *endpoint* answers, else 0."""
    return SLI(
        name=name,
        type=SLIType.AVAILABILITY,
        threshold=99.9,
        unit="percent",
        description="System availability",
        tags=dict(tags or {}),
        config={"endpoint": endpoint},
    )


def default_latency_sli(
    endpoint: str,
    name: str = "api_latency",
    tags: Optional[dict[str, str]] = None,
) -> SLI:
    """Response latency of *endpoint* in milliseconds, 200 ms threshold."""
    return SLI(
        name=name,
        type=SLIType.LATENCY,
        threshold=200.0,
        unit="milliseconds",
        description="API response latency",
        tags=dict(tags or {}),
        config={"endpoint": endpoint},
    )


def default_availability_slo(
    sli_name: str = "availability",
    name: str = "availability_slo",
    tags: Optional[dict[str, str]] = None,
) -> SLO:
    """99.9% over 30 days with fast (1h) and slow (24h) burn rules."""
    return SLO(
        name=name,
        sli_name=sli_name,
        target=99.9,
        window=30 * DAY,
        description="The system should be available 99.9% of the time",
        alert_rules=[
            # 14.4x over 1h spends 2% of a 30-day budget
            AlertRule("fast_burn", AlertSeverity.CRITICAL, burn_rate=14.4, window=HOUR, threshold=0.02),
            AlertRule("slow_burn", AlertSeverity.WARNING, burn_rate=1.0, window=DAY, threshold=0.1),
        ],
        tags=dict(tags or {}),
    )


def default_latency_slo(
    sli_name: str = "api_latency",
    name: str = "latency_slo",
    tags: Optional[dict[str, str]] = None,
) -> SLO:
    """95% over 7 days with a 2x/2h degradation rule."""
    return SLO(
        name=name,
        sli_name=sli_name,
        target=95.0,
        window=7 * DAY,
        description="The API should respond within 200ms for 95% of requests",
        alert_rules=[
            AlertRule(
                "latency_degradation", AlertSeverity.WARNING, burn_rate=2.0, window=2 * HOUR, threshold=0.05
            ),
        ],
        tags=dict(tags or {}),
    )
