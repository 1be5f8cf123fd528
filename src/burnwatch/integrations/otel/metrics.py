"""OpenTelemetry metrics exporter for burnwatch.

Implements the :class:`~burnwatch.integrations.MetricsSink` port: SLI
values and SLO error-budget gauges, plus counters for collection outcomes
and fired alerts, exported through whatever MeterProvider is configured.

Usage:
    from burnwatch.integrations.otel import MetricsExporter

    exporter = MetricsExporter()
    registry = IndicatorRegistry(store, metrics=exporter)
    engine = ObjectiveEngine(registry, alerter, metrics=exporter)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from opentelemetry import metrics
from opentelemetry.metrics import Meter

from burnwatch import __version__
from burnwatch.integrations.otel.conventions import (
    ALERT_DELIVERED,
    ALERT_RULE,
    ALERT_SEVERITY,
    COLLECTION_OUTCOME,
    METRIC_ALERTS_FIRED,
    METRIC_BURN_RATE,
    METRIC_COLLECTIONS,
    METRIC_ERROR_BUDGET_REMAINING,
    METRIC_SLI_VALUE,
    METRIC_SLO_CURRENT_VALUE,
    METRIC_SLO_HEALTHY,
    OUTCOME_FAILED,
    OUTCOME_STORED,
    SLI_NAME,
    SLI_TYPE,
    SLO_NAME,
    SLO_TARGET,
)

if TYPE_CHECKING:
    from burnwatch.slo.objectives import SLOStatus

logger = logging.getLogger(__name__)


class MetricsExporter:
    """Exports burnwatch metrics via the OpenTelemetry Metrics API."""

    def __init__(
        self,
        meter_provider: metrics.MeterProvider | None = None,
        labels: dict[str, str] | None = None,
    ) -> None:
        if meter_provider:
            self._meter: Meter = meter_provider.get_meter("burnwatch", version=__version__)
        else:
            self._meter = metrics.get_meter("burnwatch", version=__version__)
        self._labels = dict(labels or {})

        # SLI metrics
        self._sli_value = self._meter.create_gauge(
            METRIC_SLI_VALUE,
            unit="1",
            description="Last collected SLI value",
        )
        self._collections = self._meter.create_counter(
            METRIC_COLLECTIONS,
            unit="1",
            description="SLI collection attempts by outcome",
        )

        # SLO metrics
        self._slo_value = self._meter.create_gauge(
            METRIC_SLO_CURRENT_VALUE,
            unit="%",
            description="SLI average over the SLO window",
        )
        self._error_budget_remaining = self._meter.create_gauge(
            METRIC_ERROR_BUDGET_REMAINING,
            unit="%",
            description="Remaining error budget in percentage points (negative when exhausted)",
        )
        self._burn_rate = self._meter.create_gauge(
            METRIC_BURN_RATE,
            unit="1",
            description="Burn rate over the SLO window (1.0 = expected rate)",
        )
        self._healthy = self._meter.create_gauge(
            METRIC_SLO_HEALTHY,
            unit="1",
            description="1 when the SLO meets its target, else 0",
        )

        # Alerts
        self._alerts_fired = self._meter.create_counter(
            METRIC_ALERTS_FIRED,
            unit="1",
            description="Alerts fired by burn-rate rules",
        )

    def record_collection(self, sli_name: str, sli_type: str, value: float | None) -> None:
        attrs: dict[str, Any] = {SLI_NAME: sli_name, SLI_TYPE: sli_type, **self._labels}
        if value is None:
            self._collections.add(1, {**attrs, COLLECTION_OUTCOME: OUTCOME_FAILED})
            return
        self._collections.add(1, {**attrs, COLLECTION_OUTCOME: OUTCOME_STORED})
        self._sli_value.set(value, attrs)

    def record_slo_status(self, status: SLOStatus) -> None:
        attrs: dict[str, Any] = {
            SLO_NAME: status.slo_name,
            SLO_TARGET: status.target,
            **self._labels,
        }
        self._slo_value.set(status.current_value, attrs)
        self._error_budget_remaining.set(status.remaining_error_budget, attrs)
        self._burn_rate.set(status.burn_rate, attrs)
        self._healthy.set(1 if status.is_healthy else 0, attrs)

    def record_alert(self, slo_name: str, rule_name: str, severity: str, delivered: bool) -> None:
        attrs: dict[str, Any] = {
            SLO_NAME: slo_name,
            ALERT_RULE: rule_name,
            ALERT_SEVERITY: severity,
            ALERT_DELIVERED: delivered,
            **self._labels,
        }
        self._alerts_fired.add(1, attrs)
