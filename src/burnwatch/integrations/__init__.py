"""Integrations with external telemetry systems.

The engines report what they do through the :class:`MetricsSink` port;
``burnwatch.integrations.otel.MetricsExporter`` is the OpenTelemetry
implementation.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from burnwatch.slo.objectives import SLOStatus


@runtime_checkable
class MetricsSink(Protocol):
    """Receives monitoring events from the registry and the objective engine."""

    def record_collection(self, sli_name: str, sli_type: str, value: float | None) -> None:
        """Record one collection outcome; ``value`` is None when it failed."""
        ...

    def record_slo_status(self, status: SLOStatus) -> None:
        """Record a freshly computed SLO status snapshot."""
        ...

    def record_alert(self, slo_name: str, rule_name: str, severity: str, delivered: bool) -> None:
        """Record an alert fired by a rule and whether dispatch succeeded."""
        ...


__all__ = ["MetricsSink", "otel"]
