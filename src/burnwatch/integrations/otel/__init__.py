"""OpenTelemetry integration: SLI/SLO gauges and loop counters over OTLP.

Usage:
    from burnwatch.integrations.otel import MetricsExporter

    exporter = MetricsExporter()
    engine = ObjectiveEngine(registry, alerter, metrics=exporter)

Works with any OTLP-compatible backend (Grafana, Prometheus, Datadog, etc.).
"""

from burnwatch.integrations.otel.metrics import MetricsExporter

__all__ = [
    "MetricsExporter",
]
