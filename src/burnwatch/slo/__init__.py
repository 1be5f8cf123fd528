"""SLO Engine: indicators, objectives and burn-rate evaluation."""

from burnwatch.slo.collectors import (
    AvailabilityCollector,
    CallableCollector,
    HTTPClient,
    HTTPResponse,
    LatencyCollector,
    UrllibHTTPClient,
)
from burnwatch.slo.durations import format_duration, parse_duration
from burnwatch.slo.indicators import SLI, CollectionReport, Collector, IndicatorRegistry, SLIType
from burnwatch.slo.objectives import (
    SLO,
    AlertRule,
    EvaluationReport,
    ObjectiveEngine,
    SLOStatus,
    default_availability_sli,
    default_availability_slo,
    default_latency_sli,
    default_latency_slo,
    time_to_exhaustion,
)
from burnwatch.slo.spec import (
    AlerterSpec,
    AlertRuleSpec,
    ChannelSpec,
    MonitorSpec,
    SLISpec,
    SLOSpec,
    load_monitor_spec,
)

__all__ = [
    "SLI",
    "SLIType",
    "Collector",
    "CollectionReport",
    "IndicatorRegistry",
    "AvailabilityCollector",
    "LatencyCollector",
    "CallableCollector",
    "HTTPClient",
    "HTTPResponse",
    "UrllibHTTPClient",
    "SLO",
    "AlertRule",
    "SLOStatus",
    "EvaluationReport",
    "ObjectiveEngine",
    "time_to_exhaustion",
    "default_availability_sli",
    "default_availability_slo",
    "default_latency_sli",
    "default_latency_slo",
    "parse_duration",
    "format_duration",
    "SLISpec",
    "SLOSpec",
    "AlertRuleSpec",
    "AlerterSpec",
    "ChannelSpec",
    "MonitorSpec",
    "load_monitor_spec",
]
