"""burnwatch: SLI/SLO monitoring with multi-window burn-rate alerting.

Core concepts
-------------
* **SLI (Service Level Indicator)**: a named signal measured on a timer by
  a collector plugin, for example endpoint availability (0 or 100) or
  response latency in milliseconds. Measurements land in a
  ``MeasurementStore`` (in-memory or SQLite).

* **SLO (Service Level Objective)**: a target percentage for one SLI over
  a rolling window. The error budget is ``100 - target``.

* **Burn-rate rules**: each rule averages the SLI over its own window and
  fires when ``(100 - value) / budget`` reaches its multiplier. A short
  window with a high multiplier catches outages fast; a long window with
  a low one catches slow leaks.

* **Alert dispatch**: webhook, Slack and email channels share one retry
  and cooldown skeleton, and ``MultiChannelDispatcher`` fans alerts out.

Quick start::

    from burnwatch import IndicatorRegistry, ObjectiveEngine, InMemoryMeasurementStore
    from burnwatch.alerts import webhook_channel
    from burnwatch.slo import AvailabilityCollector, default_availability_sli, default_availability_slo

    registry = IndicatorRegistry(InMemoryMeasurementStore())
    registry.register_collector("availability", AvailabilityCollector())
    registry.register_sli(default_availability_sli("https://api.example.com/health"))

    engine = ObjectiveEngine(registry, alerter=webhook_channel("https://hooks.example.com/slo"))
    engine.register_slo(default_availability_slo())
"""

from burnwatch.alerts import Alert, AlertSeverity
from burnwatch.cancel import CancelToken
from burnwatch.errors import (
    BurnwatchError,
    CollectionError,
    DeliveryError,
    NotFoundError,
    StorageError,
    ValidationError,
)
from burnwatch.slo.indicators import SLI, IndicatorRegistry, SLIType
from burnwatch.slo.objectives import SLO, AlertRule, ObjectiveEngine, SLOStatus
from burnwatch.storage import InMemoryMeasurementStore, SQLiteMeasurementStore

__all__ = [
    "Alert",
    "AlertRule",
    "AlertSeverity",
    "BurnwatchError",
    "CancelToken",
    "CollectionError",
    "DeliveryError",
    "InMemoryMeasurementStore",
    "IndicatorRegistry",
    "NotFoundError",
    "ObjectiveEngine",
    "SLI",
    "SLIType",
    "SLO",
    "SLOStatus",
    "SQLiteMeasurementStore",
    "StorageError",
    "ValidationError",
]

__version__ = "0.1.0"
