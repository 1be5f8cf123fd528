"""OpenTelemetry semantic conventions for burnwatch.

Defines attribute keys and metric names following OTEL naming conventions.
Everything is prefixed with 'burnwatch.' to avoid collisions with standard
OTEL conventions.
"""

# --- Attribute Keys ---

# SLI attributes
SLI_NAME = "burnwatch.sli.name"
SLI_TYPE = "burnwatch.sli.type"

# SLO attributes
SLO_NAME = "burnwatch.slo.name"
SLO_TARGET = "burnwatch.slo.target"

# Alert attributes
ALERT_RULE = "burnwatch.alert.rule"
ALERT_SEVERITY = "burnwatch.alert.severity"
ALERT_DELIVERED = "burnwatch.alert.delivered"

# Collection outcome
COLLECTION_OUTCOME = "burnwatch.collection.outcome"
OUTCOME_STORED = "stored"
OUTCOME_FAILED = "failed"

# --- Metric Names ---

METRIC_SLI_VALUE = "burnwatch.sli.value"
METRIC_COLLECTIONS = "burnwatch.sli.collections"
METRIC_SLO_CURRENT_VALUE = "burnwatch.slo.current_value"
METRIC_ERROR_BUDGET_REMAINING = "burnwatch.error_budget.remaining"
METRIC_BURN_RATE = "burnwatch.burn_rate"
METRIC_SLO_HEALTHY = "burnwatch.slo.healthy"
METRIC_ALERTS_FIRED = "burnwatch.alerts.fired"
