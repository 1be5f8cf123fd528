"""
SLO alerting for burnwatch.

Alerts fired by burn-rate rules are handed to an :class:`Alerter`. The
bundled channels (generic webhook, Slack, email) share one retry and
cooldown skeleton, :class:`AlertChannel`, and differ only in how they
format and transport an alert. :class:`MultiChannelDispatcher` fans an
alert out to several channels at once.

HTTP delivery uses urllib and email uses smtplib, so channels need no
extra dependencies.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Protocol, Tuple, runtime_checkable

if TYPE_CHECKING:
    from burnwatch.cancel import CancelToken


class AlertSeverity(str, Enum):
    """Alert severity levels."""

    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass
class Alert:
    """A transient SLO alert. Never persisted; delivered or dropped."""

    slo_name: str
    rule_name: str
    severity: AlertSeverity
    message: str
    value: float
    threshold: float
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: float = field(default_factory=time.time)
    tags: Dict[str, str] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.severity = AlertSeverity(self.severity)

    @property
    def key(self) -> Tuple[str, str]:
        """Suppression key: one cooldown per (objective, rule)."""
        return (self.slo_name, self.rule_name)

    @property
    def title(self) -> str:
        return f"SLO Alert: {self.slo_name}"

    @property
    def iso_timestamp(self) -> str:
        return datetime.fromtimestamp(self.timestamp, tz=timezone.utc).isoformat()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "slo_name": self.slo_name,
            "rule_name": self.rule_name,
            "severity": self.severity.value,
            "message": self.message,
            "value": self.value,
            "threshold": self.threshold,
            "timestamp": self.timestamp,
            "tags": dict(self.tags),
            "metadata": dict(self.metadata),
        }


@runtime_checkable
class Alerter(Protocol):
    """Anything that can deliver an alert. Must be safe to call concurrently."""

    def send_alert(self, alert: Alert, token: CancelToken | None = None) -> None:
        """Deliver *alert*; raise DeliveryError on failure.

        Returning normally means delivered or deliberately suppressed.
        """
        ...


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------

_SLACK_COLORS = {
    AlertSeverity.CRITICAL: "danger",
    AlertSeverity.WARNING: "warning",
    AlertSeverity.INFO: "good",
}

_SEVERITY_EMOJI = {
    AlertSeverity.CRITICAL: "🚨",
    AlertSeverity.WARNING: "⚠️",
    AlertSeverity.INFO: "ℹ️",
}


def format_webhook(alert: Alert) -> Dict[str, Any]:
    """Format alert as a generic JSON webhook payload."""
    return {
        "alert_id": alert.id,
        "type": "slo_alert",
        "title": alert.title,
        "message": alert.message,
        "severity": alert.severity.value,
        "timestamp": alert.iso_timestamp,
        "slo_name": alert.slo_name,
        "rule_name": alert.rule_name,
        "value": alert.value,
        "threshold": alert.threshold,
        "tags": dict(alert.tags),
        "metadata": dict(alert.metadata),
    }


def format_slack(alert: Alert, username: str = "burnwatch SLO Monitor") -> Dict[str, Any]:
    """Format alert as a Slack incoming-webhook message with one attachment."""
    emoji = _SEVERITY_EMOJI.get(alert.severity, "📊")
    fields: List[Dict[str, Any]] = [
        {"title": "SLO", "value": alert.slo_name, "short": True},
        {"title": "Rule", "value": alert.rule_name, "short": True},
        {"title": "Current Value", "value": f"{alert.value:.2f}", "short": True},
        {"title": "Threshold", "value": f"{alert.threshold:.2f}", "short": True},
    ]
    for key, value in sorted(alert.tags.items()):
        fields.append({"title": key, "value": value, "short": True})

    return {
        "text": f"{emoji} {alert.title}",
        "username": username,
        "attachments": [
            {
                "color": _SLACK_COLORS.get(alert.severity, "#439FE0"),
                "title": f"{alert.slo_name} - {alert.rule_name}",
                "text": alert.message,
                "fields": fields,
                "ts": int(alert.timestamp),
            }
        ],
    }


def format_email(alert: Alert) -> Tuple[str, str]:
    """Format alert as an email ``(subject, plain-text body)``."""
    subject = f"[{alert.severity.value}] {alert.title}"
    if alert.tags:
        tag_lines = "\n".join(f"- {k}: {v}" for k, v in sorted(alert.tags.items()))
    else:
        tag_lines = "None"

    body = "\n".join([
        alert.title,
        "",
        "Details:",
        f"- SLO: {alert.slo_name}",
        f"- Rule: {alert.rule_name}",
        f"- Severity: {alert.severity.value}",
        f"- Message: {alert.message}",
        f"- Current Value: {alert.value:.2f}",
        f"- Threshold: {alert.threshold:.2f}",
        f"- Timestamp: {alert.iso_timestamp}",
        "",
        "Tags:",
        tag_lines,
        "",
        "This alert was generated by the burnwatch SLO monitoring system.",
    ])
    return subject, body


from burnwatch.alerts.channels import (  # noqa: E402
    AlertChannel,
    AlerterConfig,
    EmailTransport,
    SlackTransport,
    SMTPSettings,
    Transport,
    WebhookTransport,
    email_channel,
    slack_channel,
    webhook_channel,
)
from burnwatch.alerts.cooldown import CooldownTracker  # noqa: E402
from burnwatch.alerts.fanout import FanoutConfig, MultiChannelDispatcher, SuccessPolicy  # noqa: E402

__all__ = [
    "Alert",
    "AlertChannel",
    "AlertSeverity",
    "Alerter",
    "AlerterConfig",
    "CooldownTracker",
    "EmailTransport",
    "FanoutConfig",
    "MultiChannelDispatcher",
    "SMTPSettings",
    "SlackTransport",
    "SuccessPolicy",
    "Transport",
    "WebhookTransport",
    "email_channel",
    "format_email",
    "format_slack",
    "format_webhook",
    "slack_channel",
    "webhook_channel",
]
