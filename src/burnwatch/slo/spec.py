"""Monitor-as-code: indicators, objectives and alerting defined in YAML.

Durations accept seconds or unit-suffixed strings (``"30d"``, ``"1h"``,
``"15m"``). Each model builds the runtime object it describes; starting the
loops is left to the caller.
"""

from __future__ import annotations

import os
from enum import Enum
from pathlib import Path
from typing import Any, Union

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator

from burnwatch.alerts import AlertSeverity
from burnwatch.alerts.channels import (
    AlertChannel,
    AlerterConfig,
    SMTPSettings,
    email_channel,
    slack_channel,
    webhook_channel,
)
from burnwatch.alerts.fanout import FanoutConfig, MultiChannelDispatcher, SuccessPolicy
from burnwatch.slo.durations import parse_duration
from burnwatch.slo.indicators import SLI, SLIType
from burnwatch.slo.objectives import SLO, AlertRule

Duration = Union[float, str]


def _seconds(value: Any) -> float:
    seconds = parse_duration(value)
    if seconds <= 0:
        raise ValueError("duration must be positive")
    return seconds


class SLISpec(BaseModel):
    """Service Level Indicator specification."""

    name: str = Field(..., min_length=1)
    type: SLIType
    threshold: float = 0.0
    unit: str = ""
    description: str = ""
    tags: dict[str, str] = Field(default_factory=dict)
    config: dict[str, Any] = Field(default_factory=dict)

    def build(self) -> SLI:
        return SLI(
            name=self.name,
            type=self.type,
            threshold=self.threshold,
            unit=self.unit,
            description=self.description,
            tags=dict(self.tags),
            config=dict(self.config),
        )


class AlertRuleSpec(BaseModel):
    """A burn-rate alert rule."""

    name: str = Field(..., min_length=1)
    severity: AlertSeverity = AlertSeverity.WARNING
    burn_rate: float = Field(..., gt=0, description="Burn rate multiplier")
    window: Duration = Field(default="1h", description="Evaluation window")
    threshold: float = Field(default=0.0, ge=0)

    @field_validator("window")
    @classmethod
    def _check_window(cls, v: Duration) -> Duration:
        _seconds(v)
        return v

    def build(self) -> AlertRule:
        return AlertRule(
            name=self.name,
            severity=self.severity,
            burn_rate=self.burn_rate,
            window=_seconds(self.window),
            threshold=self.threshold,
        )


class SLOSpec(BaseModel):
    """Service Level Objective specification."""

    name: str = Field(..., min_length=1)
    sli: str = Field(..., description="Name of the indicator this objective tracks")
    target: float = Field(..., gt=0, lt=100, description="Target percentage")
    window: Duration = Field(default="30d", description="Rolling window duration")
    alert_rules: list[AlertRuleSpec] = Field(default_factory=list)
    tags: dict[str, str] = Field(default_factory=dict)
    description: str = ""

    @field_validator("window")
    @classmethod
    def _check_window(cls, v: Duration) -> Duration:
        _seconds(v)
        return v

    @model_validator(mode="after")
    def _unique_rules(self) -> SLOSpec:
        names = [r.name for r in self.alert_rules]
        if len(names) != len(set(names)):
            raise ValueError(f"SLO '{self.name}' has duplicate alert rule names")
        return self

    def build(self) -> SLO:
        return SLO(
            name=self.name,
            sli_name=self.sli,
            target=self.target,
            window=_seconds(self.window),
            alert_rules=[r.build() for r in self.alert_rules],
            tags=dict(self.tags),
            description=self.description,
        )


class ChannelType(str, Enum):
    WEBHOOK = "webhook"
    SLACK = "slack"
    EMAIL = "email"


class ChannelSpec(BaseModel):
    """One alert delivery channel."""

    type: ChannelType
    name: str = ""
    url: str = ""
    # Slack
    username: str = "burnwatch SLO Monitor"
    channel: str = ""
    # Email
    smtp_host: str = ""
    smtp_port: int = 587
    from_addr: str = ""
    to_addrs: list[str] = Field(default_factory=list)
    smtp_username: str = ""
    password_env: str = Field(
        default="",
        description="Environment variable holding the SMTP password",
    )
    use_tls: bool = True

    @model_validator(mode="after")
    def _check_required(self) -> ChannelSpec:
        if self.type in (ChannelType.WEBHOOK, ChannelType.SLACK) and not self.url:
            raise ValueError(f"{self.type.value} channel requires a url")
        if self.type is ChannelType.EMAIL:
            if not self.smtp_host or not self.from_addr or not self.to_addrs:
                raise ValueError("email channel requires smtp_host, from_addr and to_addrs")
        return self

    def build(self, config: AlerterConfig) -> AlertChannel:
        name = self.name or self.type.value
        if self.type is ChannelType.WEBHOOK:
            return webhook_channel(self.url, config, name=name)
        if self.type is ChannelType.SLACK:
            return slack_channel(
                self.url, config, username=self.username, channel=self.channel, name=name
            )
        password = os.environ.get(self.password_env, "") if self.password_env else ""
        settings = SMTPSettings(
            host=self.smtp_host,
            port=self.smtp_port,
            from_addr=self.from_addr,
            to_addrs=list(self.to_addrs),
            username=self.smtp_username,
            password=password,
            use_tls=self.use_tls,
        )
        return email_channel(settings, config, name=name)


class AlerterSpec(BaseModel):
    """Retry, cooldown and fan-out settings plus the channel list."""

    timeout: Duration = 30.0
    retry_count: int = Field(default=3, ge=0)
    retry_delay: Duration = 5.0
    cooldown: Duration = "15m"
    policy: SuccessPolicy = SuccessPolicy.BEST_EFFORT
    channel_timeout: Duration = 30.0
    channels: list[ChannelSpec] = Field(default_factory=list)

    @field_validator("timeout", "channel_timeout")
    @classmethod
    def _check_positive(cls, v: Duration) -> Duration:
        _seconds(v)
        return v

    @field_validator("retry_delay", "cooldown")
    @classmethod
    def _check_non_negative(cls, v: Duration) -> Duration:
        if parse_duration(v) < 0:
            raise ValueError("duration must not be negative")
        return v

    def to_config(self) -> AlerterConfig:
        return AlerterConfig(
            timeout=_seconds(self.timeout),
            retry_count=self.retry_count,
            retry_delay=parse_duration(self.retry_delay),
            cooldown=parse_duration(self.cooldown),
        )

    def to_fanout_config(self) -> FanoutConfig:
        return FanoutConfig(policy=self.policy, channel_timeout=_seconds(self.channel_timeout))

    def build(self) -> MultiChannelDispatcher:
        """Build a dispatcher over every configured channel."""
        config = self.to_config()
        return MultiChannelDispatcher(
            [c.build(config) for c in self.channels], self.to_fanout_config()
        )


class MonitorSpec(BaseModel):
    """A complete monitor definition.

    Can be serialized to/from YAML for monitoring-as-code workflows.
    """

    collection_interval: Duration = 60.0
    evaluation_interval: Duration = 60.0
    evaluation_timeout: Duration = 30.0
    indicators: list[SLISpec] = Field(default_factory=list)
    objectives: list[SLOSpec] = Field(default_factory=list)
    alerting: AlerterSpec = Field(default_factory=AlerterSpec)

    @field_validator("collection_interval", "evaluation_interval", "evaluation_timeout")
    @classmethod
    def _check_interval(cls, v: Duration) -> Duration:
        _seconds(v)
        return v

    @model_validator(mode="after")
    def _check_references(self) -> MonitorSpec:
        sli_names = [s.name for s in self.indicators]
        if len(sli_names) != len(set(sli_names)):
            raise ValueError("indicator names must be unique")
        slo_names = [o.name for o in self.objectives]
        if len(slo_names) != len(set(slo_names)):
            raise ValueError("objective names must be unique")
        known = set(sli_names)
        for obj in self.objectives:
            if obj.sli not in known:
                raise ValueError(f"SLO '{obj.name}' references unknown SLI '{obj.sli}'")
        return self

    @property
    def collection_seconds(self) -> float:
        return _seconds(self.collection_interval)

    @property
    def evaluation_seconds(self) -> float:
        return _seconds(self.evaluation_interval)

    @property
    def evaluation_timeout_seconds(self) -> float:
        return _seconds(self.evaluation_timeout)

    def build_slis(self) -> list[SLI]:
        return [s.build() for s in self.indicators]

    def build_slos(self) -> list[SLO]:
        return [o.build() for o in self.objectives]

    @classmethod
    def from_yaml(cls, path: str | Path) -> MonitorSpec:
        """Load a monitor spec from a YAML file."""
        path = Path(path)
        with open(path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
        return cls.model_validate(data or {})

    def to_yaml(self, path: str | Path) -> None:
        """Save this monitor spec to a YAML file."""
        path = Path(path)
        data = self.model_dump(mode="json", exclude_none=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)


def load_monitor_spec(path: str | Path) -> MonitorSpec:
    """Load and validate a monitor definition from YAML."""
    return MonitorSpec.from_yaml(path)
