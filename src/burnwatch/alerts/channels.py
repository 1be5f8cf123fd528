"""Alert channels: one retry/cooldown skeleton, pluggable transports.

``AlertChannel`` owns suppression and retries; a ``Transport`` only
formats and sends a single attempt. Webhook and Slack transports POST JSON
with urllib, the email transport talks SMTP with smtplib. The HTTP poster
and SMTP factory are injectable so tests never touch the network.
"""

from __future__ import annotations

import json
import logging
import smtplib
import threading
import time
import urllib.error
import urllib.request
from dataclasses import dataclass, field
from email.message import EmailMessage
from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable

from burnwatch.alerts import Alert, format_email, format_slack, format_webhook
from burnwatch.alerts.cooldown import CooldownTracker
from burnwatch.cancel import CancelToken
from burnwatch.errors import DeliveryError, DispatchCancelledError

logger = logging.getLogger(__name__)

USER_AGENT = "burnwatch-slo-alerter/1.0"

# (url, body, headers, timeout) -> HTTP status code
JSONPoster = Callable[[str, bytes, Dict[str, str], float], int]


def urllib_post(url: str, body: bytes, headers: Dict[str, str], timeout: float) -> int:
    """POST *body* and return the status code. Transport errors propagate."""
    req = urllib.request.Request(url, data=body, headers=headers, method="POST")
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:
            return int(resp.status)
    except urllib.error.HTTPError as e:
        return int(e.code)


@dataclass
class AlerterConfig:
    """Delivery settings shared by every channel."""

    timeout: float = 30.0  # per attempt
    retry_count: int = 3  # attempts after the first
    retry_delay: float = 5.0
    cooldown: float = 900.0

    @property
    def max_attempts(self) -> int:
        return self.retry_count + 1


@runtime_checkable
class Transport(Protocol):
    """Formats and sends one delivery attempt."""

    name: str

    def deliver(self, alert: Alert, timeout: float) -> None:
        """Send *alert* once. Raise on any failure."""
        ...


# ---------------------------------------------------------------------------
# Transports
# ---------------------------------------------------------------------------


def _post_json(poster: JSONPoster, url: str, payload: Dict[str, Any], timeout: float) -> None:
    if not url:
        raise DeliveryError("No URL configured")
    body = json.dumps(payload, default=str).encode("utf-8")
    headers = {"Content-Type": "application/json", "User-Agent": USER_AGENT}
    status = poster(url, body, headers, timeout)
    if not 200 <= status < 300:
        raise DeliveryError(f"{url} returned status {status}")


class WebhookTransport:
    """Generic JSON webhook."""

    def __init__(self, url: str, poster: Optional[JSONPoster] = None, name: str = "webhook") -> None:
        self.url = url
        self.name = name
        self._poster = poster or urllib_post

    def deliver(self, alert: Alert, timeout: float) -> None:
        _post_json(self._poster, self.url, format_webhook(alert), timeout)


class SlackTransport:
    """Slack incoming webhook."""

    def __init__(
        self,
        url: str,
        poster: Optional[JSONPoster] = None,
        username: str = "burnwatch SLO Monitor",
        channel: str = "",
        name: str = "slack",
    ) -> None:
        self.url = url
        self.name = name
        self.username = username
        self.channel = channel
        self._poster = poster or urllib_post

    def deliver(self, alert: Alert, timeout: float) -> None:
        payload = format_slack(alert, username=self.username)
        if self.channel:
            payload["channel"] = self.channel
        _post_json(self._poster, self.url, payload, timeout)


@dataclass
class SMTPSettings:
    """Where and how to send alert emails."""

    host: str
    from_addr: str
    to_addrs: List[str] = field(default_factory=list)
    port: int = 587
    username: str = ""
    password: str = ""
    use_tls: bool = True


class EmailTransport:
    """Plain-text email over SMTP."""

    def __init__(
        self,
        settings: SMTPSettings,
        smtp_factory: Callable[..., smtplib.SMTP] = smtplib.SMTP,
        name: str = "email",
    ) -> None:
        if not settings.to_addrs:
            raise ValueError("email channel needs at least one recipient")
        self.settings = settings
        self.name = name
        self._smtp_factory = smtp_factory

    def build_message(self, alert: Alert) -> EmailMessage:
        subject, body = format_email(alert)
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.settings.from_addr
        msg["To"] = ", ".join(self.settings.to_addrs)
        msg["User-Agent"] = USER_AGENT
        msg.set_content(body)
        return msg

    def deliver(self, alert: Alert, timeout: float) -> None:
        msg = self.build_message(alert)
        s = self.settings
        with self._smtp_factory(s.host, s.port, timeout=timeout) as server:
            if s.use_tls:
                server.starttls()
            if s.username:
                server.login(s.username, s.password)
            server.send_message(msg)


# ---------------------------------------------------------------------------
# AlertChannel
# ---------------------------------------------------------------------------


class AlertChannel:
    """Retrying, cooldown-suppressed delivery through one transport.

    A send for an ``(slo_name, rule_name)`` key that is cooling down
    returns without touching the transport. Otherwise up to
    ``config.max_attempts`` attempts are made, ``config.retry_delay``
    apart; the wait is cut short if *token* is cancelled. Only a
    successful delivery starts the cooldown.

    Usage:
        channel = webhook_channel("https://hooks.example.com/slo")
        channel.send_alert(alert)
    """

    def __init__(
        self,
        transport: Transport,
        config: Optional[AlerterConfig] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.transport = transport
        self.config = config or AlerterConfig()
        self._cooldowns = CooldownTracker(self.config.cooldown, clock=clock)
        self._stats_lock = threading.Lock()
        self._stats = {"attempts": 0, "delivered": 0, "suppressed": 0, "failed": 0}

    @property
    def name(self) -> str:
        return self.transport.name

    @property
    def cooldowns(self) -> CooldownTracker:
        return self._cooldowns

    def send_alert(self, alert: Alert, token: Optional[CancelToken] = None) -> None:
        key = alert.key
        if not self._cooldowns.try_acquire(key):
            self._bump("suppressed")
            logger.debug("Alert %s:%s suppressed on %s (cooldown)", key[0], key[1], self.name)
            return

        try:
            self._send_with_retry(alert, token or CancelToken())
        except BaseException:
            self._cooldowns.release(key)
            self._bump("failed")
            raise

        self._cooldowns.commit(key)
        self._bump("delivered")
        logger.info("Alert %s:%s delivered via %s", key[0], key[1], self.name)

    def _send_with_retry(self, alert: Alert, token: CancelToken) -> None:
        last_error: Optional[Exception] = None
        attempts = self.config.max_attempts

        for attempt in range(attempts):
            if attempt > 0 and token.wait(self.config.retry_delay):
                raise DispatchCancelledError(
                    f"delivery via {self.name} cancelled after {attempt} attempt(s)",
                    attempts=attempt,
                ) from last_error

            timeout = self.config.timeout
            remaining = token.remaining()
            if remaining is not None:
                timeout = max(0.001, min(timeout, remaining))

            self._bump("attempts")
            try:
                self.transport.deliver(alert, timeout)
                return
            except Exception as e:
                last_error = e
                logger.debug(
                    "Attempt %d/%d via %s failed: %s", attempt + 1, attempts, self.name, e
                )

        raise DeliveryError(
            f"failed to send alert via {self.name} after {attempts} attempts: {last_error}",
            attempts=attempts,
        ) from last_error

    def _bump(self, counter: str) -> None:
        with self._stats_lock:
            self._stats[counter] += 1

    def stats(self) -> Dict[str, int]:
        with self._stats_lock:
            return dict(self._stats)


def webhook_channel(
    url: str,
    config: Optional[AlerterConfig] = None,
    poster: Optional[JSONPoster] = None,
    name: str = "webhook",
) -> AlertChannel:
    return AlertChannel(WebhookTransport(url, poster=poster, name=name), config)


def slack_channel(
    url: str,
    config: Optional[AlerterConfig] = None,
    poster: Optional[JSONPoster] = None,
    username: str = "burnwatch SLO Monitor",
    channel: str = "",
    name: str = "slack",
) -> AlertChannel:
    transport = SlackTransport(url, poster=poster, username=username, channel=channel, name=name)
    return AlertChannel(transport, config)


def email_channel(
    settings: SMTPSettings,
    config: Optional[AlerterConfig] = None,
    smtp_factory: Callable[..., smtplib.SMTP] = smtplib.SMTP,
    name: str = "email",
) -> AlertChannel:
    return AlertChannel(EmailTransport(settings, smtp_factory=smtp_factory, name=name), config)
