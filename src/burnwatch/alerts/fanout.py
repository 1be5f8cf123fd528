"""Concurrent multi-channel alert dispatch."""

from __future__ import annotations

import logging
from concurrent.futures import ALL_COMPLETED, FIRST_EXCEPTION, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Sequence, Tuple

from burnwatch.alerts import Alert, Alerter
from burnwatch.cancel import CancelToken
from burnwatch.errors import AggregateDeliveryError, DeliveryError

logger = logging.getLogger(__name__)


class SuccessPolicy(str, Enum):
    """When a fan-out counts as delivered."""

    BEST_EFFORT = "best_effort"  # at least one channel succeeded
    REQUIRE_ALL = "require_all"  # every channel succeeded
    FAIL_FAST = "fail_fast"  # first failure aborts the wait


@dataclass
class FanoutConfig:
    policy: SuccessPolicy = SuccessPolicy.BEST_EFFORT
    channel_timeout: float = 30.0


class MultiChannelDispatcher:
    """Sends each alert to every channel concurrently.

    Each channel gets its own token with a ``channel_timeout`` deadline,
    derived from the caller's token. Channels still running when their
    deadline passes are reported as failed. With ``FAIL_FAST`` the call
    returns on the first failure and leaves the other channels to finish
    on their own.

    Usage:
        dispatcher = MultiChannelDispatcher(
            [webhook_channel(url), slack_channel(slack_url)],
            FanoutConfig(policy=SuccessPolicy.REQUIRE_ALL),
        )
        dispatcher.send_alert(alert)
    """

    def __init__(
        self,
        channels: Sequence[Alerter],
        config: Optional[FanoutConfig] = None,
    ) -> None:
        self._channels: Tuple[Tuple[str, Alerter], ...] = tuple(
            (getattr(ch, "name", None) or f"channel-{i}", ch) for i, ch in enumerate(channels)
        )
        self.config = config or FanoutConfig()

    @property
    def channel_names(self) -> list:
        return [name for name, _ in self._channels]

    def send_alert(self, alert: Alert, token: Optional[CancelToken] = None) -> None:
        if not self._channels:
            raise DeliveryError("no alert channels configured")

        parent = token or CancelToken()
        timeout = self.config.channel_timeout
        pool = ThreadPoolExecutor(
            max_workers=len(self._channels), thread_name_prefix="burnwatch-dispatch"
        )
        futures: Dict[Future[None], str] = {}
        try:
            for name, channel in self._channels:
                child = parent.child(timeout=timeout)
                futures[pool.submit(channel.send_alert, alert, child)] = name
            failures = self._collect(futures, timeout)
        finally:
            pool.shutdown(wait=False)

        succeeded = len(self._channels) - len(failures)
        policy = self.config.policy
        if policy is SuccessPolicy.FAIL_FAST and failures:
            raise AggregateDeliveryError("channel failed", failures)
        if policy is SuccessPolicy.REQUIRE_ALL and failures:
            raise AggregateDeliveryError("not all channels succeeded", failures)
        if succeeded == 0:
            raise AggregateDeliveryError("all channels failed", failures)
        if failures:
            logger.warning(
                "Alert %s:%s delivered to %d/%d channels",
                alert.slo_name, alert.rule_name, succeeded, len(self._channels),
            )

    def _collect(self, futures: Dict[Future[None], str], timeout: float) -> Dict[str, BaseException]:
        fail_fast = self.config.policy is SuccessPolicy.FAIL_FAST
        done, pending = wait(
            futures, timeout=timeout, return_when=FIRST_EXCEPTION if fail_fast else ALL_COMPLETED
        )

        failures: Dict[str, BaseException] = {}
        for future in done:
            exc = future.exception()
            if exc is not None:
                failures[futures[future]] = exc
                logger.warning("Channel %s failed: %s", futures[future], exc)

        if fail_fast and failures:
            return failures
        for future in pending:
            name = futures[future]
            failures[name] = TimeoutError(f"channel {name} did not finish within {timeout}s")
            logger.warning("Channel %s timed out after %ss", name, timeout)
        return failures
