"""Tests for MultiChannelDispatcher success policies."""

from __future__ import annotations

import threading
import time

import pytest

from burnwatch.alerts import Alert, AlertSeverity, FanoutConfig, MultiChannelDispatcher, SuccessPolicy
from burnwatch.errors import AggregateDeliveryError, DeliveryError


class FakeChannel:
    def __init__(self, name, fail=False, block=None):
        self.name = name
        self.fail = fail
        self.block = block
        self.calls = 0
        self.tokens = []

    def send_alert(self, alert, token=None):
        self.calls += 1
        self.tokens.append(token)
        if self.block is not None:
            self.block.wait(5)
        if self.fail:
            raise DeliveryError(f"{self.name} down")


def _alert():
    return Alert(
        slo_name="availability_slo",
        rule_name="fast_burn",
        severity=AlertSeverity.CRITICAL,
        message="burning",
        value=20.0,
        threshold=14.4,
    )


def _dispatcher(channels, policy, timeout=5.0):
    return MultiChannelDispatcher(channels, FanoutConfig(policy=policy, channel_timeout=timeout))


class TestBestEffort:
    def test_partial_success(self):
        ok, bad = FakeChannel("ok"), FakeChannel("bad", fail=True)
        _dispatcher([ok, bad], SuccessPolicy.BEST_EFFORT).send_alert(_alert())
        assert ok.calls == bad.calls == 1

    def test_all_fail(self):
        a, b = FakeChannel("a", fail=True), FakeChannel("b", fail=True)
        with pytest.raises(AggregateDeliveryError) as exc_info:
            _dispatcher([a, b], SuccessPolicy.BEST_EFFORT).send_alert(_alert())
        assert set(exc_info.value.failures) == {"a", "b"}
        assert "a down" in str(exc_info.value)

    def test_default_policy(self):
        dispatcher = MultiChannelDispatcher([FakeChannel("a")])
        assert dispatcher.config.policy is SuccessPolicy.BEST_EFFORT
        assert dispatcher.config.channel_timeout == 30.0


class TestRequireAll:
    def test_one_failure_fails_but_others_attempted(self):
        ok, bad = FakeChannel("ok"), FakeChannel("bad", fail=True)
        with pytest.raises(AggregateDeliveryError) as exc_info:
            _dispatcher([ok, bad], SuccessPolicy.REQUIRE_ALL).send_alert(_alert())
        assert ok.calls == 1
        assert list(exc_info.value.failures) == ["bad"]

    def test_all_succeed(self):
        channels = [FakeChannel("a"), FakeChannel("b"), FakeChannel("c")]
        _dispatcher(channels, SuccessPolicy.REQUIRE_ALL).send_alert(_alert())
        assert all(c.calls == 1 for c in channels)


class TestFailFast:
    def test_returns_without_waiting_for_slow_channels(self):
        release = threading.Event()
        slow, bad = FakeChannel("slow", block=release), FakeChannel("bad", fail=True)
        started = time.monotonic()
        try:
            with pytest.raises(AggregateDeliveryError) as exc_info:
                _dispatcher([slow, bad], SuccessPolicy.FAIL_FAST).send_alert(_alert())
            assert time.monotonic() - started < 2.0
            assert list(exc_info.value.failures) == ["bad"]
        finally:
            release.set()

    def test_all_succeed(self):
        _dispatcher([FakeChannel("a"), FakeChannel("b")], SuccessPolicy.FAIL_FAST).send_alert(_alert())


class TestTimeouts:
    def test_slow_channel_counts_as_failure(self):
        release = threading.Event()
        slow, ok = FakeChannel("slow", block=release), FakeChannel("ok")
        try:
            _dispatcher([slow, ok], SuccessPolicy.BEST_EFFORT, timeout=0.1).send_alert(_alert())
            with pytest.raises(AggregateDeliveryError) as exc_info:
                _dispatcher([slow, ok], SuccessPolicy.REQUIRE_ALL, timeout=0.1).send_alert(_alert())
            assert isinstance(exc_info.value.failures["slow"], TimeoutError)
        finally:
            release.set()

    def test_each_channel_gets_a_deadline(self):
        a, b = FakeChannel("a"), FakeChannel("b")
        _dispatcher([a, b], SuccessPolicy.BEST_EFFORT, timeout=3.0).send_alert(_alert())
        for channel in (a, b):
            (token,) = channel.tokens
            assert token is not None
            assert token.remaining() <= 3.0
        assert a.tokens[0] is not b.tokens[0]


class TestConfiguration:
    def test_no_channels(self):
        with pytest.raises(DeliveryError):
            MultiChannelDispatcher([]).send_alert(_alert())

    def test_channel_names(self):
        class Anonymous:
            def send_alert(self, alert, token=None):
                pass

        dispatcher = MultiChannelDispatcher([FakeChannel("slack"), Anonymous()])
        assert dispatcher.channel_names == ["slack", "channel-1"]
