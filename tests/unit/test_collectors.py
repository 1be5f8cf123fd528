"""Tests for the built-in collectors, using a fake HTTP client."""

from __future__ import annotations

import pytest

from burnwatch.cancel import CancelToken
from burnwatch.errors import CollectionError
from burnwatch.slo.collectors import (
    AvailabilityCollector,
    CallableCollector,
    HTTPClient,
    HTTPResponse,
    LatencyCollector,
)
from burnwatch.slo.indicators import SLI, SLIType


class FakeHTTPClient:
    def __init__(self, status=200, duration=0.05, error=None):
        self.status = status
        self.duration = duration
        self.error = error
        self.calls = []

    def get(self, url, timeout):
        self.calls.append((url, timeout))
        if self.error is not None:
            raise self.error
        return HTTPResponse(status_code=self.status, duration=self.duration)


def _sli(sli_type=SLIType.AVAILABILITY, **config):
    return SLI(name="api", type=sli_type, config=config)


class TestAvailabilityCollector:
    def test_fake_client_satisfies_protocol(self):
        assert isinstance(FakeHTTPClient(), HTTPClient)

    @pytest.mark.parametrize("status,expected", [(200, 100.0), (204, 100.0), (302, 100.0), (404, 0.0), (503, 0.0)])
    def test_status_mapping(self, status, expected):
        collector = AvailabilityCollector(FakeHTTPClient(status=status))
        assert collector.collect(_sli(endpoint="http://svc/health"), CancelToken()) == expected

    def test_transport_error_is_collection_error(self):
        collector = AvailabilityCollector(FakeHTTPClient(error=ConnectionError("refused")))
        with pytest.raises(CollectionError, match="refused"):
            collector.collect(_sli(endpoint="http://svc/health"), CancelToken())

    def test_timeout_from_config(self):
        client = FakeHTTPClient()
        AvailabilityCollector(client).collect(_sli(endpoint="http://svc", timeout=2), CancelToken())
        assert client.calls == [("http://svc", 2.0)]

    def test_timeout_capped_by_token_deadline(self):
        client = FakeHTTPClient()
        AvailabilityCollector(client).collect(_sli(endpoint="http://svc"), CancelToken(timeout=1.0))
        assert client.calls[0][1] <= 1.0

    def test_cancelled_token_skips_probe(self):
        client = FakeHTTPClient()
        token = CancelToken()
        token.cancel()
        with pytest.raises(CollectionError):
            AvailabilityCollector(client).collect(_sli(endpoint="http://svc"), token)
        assert client.calls == []

    def test_validate_requires_endpoint(self):
        collector = AvailabilityCollector(FakeHTTPClient())
        with pytest.raises(ValueError, match="endpoint"):
            collector.validate(_sli())
        collector.validate(_sli(endpoint="http://svc"))

    def test_collect_without_endpoint(self):
        with pytest.raises(CollectionError, match="endpoint"):
            AvailabilityCollector(FakeHTTPClient()).collect(_sli(), CancelToken())


class TestLatencyCollector:
    def test_milliseconds(self):
        collector = LatencyCollector(FakeHTTPClient(duration=0.25))
        value = collector.collect(_sli(SLIType.LATENCY, endpoint="http://svc"), CancelToken())
        assert value == pytest.approx(250.0)

    def test_error_status_still_measured(self):
        collector = LatencyCollector(FakeHTTPClient(status=500, duration=0.1))
        value = collector.collect(_sli(SLIType.LATENCY, endpoint="http://svc"), CancelToken())
        assert value == pytest.approx(100.0)


class TestCallableCollector:
    def test_calls_function_with_sli(self):
        seen = []

        def fn(sli):
            seen.append(sli.name)
            return 42

        assert CallableCollector(fn).collect(_sli(SLIType.CUSTOM), CancelToken()) == 42.0
        assert seen == ["api"]

    def test_required_config(self):
        collector = CallableCollector(lambda sli: 1.0, required_config=["queue"])
        with pytest.raises(ValueError, match="queue"):
            collector.validate(_sli(SLIType.CUSTOM))
        collector.validate(_sli(SLIType.CUSTOM, queue="orders"))
