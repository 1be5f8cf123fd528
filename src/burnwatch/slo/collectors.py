"""Built-in collectors.

The HTTP collectors probe ``sli.config["endpoint"]`` through an injected
:class:`HTTPClient`; :class:`UrllibHTTPClient` is the default and needs no
third-party dependency.
"""

from __future__ import annotations

import time
import urllib.error
import urllib.request
from collections.abc import Iterable
from dataclasses import dataclass
from typing import Callable, Protocol, runtime_checkable

from burnwatch.cancel import CancelToken
from burnwatch.errors import CollectionError
from burnwatch.slo.indicators import SLI

USER_AGENT = "burnwatch-collector/1.0"
DEFAULT_TIMEOUT = 10.0


@dataclass(frozen=True)
class HTTPResponse:
    """Minimal view of a probe response."""

    status_code: int
    duration: float  # seconds


@runtime_checkable
class HTTPClient(Protocol):
    def get(self, url: str, timeout: float) -> HTTPResponse:
        """Issue a GET. Raise on transport failure; return any HTTP status."""
        ...


class UrllibHTTPClient:
    """HTTPClient backed by urllib."""

    def get(self, url: str, timeout: float) -> HTTPResponse:
        req = urllib.request.Request(url, headers={"User-Agent": USER_AGENT}, method="GET")
        started = time.monotonic()
        try:
            with urllib.request.urlopen(req, timeout=timeout) as resp:
                resp.read()
                return HTTPResponse(status_code=resp.status, duration=time.monotonic() - started)
        except urllib.error.HTTPError as e:
            # Error statuses are still responses
            return HTTPResponse(status_code=e.code, duration=time.monotonic() - started)


def _probe(client: HTTPClient, sli: SLI, token: CancelToken) -> HTTPResponse:
    endpoint = sli.config.get("endpoint")
    if not isinstance(endpoint, str) or not endpoint:
        raise CollectionError(sli.name, f"endpoint not configured for {sli.type.value} SLI")
    if token.cancelled:
        raise CollectionError(sli.name, "collection cancelled")

    timeout = float(sli.config.get("timeout", DEFAULT_TIMEOUT))
    remaining = token.remaining()
    if remaining is not None:
        timeout = min(timeout, remaining)
    try:
        return client.get(endpoint, timeout)
    except CollectionError:
        raise
    except Exception as e:
        raise CollectionError(sli.name, f"probe of {endpoint} failed: {e}") from e


def _require_endpoint(sli: SLI) -> None:
    if "endpoint" not in sli.config:
        raise ValueError(f"endpoint configuration required for {sli.type.value} SLI")


class AvailabilityCollector:
    """Reports 100 when the endpoint answers 2xx/3xx, otherwise 0."""

    def __init__(self, client: HTTPClient | None = None) -> None:
        self._client = client or UrllibHTTPClient()

    def collect(self, sli: SLI, token: CancelToken) -> float:
        resp = _probe(self._client, sli, token)
        if 200 <= resp.status_code < 400:
            return 100.0
        return 0.0

    def validate(self, sli: SLI) -> None:
        _require_endpoint(sli)


class LatencyCollector:
    """Reports the endpoint's response time in milliseconds."""

    def __init__(self, client: HTTPClient | None = None) -> None:
        self._client = client or UrllibHTTPClient()

    def collect(self, sli: SLI, token: CancelToken) -> float:
        resp = _probe(self._client, sli, token)
        return resp.duration * 1000.0

    def validate(self, sli: SLI) -> None:
        _require_endpoint(sli)


class CallableCollector:
    """Wraps a function ``fn(sli) -> float``.

    Useful for custom indicators fed from in-process counters, and in tests.
    ``required_config`` lists config keys that ``validate`` insists on.
    """

    def __init__(
        self,
        fn: Callable[[SLI], float],
        required_config: Iterable[str] = (),
    ) -> None:
        self._fn = fn
        self._required = tuple(required_config)

    def collect(self, sli: SLI, token: CancelToken) -> float:
        if token.cancelled:
            raise CollectionError(sli.name, "collection cancelled")
        return float(self._fn(sli))

    def validate(self, sli: SLI) -> None:
        missing = [key for key in self._required if key not in sli.config]
        if missing:
            raise ValueError(f"missing config keys: {', '.join(missing)}")
