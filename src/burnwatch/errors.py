"""Exception taxonomy for burnwatch."""

from __future__ import annotations


class BurnwatchError(Exception):
    """Base class for all burnwatch errors."""


class ValidationError(BurnwatchError):
    """Raised when an indicator or objective is rejected at registration."""

    def __init__(self, name: str, reason: str) -> None:
        self.name = name
        self.reason = reason
        super().__init__(f"Validation failed for '{name}': {reason}")


class NotFoundError(BurnwatchError):
    """Raised when an indicator or objective is looked up by an unknown name."""

    def __init__(self, kind: str, name: str) -> None:
        self.kind = kind
        self.name = name
        super().__init__(f"{kind} '{name}' not found")


class CollectionError(BurnwatchError):
    """Raised when a collector fails to produce a value."""

    def __init__(self, sli_name: str, reason: str) -> None:
        self.sli_name = sli_name
        self.reason = reason
        super().__init__(f"Collection failed for SLI '{sli_name}': {reason}")


class StorageError(BurnwatchError):
    """Raised when a measurement store operation fails."""


class DeliveryError(BurnwatchError):
    """Raised when an alert could not be delivered."""

    def __init__(self, message: str, attempts: int = 0) -> None:
        self.attempts = attempts
        super().__init__(message)


class DispatchCancelledError(DeliveryError):
    """Raised when delivery is abandoned because the caller cancelled."""


class AggregateDeliveryError(DeliveryError):
    """Raised by the fan-out dispatcher when its success policy is not met."""

    def __init__(self, message: str, failures: dict[str, BaseException]) -> None:
        self.failures = dict(failures)
        details = "; ".join(f"{name}: {exc}" for name, exc in self.failures.items())
        super().__init__(f"{message}: {details}" if details else message)
