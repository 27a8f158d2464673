"""Error taxonomy for upstream providers and the aggregator boundary."""
from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    RATE_LIMITED = "rate_limited"
    TRANSIENT = "transient"


class AggregatorError(RuntimeError):
    """Base error for the market data aggregator."""


class ProviderError(AggregatorError):
    """Raised by a source adapter when a single upstream call fails."""

    kind: ErrorKind = ErrorKind.TRANSIENT
    retryable: bool = True

    def __init__(
        self,
        message: str,
        *,
        provider: str,
        subject: str | None = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.subject = subject
        self.status_code = status_code
        self.attempts = 1

    def describe(self) -> str:
        return f"{self.provider}: {self.kind.value} after {self.attempts} attempt(s): {self}"


class NotFoundError(ProviderError):
    """HTTP 404 or an empty result body; never retried."""

    kind = ErrorKind.NOT_FOUND
    retryable = False


class RateLimitedError(ProviderError):
    """HTTP 429, or an auth failure that behaves like one."""

    kind = ErrorKind.RATE_LIMITED


class TransientError(ProviderError):
    """Timeout, transport failure, 5xx or a malformed body."""

    kind = ErrorKind.TRANSIENT


class BoundaryError(AggregatorError):
    """Errors surfaced to callers of the service facade."""

    status_code: int = 500
    code: str = "aggregator_error"

    def to_payload(self) -> dict[str, object]:
        return {"error": self.code, "message": str(self), "status": self.status_code}


class TokenNotFoundError(BoundaryError):
    status_code = 404
    code = "not_found"


class SourcesRateLimitedError(BoundaryError):
    status_code = 429
    code = "rate_limited"


class AllSourcesExhaustedError(BoundaryError):
    status_code = 503
    code = "all_sources_failed"


__all__ = [
    "AggregatorError",
    "AllSourcesExhaustedError",
    "BoundaryError",
    "ErrorKind",
    "NotFoundError",
    "ProviderError",
    "RateLimitedError",
    "SourcesRateLimitedError",
    "TokenNotFoundError",
    "TransientError",
]
