from __future__ import annotations

from dataclasses import asdict, dataclass, field, is_dataclass
from datetime import datetime, timezone
from typing import Any, Callable, Generic, TypeVar

from .models import FallbackOutcome
from .orchestrator import Capability

T = TypeVar("T")

NO_STORE_CONTROL = "no-cache, no-store, must-revalidate"

_FAILURE_MESSAGE = "All sources failed or are rate limited"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class CacheDirective:
    cache_control: str
    max_age_seconds: int | None = None

    @classmethod
    def no_store(cls) -> "CacheDirective":
        return cls(cache_control=NO_STORE_CONTROL)

    @classmethod
    def shared(cls, max_age_seconds: int) -> "CacheDirective":
        return cls(cache_control=f"public, max-age={max_age_seconds}", max_age_seconds=max_age_seconds)

    @property
    def cacheable(self) -> bool:
        return self.max_age_seconds is not None

    def headers(self, etag: str) -> dict[str, str]:
        headers = {"Cache-Control": self.cache_control, "ETag": f'"{etag}"'}
        if not self.cacheable:
            headers["Pragma"] = "no-cache"
            headers["Expires"] = "0"
        return headers


@dataclass(slots=True)
class AssembledResponse(Generic[T]):
    data: T | None
    source: str
    succeeded: bool
    timestamp: datetime
    directive: CacheDirective
    headers: dict[str, str] = field(default_factory=dict)
    error: str | None = None

    @property
    def is_synthetic(self) -> bool:
        return self.source == "synthetic"

    def to_payload(self) -> dict[str, Any]:
        return {
            "data": _jsonable(self.data),
            "source": self.source,
            "success": self.succeeded,
            "timestamp": self.timestamp.isoformat(),
            "error": self.error,
        }


def _jsonable(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return _jsonable(asdict(value))
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


class ResponseAssembler:
    """
    Stamps provenance, a timestamp and a cache directive on an orchestrator
    outcome before it leaves the aggregator.

    Price-bearing lookups are always must-not-cache. Charts, search and
    trending get a short shared window, except synthetic charts which are
    never cached.
    """

    def __init__(
        self,
        *,
        now_fn: Callable[[], datetime] | None = None,
        chart_max_age_seconds: int = 60,
        search_max_age_seconds: int = 120,
        trending_max_age_seconds: int = 300,
    ) -> None:
        self._now = now_fn or _utcnow
        self._shared_max_age = {
            Capability.CHART: chart_max_age_seconds,
            Capability.SEARCH: search_max_age_seconds,
            Capability.TRENDING: trending_max_age_seconds,
        }

    def directive_for(self, capability: Capability, outcome: FallbackOutcome[Any]) -> CacheDirective:
        if not outcome.succeeded or outcome.is_synthetic:
            return CacheDirective.no_store()
        max_age = self._shared_max_age.get(capability)
        if max_age is None:
            return CacheDirective.no_store()
        return CacheDirective.shared(max_age)

    def assemble(self, capability: Capability, outcome: FallbackOutcome[T]) -> AssembledResponse[T]:
        timestamp = self._now()
        directive = self.directive_for(capability, outcome)
        etag = f"{capability.value}-{outcome.source_name}-{int(timestamp.timestamp() * 1000)}"
        error: str | None = None
        if not outcome.succeeded:
            error = _FAILURE_MESSAGE
        elif outcome.is_synthetic:
            error = "Live sources unavailable; series is estimated"
        return AssembledResponse(
            data=outcome.data,
            source=outcome.source_name,
            succeeded=outcome.succeeded,
            timestamp=timestamp,
            directive=directive,
            headers=directive.headers(etag),
            error=error,
        )


__all__ = ["AssembledResponse", "CacheDirective", "NO_STORE_CONTROL", "ResponseAssembler"]
