"""
Shared plumbing for source adapters.

Adapters are polymorphic over the capability set {snapshot, chart, search,
trending, prices}; each implements only the protocols its upstream supports.
Every adapter performs its upstream calls through ``HttpSourceAdapter._get_json``
which maps HTTP outcomes onto the provider error taxonomy, and parses bodies
through explicit pydantic schemas built from the lenient field types below.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Annotated, Any, Awaitable, Callable, Mapping, Protocol, Sequence, TypeVar, runtime_checkable

import httpx
from pydantic import BaseModel, BeforeValidator, ConfigDict, ValidationError

from ..config import Settings, get_settings
from ..errors import NotFoundError, ProviderError, RateLimitedError, TransientError
from ..identifiers import IdentifierTranslator
from ..models import ChartSeries, ProviderIdentifier, SearchResult, TokenPrice, TokenSnapshot
from ..retry import RetryConfig

ModelT = TypeVar("ModelT", bound=BaseModel)

RATE_LIMIT_STATUSES = frozenset({401, 403, 429})


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _zero_if_missing(value: Any) -> Any:
    if value is None or value == "":
        return 0
    return value


def _empty_if_missing(value: Any) -> Any:
    return "" if value is None else value


def _int_or_zero(value: Any) -> Any:
    if value is None or value == "":
        return 0
    if isinstance(value, float):
        return int(value)
    return value


Num = Annotated[float, BeforeValidator(_zero_if_missing)]
Int = Annotated[int, BeforeValidator(_int_or_zero)]
Text = Annotated[str, BeforeValidator(_empty_if_missing)]


class LenientModel(BaseModel):
    """Upstream schema base: unknown keys ignored, missing optionals default to zero/empty."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


@dataclass(slots=True)
class AdapterConfig:
    name: str
    base_url: str
    timeout_seconds: float = 10.0
    api_key: str | None = None
    max_attempts: int = 3
    backoff_seconds: float = 1.0
    rate_limit_multiplier: float = 2.0
    user_agent: str = "market-aggregator/0.1"
    headers: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_settings(cls, settings: Settings, name: str) -> "AdapterConfig":
        return cls(
            name=name,
            base_url=getattr(settings, f"{name}_base_url").rstrip("/"),
            timeout_seconds=getattr(settings, f"{name}_timeout_seconds"),
            api_key=getattr(settings, f"{name}_api_key"),
            max_attempts=getattr(settings, f"{name}_max_attempts"),
            backoff_seconds=getattr(settings, f"{name}_backoff_seconds"),
            rate_limit_multiplier=getattr(settings, f"{name}_rate_limit_multiplier"),
            user_agent=settings.user_agent,
        )

    def retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_attempts=self.max_attempts,
            base_delay_seconds=self.backoff_seconds,
            rate_limit_multiplier=self.rate_limit_multiplier,
        )


@runtime_checkable
class SnapshotSource(Protocol):
    @property
    def name(self) -> str: ...

    async def fetch_snapshot(self, identifier: ProviderIdentifier, currency: str = "usd") -> TokenSnapshot:
        ...


@runtime_checkable
class ChartSource(Protocol):
    @property
    def name(self) -> str: ...

    async def fetch_chart(self, identifier: ProviderIdentifier, days: int, currency: str = "usd") -> ChartSeries:
        ...


@runtime_checkable
class SearchSource(Protocol):
    @property
    def name(self) -> str: ...

    async def search(self, query: str) -> list[SearchResult]:
        ...


@runtime_checkable
class TrendingSource(Protocol):
    @property
    def name(self) -> str: ...

    async def list_trending(self) -> list[SearchResult]:
        ...


@runtime_checkable
class PriceSource(Protocol):
    @property
    def name(self) -> str: ...

    async def fetch_prices(self, identifiers: Sequence[ProviderIdentifier]) -> dict[str, TokenPrice]:
        ...


def classify_status(provider: str, status_code: int, subject: str | None, detail: str = "") -> ProviderError | None:
    if status_code < 400:
        return None
    message = f"{provider} responded {status_code}" + (f": {detail}" if detail else "")
    if status_code in RATE_LIMIT_STATUSES:
        return RateLimitedError(message, provider=provider, subject=subject, status_code=status_code)
    if status_code >= 500 or status_code == 408:
        return TransientError(message, provider=provider, subject=subject, status_code=status_code)
    return NotFoundError(message, provider=provider, subject=subject, status_code=status_code)


class HttpSourceAdapter:
    """Base class owning the httpx client, headers and error mapping for one upstream."""

    provider_name = "unknown"

    def __init__(
        self,
        config: AdapterConfig | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        translator: IdentifierTranslator | None = None,
        settings: Settings | None = None,
        now_fn: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._config = config or AdapterConfig.from_settings(self._settings, self.provider_name)
        self._translator = translator or IdentifierTranslator(settings=self._settings)
        self._now = now_fn or _utcnow
        headers = {"User-Agent": self._config.user_agent, "Accept": "application/json"}
        headers.update(self._auth_headers())
        headers.update(self._config.headers)
        self._headers = headers
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(self._config.timeout_seconds))
        self._logger = logging.getLogger(f"aggregator.providers.{self.provider_name}")

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def config(self) -> AdapterConfig:
        return self._config

    def retry_config(self) -> RetryConfig:
        return self._config.retry_config()

    def _auth_headers(self) -> dict[str, str]:
        return {}

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def _get_json(
        self,
        path: str,
        *,
        params: Mapping[str, Any] | None = None,
        subject: str | None = None,
        timeout: float | None = None,
    ) -> Any:
        url = f"{self._config.base_url}{path}"
        try:
            response = await self._client.get(
                url,
                params=params,
                headers=self._headers,
                timeout=timeout if timeout is not None else self._config.timeout_seconds,
            )
        except httpx.TimeoutException as exc:
            raise TransientError(f"{self.name} timed out: {exc}", provider=self.name, subject=subject) from exc
        except httpx.TransportError as exc:
            raise TransientError(
                f"{self.name} transport error: {type(exc).__name__}: {exc}", provider=self.name, subject=subject
            ) from exc

        error = classify_status(self.name, response.status_code, subject, response.reason_phrase)
        if error is not None:
            raise error
        try:
            return response.json()
        except ValueError as exc:
            raise TransientError(f"{self.name} returned a non-JSON body", provider=self.name, subject=subject) from exc

    def _parse(self, model: type[ModelT], payload: Any, *, subject: str | None = None) -> ModelT:
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise TransientError(
                f"{self.name} returned a malformed {model.__name__}: {exc.error_count()} error(s)",
                provider=self.name,
                subject=subject,
            ) from exc

    def _not_found(self, subject: str, detail: str = "empty result") -> NotFoundError:
        return NotFoundError(f"{self.name}: {detail} for {subject}", provider=self.name, subject=subject)


async def gather_required(*calls: Awaitable[Any]) -> list[Any]:
    """Run upstream requests concurrently; the first failure (in argument order) is raised."""

    results = await asyncio.gather(*calls, return_exceptions=True)
    for result in results:
        if isinstance(result, BaseException):
            raise result
    return list(results)


__all__ = [
    "AdapterConfig",
    "ChartSource",
    "HttpSourceAdapter",
    "Int",
    "LenientModel",
    "Num",
    "PriceSource",
    "SearchSource",
    "SnapshotSource",
    "Text",
    "TrendingSource",
    "classify_status",
    "gather_required",
]
