"""
Boundary surface consumed by route handlers.

``MarketDataService`` owns the per-capability candidate orderings, runs each
request through the fallback orchestrator and stamps the outcome with the
response assembler. Callers receive canonical records tagged with the
answering source, or one of the boundary errors in ``errors``.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Callable, Sequence

import httpx

from .assembler import AssembledResponse, ResponseAssembler
from .config import Settings, get_settings
from .errors import (
    AllSourcesExhaustedError,
    BoundaryError,
    ErrorKind,
    SourcesRateLimitedError,
    TokenNotFoundError,
)
from .identifiers import COINCAP, COINGECKO, COINPAPRIKA, CRYPTOCOMPARE, MESSARI, IdentifierTranslator
from .models import NO_SOURCE, ChartSeries, FallbackOutcome, SearchResult, TokenPrice, TokenSnapshot
from .orchestrator import Candidate, Capability, FallbackOrchestrator
from .providers import SourceSet
from .retry import Sleep
from .synthetic import SyntheticChartGenerator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(slots=True)
class PricingHealth:
    status: str
    active_source: str
    error: str | None
    timestamp: datetime


def _boundary_error(key: str, outcome: FallbackOutcome[Any]) -> BoundaryError:
    kinds = {failure.kind for failure in outcome.failures}
    if kinds and kinds == {ErrorKind.NOT_FOUND}:
        return TokenNotFoundError(f"Token '{key}' not found")
    if ErrorKind.RATE_LIMITED in kinds:
        return SourcesRateLimitedError(f"Market data sources are rate limited for '{key}'")
    return AllSourcesExhaustedError(f"Market data unavailable for '{key}'")


class MarketDataService:
    def __init__(
        self,
        settings: Settings | None = None,
        *,
        sources: SourceSet | None = None,
        translator: IdentifierTranslator | None = None,
        client: httpx.AsyncClient | None = None,
        synthesizer: SyntheticChartGenerator | None = None,
        assembler: ResponseAssembler | None = None,
        sleep: Sleep | None = None,
        now_fn: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._translator = translator or IdentifierTranslator(settings=self._settings)
        self._sources = sources or SourceSet.from_settings(
            self._settings, client=client, translator=self._translator
        )
        self._now = now_fn or _utcnow
        self._orchestrator = FallbackOrchestrator(
            self._translator,
            synthesizer=synthesizer or SyntheticChartGenerator(settings=self._settings, now_fn=now_fn),
            settings=self._settings,
            sleep=sleep,
        )
        self._assembler = assembler or ResponseAssembler(now_fn=self._now)
        self._logger = logging.getLogger("aggregator.service")

    @property
    def sources(self) -> SourceSet:
        return self._sources

    async def close(self) -> None:
        await self._sources.close()

    def _canonical(self, token_id: str) -> str:
        if not token_id or not token_id.strip():
            raise ValueError("token id must be a non-empty string")
        return self._translator.canonicalize(token_id)

    # candidate orderings

    def snapshot_candidates(self, currency: str) -> list[Candidate[TokenSnapshot]]:
        paprika, gecko = self._sources.coinpaprika, self._sources.coingecko
        return [
            Candidate(
                name=paprika.name,
                provider=COINPAPRIKA,
                call=lambda ident: paprika.fetch_snapshot(ident, currency),
                retry=paprika.retry_config(),
            ),
            Candidate(
                name=gecko.name,
                provider=COINGECKO,
                call=lambda ident: gecko.fetch_snapshot(ident, currency),
                retry=gecko.retry_config(),
            ),
            # Unmapped keys reach CoinPaprika verbatim; its ids look like "pepe-pepe".
            Candidate(
                name=f"{paprika.name}-search",
                provider=COINPAPRIKA,
                call=lambda ident: paprika.fetch_snapshot_by_search(ident, currency),
                retry=paprika.retry_config(),
            ),
        ]

    def chart_candidates(self, days: int, currency: str) -> list[Candidate[ChartSeries]]:
        gecko = self._sources.coingecko
        coincap = self._sources.coincap
        compare = self._sources.cryptocompare
        candidates: list[Candidate[ChartSeries]] = []
        if days == 1:
            candidates.append(
                Candidate(
                    name=f"{gecko.name}-sparkline",
                    provider=COINGECKO,
                    call=lambda ident: gecko.fetch_sparkline(ident, currency),
                    retry=gecko.retry_config(),
                )
            )
        candidates.append(
            Candidate(
                name=gecko.name,
                provider=COINGECKO,
                call=lambda ident: gecko.fetch_chart(ident, days, currency),
                retry=gecko.retry_config(),
            )
        )
        if currency.lower() == "usd":
            candidates.append(
                Candidate(
                    name=coincap.name,
                    provider=COINCAP,
                    call=lambda ident: coincap.fetch_chart(ident, days, currency),
                    retry=coincap.retry_config(),
                )
            )
        candidates.append(
            Candidate(
                name=compare.name,
                provider=CRYPTOCOMPARE,
                call=lambda ident: compare.fetch_chart(ident, days, currency),
                retry=compare.retry_config(),
            )
        )
        return candidates

    def search_candidates(self) -> list[Candidate[list[SearchResult]]]:
        return [
            Candidate(name=source.name, provider=source.name, call=source.search, retry=source.retry_config(), translate=False)
            for source in (self._sources.coinpaprika, self._sources.coingecko, self._sources.coincap)
        ]

    def trending_candidates(self) -> list[Candidate[list[SearchResult]]]:
        sources = (
            self._sources.coingecko,
            self._sources.coinpaprika,
            self._sources.cryptocompare,
            self._sources.coincap,
        )
        return [
            Candidate(
                name=source.name,
                provider=source.name,
                call=lambda _subject, source=source: source.list_trending(),
                retry=source.retry_config(),
                translate=False,
            )
            for source in sources
        ]

    def price_candidates(self) -> list[Candidate[dict[str, TokenPrice]]]:
        return [
            Candidate(name=source.name, provider=provider, call=source.fetch_prices, retry=source.retry_config())
            for provider, source in (
                (COINPAPRIKA, self._sources.coinpaprika),
                (MESSARI, self._sources.messari),
                (COINGECKO, self._sources.coingecko),
            )
        ]

    # operations

    async def get_token_snapshot(self, token_id: str, currency: str | None = None) -> AssembledResponse[TokenSnapshot]:
        key = self._canonical(token_id)
        currency = (currency or self._settings.default_currency).lower()
        outcome = await self._orchestrator.resolve(Capability.SNAPSHOT, key, self.snapshot_candidates(currency))
        if not outcome.succeeded:
            raise _boundary_error(key, outcome)
        return self._assembler.assemble(Capability.SNAPSHOT, outcome)

    async def get_token_snapshots(self, token_ids: Sequence[str]) -> list[AssembledResponse[TokenSnapshot]]:
        """Snapshots for several ids, resolved concurrently; ids that fail are left out."""

        results = await asyncio.gather(
            *(self.get_token_snapshot(token_id) for token_id in token_ids), return_exceptions=True
        )
        snapshots: list[AssembledResponse[TokenSnapshot]] = []
        for token_id, result in zip(token_ids, results):
            if isinstance(result, (BoundaryError, ValueError)):
                self._logger.info("Omitting %s from batch snapshot: %s", token_id, result)
                continue
            if isinstance(result, BaseException):
                raise result
            snapshots.append(result)
        return snapshots

    async def get_market_chart(
        self, token_id: str, days: int | None = None, currency: str | None = None
    ) -> AssembledResponse[ChartSeries]:
        key = self._canonical(token_id)
        days = self._settings.default_chart_days if days is None else days
        if days < 1:
            raise ValueError(f"days must be >= 1, got {days}")
        currency = (currency or self._settings.default_currency).lower()
        outcome = await self._orchestrator.resolve(
            Capability.CHART, key, self.chart_candidates(days, currency), days=days
        )
        return self._assembler.assemble(Capability.CHART, outcome)

    async def search_tokens(self, query: str) -> AssembledResponse[list[SearchResult]]:
        query = query.strip()
        if not query:
            raise ValueError("search query must be a non-empty string")
        outcome = await self._orchestrator.resolve(Capability.SEARCH, query, self.search_candidates())
        return self._assembler.assemble(Capability.SEARCH, self._empty_on_failure(outcome, []))

    async def get_trending_tokens(self) -> AssembledResponse[list[SearchResult]]:
        outcome = await self._orchestrator.resolve(Capability.TRENDING, "trending", self.trending_candidates())
        return self._assembler.assemble(Capability.TRENDING, self._empty_on_failure(outcome, []))

    async def get_token_prices(self, token_ids: Sequence[str]) -> AssembledResponse[dict[str, TokenPrice]]:
        keys = list(dict.fromkeys(self._canonical(token_id) for token_id in token_ids))
        if not keys:
            outcome: FallbackOutcome[dict[str, TokenPrice]] = FallbackOutcome(
                data={}, source_name=NO_SOURCE, succeeded=True
            )
        else:
            outcome = await self._orchestrator.resolve(Capability.PRICES, keys, self.price_candidates())
        return self._assembler.assemble(Capability.PRICES, self._empty_on_failure(outcome, {}))

    async def pricing_health(self) -> PricingHealth:
        response = await self.get_token_prices(self._settings.health_check_tokens)
        return PricingHealth(
            status="healthy" if response.succeeded else "degraded",
            active_source=response.source,
            error=response.error,
            timestamp=response.timestamp,
        )

    @staticmethod
    def _empty_on_failure(outcome: FallbackOutcome[Any], empty: Any) -> FallbackOutcome[Any]:
        if outcome.succeeded:
            return outcome
        return replace(outcome, data=empty)


__all__ = ["MarketDataService", "PricingHealth"]
