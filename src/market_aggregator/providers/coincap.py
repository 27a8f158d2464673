from __future__ import annotations

from datetime import timedelta

from pydantic import Field

from ..charts import ChartPoint, build_series, from_millis, is_hourly
from ..identifiers import COINCAP
from ..models import ChartSeries, ProviderIdentifier, SearchResult
from .base import HttpSourceAdapter, Int, LenientModel, Num, Text


class CoinCapAsset(LenientModel):
    id: Text = ""
    rank: Int = 0
    symbol: Text = ""
    name: Text = ""
    priceUsd: Num = 0.0
    marketCapUsd: Num = 0.0
    volumeUsd24Hr: Num = 0.0


class CoinCapAssets(LenientModel):
    data: list[CoinCapAsset] = Field(default_factory=list)


class CoinCapHistoryPoint(LenientModel):
    priceUsd: Num = 0.0
    time: int = 0


class CoinCapHistory(LenientModel):
    data: list[CoinCapHistoryPoint] = Field(default_factory=list)


class CoinCapSource(HttpSourceAdapter):
    """CoinCap v2: USD-only price history, asset search and top assets by rank."""

    provider_name = COINCAP

    def _auth_headers(self) -> dict[str, str]:
        if self._config.api_key:
            return {"Authorization": f"Bearer {self._config.api_key}"}
        return {}

    async def fetch_chart(self, identifier: ProviderIdentifier, days: int, currency: str = "usd") -> ChartSeries:
        native = identifier.native_id
        if currency.lower() != "usd":
            raise self._not_found(native, f"no {currency} history")
        hourly = is_hourly(days)
        end = self._now()
        start = end - timedelta(days=days)
        payload = await self._get_json(
            f"/assets/{native}/history",
            params={
                "interval": "h1" if hourly else "d1",
                "start": int(start.timestamp() * 1000),
                "end": int(end.timestamp() * 1000),
            },
            subject=native,
        )
        history = self._parse(CoinCapHistory, payload, subject=native)
        # History rows carry price only; volume and market cap stay zero.
        points = [ChartPoint(timestamp=from_millis(row.time), price=row.priceUsd) for row in history.data]
        return build_series(points, hourly=hourly)

    def _to_result(self, asset: CoinCapAsset) -> SearchResult:
        return SearchResult(
            id=self._translator.to_canonical(asset.id, self.name),
            name=asset.name,
            symbol=asset.symbol.upper(),
            source=self.name,
            market_cap_rank=asset.rank,
        )

    async def search(self, query: str) -> list[SearchResult]:
        payload = await self._get_json(
            "/assets", params={"search": query, "limit": self._settings.search_limit}, subject=query
        )
        assets = self._parse(CoinCapAssets, payload, subject=query)
        return [self._to_result(asset) for asset in assets.data]

    async def list_trending(self) -> list[SearchResult]:
        payload = await self._get_json("/assets", params={"limit": self._settings.trending_limit}, subject="trending")
        assets = self._parse(CoinCapAssets, payload, subject="trending")
        return [self._to_result(asset) for asset in assets.data]


__all__ = ["CoinCapSource"]
