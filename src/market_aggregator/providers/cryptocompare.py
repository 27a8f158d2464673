from __future__ import annotations

from pydantic import Field

from ..charts import HOURLY_POINTS, ChartPoint, build_series, from_seconds, is_hourly
from ..identifiers import CRYPTOCOMPARE
from ..models import ChartSeries, ProviderIdentifier, SearchResult
from .base import HttpSourceAdapter, LenientModel, Num, Text

# Upper bound on ``limit`` for the histoday endpoint.
MAX_HISTORY_LIMIT = 2000


class CompareCandle(LenientModel):
    time: int = 0
    close: Num = 0.0
    volumeto: Num = 0.0


class CompareCandles(LenientModel):
    Data: list[CompareCandle] = Field(default_factory=list)


class CompareHistory(LenientModel):
    Response: Text = ""
    Message: Text = ""
    Data: CompareCandles = Field(default_factory=CompareCandles)


class CompareCoinInfo(LenientModel):
    Name: Text = ""
    FullName: Text = ""
    ImageUrl: Text = ""


class CompareTopEntry(LenientModel):
    CoinInfo: CompareCoinInfo = Field(default_factory=CompareCoinInfo)


class CompareTopList(LenientModel):
    Data: list[CompareTopEntry] = Field(default_factory=list)


class CryptoCompareSource(HttpSourceAdapter):
    """CryptoCompare min-api: symbol-keyed hourly/daily candles and the market-cap top list."""

    provider_name = CRYPTOCOMPARE

    def _auth_headers(self) -> dict[str, str]:
        if self._config.api_key:
            return {"Authorization": f"Apikey {self._config.api_key}"}
        return {}

    async def fetch_chart(self, identifier: ProviderIdentifier, days: int, currency: str = "usd") -> ChartSeries:
        symbol = identifier.native_id
        hourly = is_hourly(days)
        path = "/v2/histohour" if hourly else "/v2/histoday"
        # The API returns limit + 1 candles.
        limit = (HOURLY_POINTS if hourly else min(days, MAX_HISTORY_LIMIT)) - 1
        payload = await self._get_json(
            path,
            params={"fsym": symbol, "tsym": currency.upper(), "limit": limit},
            subject=symbol,
        )
        history = self._parse(CompareHistory, payload, subject=symbol)
        if history.Response == "Error":
            # Unknown symbols come back as HTTP 200 with an error envelope.
            raise self._not_found(symbol, history.Message or "error response")
        points = [
            ChartPoint(timestamp=from_seconds(candle.time), price=candle.close, volume=candle.volumeto)
            for candle in history.Data.Data
        ]
        return build_series(points, hourly=hourly)

    async def list_trending(self) -> list[SearchResult]:
        payload = await self._get_json(
            "/top/mktcapfull",
            params={"limit": self._settings.trending_limit, "tsym": "USD"},
            subject="trending",
        )
        top = self._parse(CompareTopList, payload, subject="trending")
        results = []
        for rank, entry in enumerate(top.Data, start=1):
            info = entry.CoinInfo
            if not info.Name:
                continue
            image = f"https://www.cryptocompare.com{info.ImageUrl}" if info.ImageUrl else ""
            results.append(
                SearchResult(
                    id=self._translator.to_canonical(info.Name, self.name),
                    name=info.FullName or info.Name,
                    symbol=info.Name.upper(),
                    source=self.name,
                    market_cap_rank=rank,
                    thumb=image,
                    large=image,
                )
            )
        return results


__all__ = ["CryptoCompareSource", "MAX_HISTORY_LIMIT"]
