"""
CoinGecko adapter.

Canonical keys are CoinGecko ids, so no translation loss happens here. The
free tier rate-limits aggressively; the retry config built from settings
uses a longer base delay and a higher rate-limit multiplier than the others.
"""
from __future__ import annotations

from datetime import timedelta, timezone
from typing import Sequence

from pydantic import Field, RootModel

from ..charts import HOURLY_POINTS, ChartPoint, build_series, from_millis, is_hourly
from ..identifiers import COINGECKO
from ..models import (
    AllTimeHigh,
    ChartSeries,
    CommunityStats,
    ExchangeListing,
    ProviderIdentifier,
    SearchResult,
    SocialLinks,
    TokenImage,
    TokenPrice,
    TokenSnapshot,
)
from .base import HttpSourceAdapter, Int, LenientModel, Num, Text

SPOT_CATEGORY = "spot"


class GeckoMarket(LenientModel):
    name: Text = ""
    category: Text = ""


class GeckoTicker(LenientModel):
    base: Text = ""
    target: Text = ""
    market: GeckoMarket = Field(default_factory=GeckoMarket)
    converted_last: dict[str, Num] = Field(default_factory=dict)
    converted_volume: dict[str, Num] = Field(default_factory=dict)
    trust_score: Text = ""
    trade_url: Text = ""


class GeckoSparkline(LenientModel):
    price: list[Num] = Field(default_factory=list)


class GeckoMarketData(LenientModel):
    current_price: dict[str, Num] = Field(default_factory=dict)
    market_cap: dict[str, Num] = Field(default_factory=dict)
    total_volume: dict[str, Num] = Field(default_factory=dict)
    price_change_percentage_24h: Num = 0.0
    price_change_percentage_7d: Num = 0.0
    market_cap_rank: Int = 0
    circulating_supply: Num = 0.0
    total_supply: Num = 0.0
    max_supply: Num = 0.0
    ath: dict[str, Num] = Field(default_factory=dict)
    ath_date: dict[str, Text] = Field(default_factory=dict)
    ath_change_percentage: dict[str, Num] = Field(default_factory=dict)
    sparkline_7d: GeckoSparkline | None = None


class GeckoRepos(LenientModel):
    github: list[str] = Field(default_factory=list)


class GeckoLinks(LenientModel):
    homepage: list[str] = Field(default_factory=list)
    twitter_screen_name: Text = ""
    telegram_channel_identifier: Text = ""
    subreddit_url: Text = ""
    repos_url: GeckoRepos = Field(default_factory=GeckoRepos)


class GeckoCommunity(LenientModel):
    twitter_followers: Int = 0
    reddit_subscribers: Int = 0
    telegram_channel_user_count: Int = 0


class GeckoImage(LenientModel):
    thumb: Text = ""
    small: Text = ""
    large: Text = ""


class GeckoCoin(LenientModel):
    id: Text = ""
    symbol: Text = ""
    name: Text = ""
    market_cap_rank: Int = 0
    description: dict[str, Text] = Field(default_factory=dict)
    market_data: GeckoMarketData | None = None
    platforms: dict[str, Text] = Field(default_factory=dict)
    tickers: list[GeckoTicker] = Field(default_factory=list)
    links: GeckoLinks = Field(default_factory=GeckoLinks)
    image: GeckoImage = Field(default_factory=GeckoImage)
    community_data: GeckoCommunity | None = None


class GeckoMarketChart(LenientModel):
    prices: list[list[float]] = Field(default_factory=list)
    total_volumes: list[list[float]] = Field(default_factory=list)
    market_caps: list[list[float]] = Field(default_factory=list)


class GeckoSearchCoin(LenientModel):
    id: Text = ""
    name: Text = ""
    symbol: Text = ""
    market_cap_rank: Int = 0
    thumb: Text = ""
    large: Text = ""


class GeckoSearchResponse(LenientModel):
    coins: list[GeckoSearchCoin] = Field(default_factory=list)


class GeckoTrendingEntry(LenientModel):
    item: GeckoSearchCoin


class GeckoTrendingResponse(LenientModel):
    coins: list[GeckoTrendingEntry] = Field(default_factory=list)


class GeckoSimplePrices(RootModel[dict[str, dict[str, Num]]]):
    pass


def _column(rows: list[list[float]], index: int) -> float:
    if index < len(rows) and len(rows[index]) > 1:
        return float(rows[index][1])
    return 0.0


class CoinGeckoSource(HttpSourceAdapter):
    provider_name = COINGECKO

    def _auth_headers(self) -> dict[str, str]:
        if self._config.api_key:
            return {"x-cg-demo-api-key": self._config.api_key}
        return {}

    async def _fetch_coin(self, native: str, *, full: bool) -> GeckoCoin:
        params = {
            "localization": "false",
            "tickers": "true" if full else "false",
            "market_data": "true",
            "community_data": "true" if full else "false",
            "developer_data": "false",
            "sparkline": "false" if full else "true",
        }
        payload = await self._get_json(f"/coins/{native}", params=params, subject=native)
        coin = self._parse(GeckoCoin, payload, subject=native)
        if not coin.id:
            raise self._not_found(native)
        return coin

    async def fetch_snapshot(self, identifier: ProviderIdentifier, currency: str = "usd") -> TokenSnapshot:
        coin = await self._fetch_coin(identifier.native_id, full=True)
        return self._normalize_snapshot(identifier, coin, currency)

    def _normalize_snapshot(self, identifier: ProviderIdentifier, coin: GeckoCoin, currency: str) -> TokenSnapshot:
        market = coin.market_data or GeckoMarketData()
        currency = currency.lower()
        exchanges = [
            ExchangeListing(
                name=ticker.market.name,
                pair=f"{ticker.base}/{ticker.target}",
                price=ticker.converted_last.get(currency, ticker.converted_last.get("usd", 0.0)),
                volume=ticker.converted_volume.get(currency, ticker.converted_volume.get("usd", 0.0)),
                trust_score=ticker.trust_score or "unknown",
                trade_url=ticker.trade_url,
            )
            for ticker in coin.tickers
            if ticker.market.category == SPOT_CATEGORY
        ][: self._settings.snapshot_exchange_limit]

        all_time_high = None
        if market.ath.get(currency):
            all_time_high = AllTimeHigh(
                price=market.ath[currency],
                date=market.ath_date.get(currency, ""),
                change_percentage=market.ath_change_percentage.get(currency, 0.0),
            )

        community = coin.community_data or GeckoCommunity()
        return TokenSnapshot(
            id=coin.id or identifier.canonical_key,
            symbol=coin.symbol.upper(),
            name=coin.name,
            source=self.name,
            currency=currency,
            current_price=market.current_price.get(currency, 0.0),
            price_change_24h=market.price_change_percentage_24h,
            price_change_7d=market.price_change_percentage_7d,
            volume_24h=market.total_volume.get(currency, 0.0),
            market_cap=market.market_cap.get(currency, 0.0),
            market_cap_rank=coin.market_cap_rank or market.market_cap_rank,
            circulating_supply=market.circulating_supply,
            total_supply=market.total_supply,
            max_supply=market.max_supply,
            description=coin.description.get("en", ""),
            image=TokenImage(thumb=coin.image.thumb, small=coin.image.small, large=coin.image.large),
            all_time_high=all_time_high,
            exchanges=exchanges,
            social_links=SocialLinks(
                homepage=[url for url in coin.links.homepage if url],
                twitter=coin.links.twitter_screen_name,
                telegram=coin.links.telegram_channel_identifier,
                reddit=coin.links.subreddit_url,
                github=list(coin.links.repos_url.github),
            ),
            community_stats=CommunityStats(
                twitter_followers=community.twitter_followers,
                reddit_subscribers=community.reddit_subscribers,
                telegram_members=community.telegram_channel_user_count,
            ),
            platforms={chain: address for chain, address in coin.platforms.items() if chain},
            fetched_at=self._now(),
        )

    async def fetch_sparkline(self, identifier: ProviderIdentifier, currency: str = "usd") -> ChartSeries:
        """Last 24 hourly points of the free 7-day sparkline; a single "Current" point when absent."""

        if currency.lower() != "usd":
            # The sparkline is only published in USD.
            raise self._not_found(identifier.native_id, f"no {currency} sparkline")
        coin = await self._fetch_coin(identifier.native_id, full=False)
        market = coin.market_data or GeckoMarketData()
        volume = market.total_volume.get("usd", 0.0)
        market_cap = market.market_cap.get("usd", 0.0)
        prices = market.sparkline_7d.price if market.sparkline_7d else []
        if not prices:
            return ChartSeries(
                labels=["Current"],
                prices=[market.current_price.get("usd", 0.0)],
                volumes=[volume],
                market_caps=[market_cap],
            )

        recent = prices[-HOURLY_POINTS:]
        anchor = self._now().astimezone(timezone.utc).replace(minute=0, second=0, microsecond=0)
        points = [
            ChartPoint(
                timestamp=anchor - timedelta(hours=len(recent) - 1 - index),
                price=price,
                volume=volume,
                market_cap=market_cap,
            )
            for index, price in enumerate(recent)
        ]
        return build_series(points, hourly=True)

    async def fetch_chart(self, identifier: ProviderIdentifier, days: int, currency: str = "usd") -> ChartSeries:
        native = identifier.native_id
        hourly = is_hourly(days)
        params: dict[str, object] = {
            "vs_currency": currency,
            "days": days,
            "interval": "hourly" if hourly else "daily",
        }
        if self._config.api_key:
            params["x_cg_demo_api_key"] = self._config.api_key
        payload = await self._get_json(f"/coins/{native}/market_chart", params=params, subject=native)
        chart = self._parse(GeckoMarketChart, payload, subject=native)
        points = [
            ChartPoint(
                timestamp=from_millis(row[0]),
                price=float(row[1]),
                volume=_column(chart.total_volumes, index),
                market_cap=_column(chart.market_caps, index),
            )
            for index, row in enumerate(chart.prices)
            if len(row) > 1
        ]
        return build_series(points, hourly=hourly)

    def _to_result(self, coin: GeckoSearchCoin) -> SearchResult:
        return SearchResult(
            id=coin.id,
            name=coin.name,
            symbol=coin.symbol.upper(),
            source=self.name,
            market_cap_rank=coin.market_cap_rank,
            thumb=coin.thumb,
            large=coin.large or coin.thumb,
        )

    async def search(self, query: str) -> list[SearchResult]:
        payload = await self._get_json("/search", params={"query": query}, subject=query)
        response = self._parse(GeckoSearchResponse, payload, subject=query)
        return [self._to_result(coin) for coin in response.coins[: self._settings.search_limit]]

    async def list_trending(self) -> list[SearchResult]:
        payload = await self._get_json("/search/trending", subject="trending")
        response = self._parse(GeckoTrendingResponse, payload, subject="trending")
        return [self._to_result(entry.item) for entry in response.coins[: self._settings.trending_limit]]

    async def fetch_prices(self, identifiers: Sequence[ProviderIdentifier]) -> dict[str, TokenPrice]:
        by_native = {item.native_id: item for item in identifiers}
        subject = ",".join(by_native)
        payload = await self._get_json(
            "/simple/price",
            params={
                "ids": subject,
                "vs_currencies": "usd",
                "include_24hr_change": "true",
                "include_24hr_vol": "true",
                "include_market_cap": "true",
            },
            subject=subject,
        )
        quotes = self._parse(GeckoSimplePrices, payload, subject=subject).root
        now = self._now()
        prices: dict[str, TokenPrice] = {}
        for native, quote in quotes.items():
            identifier = by_native.get(native)
            key = identifier.canonical_key if identifier else native
            prices[key] = TokenPrice(
                id=key,
                symbol=key.upper(),
                name=key,
                source=self.name,
                price=quote.get("usd", 0.0),
                change_24h=quote.get("usd_24h_change", 0.0),
                volume_24h=quote.get("usd_24h_vol", 0.0),
                market_cap=quote.get("usd_market_cap", 0.0),
                last_updated=now,
            )
        return prices


__all__ = ["CoinGeckoSource", "GeckoCoin", "GeckoMarketChart"]
