"""
CoinPaprika adapter.

Primary snapshot, search and batch-price source. Snapshots combine the coin
info and USD ticker endpoints fetched concurrently; the per-market listing is
optional and never fails the snapshot. Quotes are USD only, so other
currencies are reported as misses.
"""
from __future__ import annotations

from dataclasses import replace
from typing import Sequence

from pydantic import Field

from ..errors import ProviderError
from ..identifiers import COINPAPRIKA
from ..models import (
    CommunityStats,
    ExchangeListing,
    ProviderIdentifier,
    SearchResult,
    SocialLinks,
    TokenImage,
    TokenPrice,
    TokenSnapshot,
)
from .base import HttpSourceAdapter, Int, LenientModel, Num, Text, gather_required

LOGO_URL = "https://static.coinpaprika.com/coin/{id}/logo.png"


class PaprikaLinkStats(LenientModel):
    followers: Int = 0
    subscribers: Int = 0


class PaprikaExtendedLink(LenientModel):
    url: Text = ""
    type: Text = ""
    stats: PaprikaLinkStats | None = None


class PaprikaLinks(LenientModel):
    website: list[str] = Field(default_factory=list)
    reddit: list[str] = Field(default_factory=list)
    source_code: list[str] = Field(default_factory=list)


class PaprikaCoinInfo(LenientModel):
    id: Text = ""
    name: Text = ""
    symbol: Text = ""
    description: Text = ""
    logo: Text = ""
    links: PaprikaLinks | None = None
    links_extended: list[PaprikaExtendedLink] = Field(default_factory=list)

    def link(self, kind: str) -> PaprikaExtendedLink | None:
        return next((link for link in self.links_extended if link.type == kind), None)


class PaprikaUsdQuote(LenientModel):
    price: Num = 0.0
    volume_24h: Num = 0.0
    market_cap: Num = 0.0
    percent_change_24h: Num = 0.0
    percent_change_7d: Num = 0.0


class PaprikaQuotes(LenientModel):
    USD: PaprikaUsdQuote = Field(default_factory=PaprikaUsdQuote)


class PaprikaTicker(LenientModel):
    id: Text = ""
    name: Text = ""
    symbol: Text = ""
    rank: Int = 0
    circulating_supply: Num = 0.0
    total_supply: Num = 0.0
    max_supply: Num = 0.0
    last_updated: Text = ""
    quotes: PaprikaQuotes = Field(default_factory=PaprikaQuotes)

    @property
    def usd(self) -> PaprikaUsdQuote:
        return self.quotes.USD


class PaprikaMarket(LenientModel):
    exchange_name: Text = ""
    pair: Text = ""
    market_url: Text = ""
    trust_score: Text = ""
    quotes: PaprikaQuotes = Field(default_factory=PaprikaQuotes)


class PaprikaCurrencyHit(LenientModel):
    id: Text = ""
    name: Text = ""
    symbol: Text = ""
    rank: Int = 0


class PaprikaSearchResponse(LenientModel):
    currencies: list[PaprikaCurrencyHit] = Field(default_factory=list)


class CoinPaprikaSource(HttpSourceAdapter):
    provider_name = COINPAPRIKA

    def _auth_headers(self) -> dict[str, str]:
        if self._config.api_key:
            return {"Authorization": self._config.api_key}
        return {}

    async def fetch_snapshot(self, identifier: ProviderIdentifier, currency: str = "usd") -> TokenSnapshot:
        native = identifier.native_id
        if currency.lower() != "usd":
            # Tickers are requested with USD quotes only.
            raise self._not_found(native, f"no {currency} quote")
        info_payload, ticker_payload = await gather_required(
            self._get_json(f"/coins/{native}", subject=native),
            self._get_json(f"/tickers/{native}", params={"quotes": "USD"}, subject=native),
        )
        info = self._parse(PaprikaCoinInfo, info_payload, subject=native)
        ticker = self._parse(PaprikaTicker, ticker_payload, subject=native)
        if not ticker.id and not info.id:
            raise self._not_found(native)

        exchanges: list[ExchangeListing] = []
        if self._settings.coinpaprika_include_markets:
            exchanges = await self._fetch_markets(native)

        return self._normalize_snapshot(identifier, info, ticker, exchanges)

    async def fetch_snapshot_by_search(self, identifier: ProviderIdentifier, currency: str = "usd") -> TokenSnapshot:
        """Snapshot for the top search hit, for coins whose CoinPaprika id is not in the tables."""

        key = identifier.canonical_key
        if currency.lower() != "usd":
            raise self._not_found(key, f"no {currency} quote")
        hits = await self._search_hits(key)
        if not hits:
            raise self._not_found(key, "no search hits")
        top = hits[0].id
        if top == identifier.native_id:
            raise self._not_found(key, f"search resolved to {top}, already tried")
        self._logger.info("CoinPaprika search resolved %s to %s", key, top)
        return await self.fetch_snapshot(replace(identifier, native_id=top), currency)

    async def _fetch_markets(self, native: str) -> list[ExchangeListing]:
        try:
            payload = await self._get_json(
                f"/tickers/{native}/markets",
                params={"quotes": "USD"},
                subject=native,
                timeout=self._settings.coinpaprika_markets_timeout_seconds,
            )
            markets = [self._parse(PaprikaMarket, row, subject=native) for row in payload or []]
        except (ProviderError, TypeError) as exc:
            self._logger.warning("CoinPaprika markets unavailable for %s: %s", native, exc)
            return []
        return [
            ExchangeListing(
                name=market.exchange_name or "Unknown",
                pair=market.pair,
                price=market.quotes.USD.price,
                volume=market.quotes.USD.volume_24h,
                trust_score=market.trust_score or "unknown",
                trade_url=market.market_url,
            )
            for market in markets[: self._settings.snapshot_exchange_limit]
        ]

    def _normalize_snapshot(
        self,
        identifier: ProviderIdentifier,
        info: PaprikaCoinInfo,
        ticker: PaprikaTicker,
        exchanges: list[ExchangeListing],
    ) -> TokenSnapshot:
        native = identifier.native_id
        name = ticker.name or info.name or "Unknown Token"
        logo = info.logo or LOGO_URL.format(id=native)
        twitter = info.link("twitter")
        reddit = info.link("reddit")
        links = info.links or PaprikaLinks()
        return TokenSnapshot(
            id=identifier.canonical_key,
            symbol=(ticker.symbol or info.symbol).upper(),
            name=name,
            source=self.name,
            current_price=ticker.usd.price,
            price_change_24h=ticker.usd.percent_change_24h,
            price_change_7d=ticker.usd.percent_change_7d,
            volume_24h=ticker.usd.volume_24h,
            market_cap=ticker.usd.market_cap,
            market_cap_rank=ticker.rank,
            circulating_supply=ticker.circulating_supply,
            total_supply=ticker.total_supply,
            max_supply=ticker.max_supply,
            description=info.description or f"{info.name or name} is a cryptocurrency token.",
            image=TokenImage(thumb=logo, small=logo, large=logo),
            exchanges=exchanges,
            social_links=SocialLinks(
                homepage=list(links.website),
                twitter=twitter.url.replace("https://twitter.com/", "") if twitter else "",
                reddit=reddit.url if reddit else "",
                github=[link.url for link in info.links_extended if link.type == "source_code"],
            ),
            community_stats=CommunityStats(
                twitter_followers=twitter.stats.followers if twitter and twitter.stats else 0,
                reddit_subscribers=reddit.stats.subscribers if reddit and reddit.stats else 0,
            ),
            fetched_at=self._now(),
        )

    async def _search_hits(self, query: str) -> list[PaprikaCurrencyHit]:
        payload = await self._get_json(
            "/search",
            params={"q": query, "c": "currencies", "limit": self._settings.search_limit},
            subject=query,
        )
        return [hit for hit in self._parse(PaprikaSearchResponse, payload, subject=query).currencies if hit.id]

    async def search(self, query: str) -> list[SearchResult]:
        results = []
        for hit in await self._search_hits(query):
            logo = LOGO_URL.format(id=hit.id)
            results.append(
                SearchResult(
                    id=self._translator.to_canonical(hit.id, self.name),
                    name=hit.name,
                    symbol=hit.symbol.upper(),
                    source=self.name,
                    market_cap_rank=hit.rank,
                    thumb=logo,
                    large=logo,
                )
            )
        return results

    async def _fetch_tickers(self, subject: str) -> list[PaprikaTicker]:
        payload = await self._get_json("/tickers", params={"quotes": "USD"}, subject=subject)
        if not isinstance(payload, list):
            raise self._not_found(subject, "unexpected tickers body")
        return [self._parse(PaprikaTicker, row, subject=subject) for row in payload]

    async def list_trending(self) -> list[SearchResult]:
        tickers = await self._fetch_tickers("trending")
        ranked = sorted(
            (ticker for ticker in tickers if ticker.usd.market_cap > 0),
            key=lambda ticker: ticker.usd.market_cap,
            reverse=True,
        )
        results = []
        for ticker in ranked[: self._settings.trending_limit]:
            logo = LOGO_URL.format(id=ticker.id)
            results.append(
                SearchResult(
                    id=self._translator.to_canonical(ticker.id, self.name),
                    name=ticker.name,
                    symbol=ticker.symbol.upper(),
                    source=self.name,
                    market_cap_rank=ticker.rank,
                    thumb=logo,
                    large=logo,
                )
            )
        return results

    async def fetch_prices(self, identifiers: Sequence[ProviderIdentifier]) -> dict[str, TokenPrice]:
        tickers = await self._fetch_tickers(",".join(item.native_id for item in identifiers))
        by_id = {ticker.id: ticker for ticker in tickers}
        now = self._now()
        prices: dict[str, TokenPrice] = {}
        for identifier in identifiers:
            ticker = by_id.get(identifier.native_id)
            if ticker is None:
                self._logger.debug("CoinPaprika has no ticker for %s (%s)", identifier.canonical_key, identifier.native_id)
                continue
            prices[identifier.canonical_key] = TokenPrice(
                id=identifier.canonical_key,
                symbol=ticker.symbol.upper(),
                name=ticker.name,
                source=self.name,
                price=ticker.usd.price,
                change_24h=ticker.usd.percent_change_24h,
                volume_24h=ticker.usd.volume_24h,
                market_cap=ticker.usd.market_cap,
                last_updated=now,
            )
        return prices


__all__ = ["CoinPaprikaSource", "LOGO_URL", "PaprikaCoinInfo", "PaprikaTicker"]
