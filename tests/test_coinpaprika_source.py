from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import httpx
import pytest

from market_aggregator.errors import NotFoundError, TransientError
from market_aggregator.identifiers import COINPAPRIKA, IdentifierTranslator
from market_aggregator.providers import CoinPaprikaSource

from utils.mock_upstream import PAPRIKA, MockUpstream, make_settings

NOW = datetime(2025, 1, 1, tzinfo=timezone.utc)

COIN_INFO: dict[str, Any] = {
    "id": "btc-bitcoin",
    "name": "Bitcoin",
    "symbol": "BTC",
    "description": "Peer to peer cash.",
    "logo": None,
    "links": {"website": ["https://bitcoin.org"]},
    "links_extended": [
        {"url": "https://twitter.com/bitcoin", "type": "twitter", "stats": {"followers": 1200}},
        {"url": "https://reddit.com/r/bitcoin", "type": "reddit", "stats": {"subscribers": 900}},
        {"url": "https://github.com/bitcoin/bitcoin", "type": "source_code"},
    ],
}

TICKER: dict[str, Any] = {
    "id": "btc-bitcoin",
    "name": "Bitcoin",
    "symbol": "btc",
    "rank": 1,
    "circulating_supply": 19_600_000,
    "total_supply": 19_600_000,
    "max_supply": 21_000_000,
    "quotes": {
        "USD": {
            "price": 65000.5,
            "volume_24h": 3.2e10,
            "market_cap": 1.27e12,
            "percent_change_24h": -1.5,
            "percent_change_7d": None,
        }
    },
}


def _source(upstream: MockUpstream, **settings: Any) -> CoinPaprikaSource:
    config = make_settings(**settings)
    return CoinPaprikaSource(
        client=upstream.client(),
        settings=config,
        translator=IdentifierTranslator(settings=config),
        now_fn=lambda: NOW,
    )


def _identify(key: str) -> Any:
    return IdentifierTranslator(settings=make_settings()).identify(key, COINPAPRIKA)


@pytest.mark.asyncio
async def test_snapshot_merges_info_and_ticker() -> None:
    upstream = (
        MockUpstream()
        .json(PAPRIKA, "/v1/coins/btc-bitcoin", COIN_INFO)
        .json(PAPRIKA, "/v1/tickers/btc-bitcoin", TICKER)
    )

    snapshot = await _source(upstream).fetch_snapshot(_identify("bitcoin"))

    assert snapshot.id == "bitcoin"
    assert snapshot.source == "coinpaprika"
    assert snapshot.symbol == "BTC"
    assert snapshot.current_price == 65000.5
    assert snapshot.price_change_7d == 0.0
    assert snapshot.market_cap_rank == 1
    assert snapshot.max_supply == 21_000_000
    assert snapshot.image.large == "https://static.coinpaprika.com/coin/btc-bitcoin/logo.png"
    assert snapshot.social_links.twitter == "bitcoin"
    assert snapshot.social_links.github == ["https://github.com/bitcoin/bitcoin"]
    assert snapshot.community_stats.twitter_followers == 1200
    assert snapshot.community_stats.reddit_subscribers == 900
    assert snapshot.all_time_high is None
    assert snapshot.exchanges == []
    assert snapshot.fetched_at == NOW
    assert upstream.calls(PAPRIKA, "/v1/tickers/btc-bitcoin")[0].url.params["quotes"] == "USD"
    assert upstream.calls(PAPRIKA, "/v1/tickers/btc-bitcoin/markets") == []


@pytest.mark.asyncio
async def test_snapshot_tolerates_sparse_payloads() -> None:
    upstream = (
        MockUpstream()
        .json(PAPRIKA, "/v1/coins/tiny-tiny", {"id": "tiny-tiny", "name": "Tiny"})
        .json(PAPRIKA, "/v1/tickers/tiny-tiny", {"id": "tiny-tiny", "quotes": {"USD": {"price": 0.004}}})
    )

    snapshot = await _source(upstream).fetch_snapshot(_identify("tiny-tiny"))

    assert snapshot.current_price == 0.004
    assert snapshot.volume_24h == 0.0
    assert snapshot.description == "Tiny is a cryptocurrency token."
    assert snapshot.social_links.twitter == ""


@pytest.mark.asyncio
async def test_snapshot_fails_when_either_request_fails() -> None:
    upstream = MockUpstream().json(PAPRIKA, "/v1/coins/btc-bitcoin", COIN_INFO).status(
        PAPRIKA, "/v1/tickers/btc-bitcoin", 502
    )

    with pytest.raises(TransientError):
        await _source(upstream).fetch_snapshot(_identify("bitcoin"))


@pytest.mark.asyncio
async def test_unknown_token_is_not_found() -> None:
    with pytest.raises(NotFoundError):
        await _source(MockUpstream()).fetch_snapshot(_identify("does-not-exist"))


@pytest.mark.asyncio
async def test_markets_listing_is_optional_and_never_fatal() -> None:
    markets = [
        {
            "exchange_name": "Kraken",
            "pair": "BTC/USD",
            "market_url": "https://kraken.com",
            "trust_score": "high",
            "quotes": {"USD": {"price": 65001, "volume_24h": 1e9}},
        }
    ]
    upstream = (
        MockUpstream()
        .json(PAPRIKA, "/v1/coins/btc-bitcoin", COIN_INFO)
        .json(PAPRIKA, "/v1/tickers/btc-bitcoin", TICKER)
        .json(PAPRIKA, "/v1/tickers/btc-bitcoin/markets", markets)
    )
    snapshot = await _source(upstream, coinpaprika_include_markets=True).fetch_snapshot(_identify("bitcoin"))

    assert [(listing.name, listing.pair, listing.trust_score) for listing in snapshot.exchanges] == [
        ("Kraken", "BTC/USD", "high")
    ]

    failing = (
        MockUpstream()
        .json(PAPRIKA, "/v1/coins/btc-bitcoin", COIN_INFO)
        .json(PAPRIKA, "/v1/tickers/btc-bitcoin", TICKER)
        .add(PAPRIKA, "/v1/tickers/btc-bitcoin/markets", httpx.ReadTimeout("slow"))
    )
    snapshot = await _source(failing, coinpaprika_include_markets=True).fetch_snapshot(_identify("bitcoin"))

    assert snapshot.exchanges == []
    assert snapshot.current_price == 65000.5


@pytest.mark.asyncio
async def test_search_returns_canonical_ids_in_provider_order() -> None:
    payload = {
        "currencies": [
            {"id": "btc-bitcoin", "name": "Bitcoin", "symbol": "BTC", "rank": 1},
            {"id": "bcd-bitcoin-diamond", "name": "Bitcoin Diamond", "symbol": "bcd", "rank": 640},
        ]
    }
    upstream = MockUpstream().json(PAPRIKA, "/v1/search", payload)

    results = await _source(upstream).search("bitcoin")

    assert [(result.id, result.symbol, result.market_cap_rank) for result in results] == [
        ("bitcoin", "BTC", 1),
        ("bitcoin-diamond", "BCD", 640),
    ]
    assert results[0].thumb == "https://static.coinpaprika.com/coin/btc-bitcoin/logo.png"
    params = upstream.requests[0].url.params
    assert (params["q"], params["c"], params["limit"]) == ("bitcoin", "currencies", "20")


@pytest.mark.asyncio
async def test_search_without_matches_is_an_empty_list() -> None:
    upstream = MockUpstream().json(PAPRIKA, "/v1/search", {"currencies": []})

    assert await _source(upstream).search("zzzz") == []


def _ticker(native: str, symbol: str, price: float, market_cap: float) -> dict[str, Any]:
    return {
        "id": native,
        "name": native.split("-", 1)[1].title(),
        "symbol": symbol,
        "rank": 0,
        "quotes": {"USD": {"price": price, "market_cap": market_cap, "percent_change_24h": 2.0}},
    }


@pytest.mark.asyncio
async def test_trending_is_top_market_cap() -> None:
    tickers = [
        _ticker("eth-ethereum", "ETH", 3000, 3.6e11),
        _ticker("dead-dead", "DEAD", 0.1, 0),
        _ticker("btc-bitcoin", "BTC", 65000, 1.27e12),
    ]
    upstream = MockUpstream().json(PAPRIKA, "/v1/tickers", tickers)

    results = await _source(upstream, trending_limit=5).list_trending()

    assert [result.id for result in results] == ["bitcoin", "ethereum"]


@pytest.mark.asyncio
async def test_batch_prices_come_from_one_tickers_call() -> None:
    tickers = [_ticker("btc-bitcoin", "BTC", 65000, 1.27e12), _ticker("eth-ethereum", "ETH", 3000, 3.6e11)]
    upstream = MockUpstream().json(PAPRIKA, "/v1/tickers", tickers)
    translator = IdentifierTranslator(settings=make_settings())
    identifiers = [translator.identify(key, COINPAPRIKA) for key in ("bitcoin", "ethereum", "unlisted")]

    prices = await _source(upstream).fetch_prices(identifiers)

    assert set(prices) == {"bitcoin", "ethereum"}
    assert prices["ethereum"].price == 3000
    assert prices["ethereum"].change_24h == 2.0
    assert prices["bitcoin"].last_updated == NOW
    assert len(upstream.requests) == 1


@pytest.mark.asyncio
async def test_snapshot_outside_usd_is_a_miss() -> None:
    upstream = MockUpstream()

    with pytest.raises(NotFoundError):
        await _source(upstream).fetch_snapshot(_identify("bitcoin"), "eur")
    assert upstream.requests == []


@pytest.mark.asyncio
async def test_search_snapshot_does_not_repeat_the_mapped_id() -> None:
    upstream = MockUpstream().json(PAPRIKA, "/v1/search", {"currencies": [{"id": "btc-bitcoin", "name": "Bitcoin"}]})

    with pytest.raises(NotFoundError):
        await _source(upstream).fetch_snapshot_by_search(_identify("bitcoin"))
    assert [request.url.path for request in upstream.requests] == ["/v1/search"]
