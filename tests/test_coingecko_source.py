from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

import pytest

from market_aggregator.errors import NotFoundError
from market_aggregator.identifiers import COINGECKO, IdentifierTranslator
from market_aggregator.providers import CoinGeckoSource

from utils.mock_upstream import GECKO, MockUpstream, make_settings

NOW = datetime(2025, 1, 1, 12, 10, tzinfo=timezone.utc)

COIN: dict[str, Any] = {
    "id": "ethereum",
    "symbol": "eth",
    "name": "Ethereum",
    "market_cap_rank": 2,
    "description": {"en": "Smart contracts."},
    "image": {"thumb": "t.png", "small": "s.png", "large": "l.png"},
    "market_data": {
        "current_price": {"usd": 3000.0, "eur": 2800.0},
        "market_cap": {"usd": 3.6e11},
        "total_volume": {"usd": 1.5e10},
        "price_change_percentage_24h": 1.2,
        "price_change_percentage_7d": -3.4,
        "circulating_supply": 120_000_000,
        "total_supply": 120_000_000,
        "max_supply": None,
        "ath": {"usd": 4878.26},
        "ath_date": {"usd": "2021-11-10T14:24:11.849Z"},
        "ath_change_percentage": {"usd": -38.5},
    },
    "platforms": {"": ""},
    "tickers": [
        {
            "base": "ETH",
            "target": "USDT",
            "market": {"name": "Binance", "category": "spot"},
            "converted_last": {"usd": 3001.0},
            "converted_volume": {"usd": 9e8},
            "trust_score": "green",
            "trade_url": "https://binance.com",
        },
        {
            "base": "ETH",
            "target": "USD",
            "market": {"name": "Perp DEX", "category": "derivatives"},
            "converted_last": {"usd": 3002.0},
            "converted_volume": {"usd": 1e9},
            "trust_score": None,
        },
    ],
    "links": {
        "homepage": ["https://ethereum.org", ""],
        "twitter_screen_name": "ethereum",
        "telegram_channel_identifier": "",
        "subreddit_url": "https://reddit.com/r/ethereum",
        "repos_url": {"github": ["https://github.com/ethereum/go-ethereum"]},
    },
    "community_data": {"twitter_followers": 3_000_000, "reddit_subscribers": 1_000_000, "telegram_channel_user_count": None},
}


def _source(upstream: MockUpstream, **settings: Any) -> CoinGeckoSource:
    config = make_settings(**settings)
    return CoinGeckoSource(client=upstream.client(), settings=config, now_fn=lambda: NOW)


def _identify(key: str) -> Any:
    return IdentifierTranslator(settings=make_settings()).identify(key, COINGECKO)


@pytest.mark.asyncio
async def test_snapshot_normalizes_full_coin() -> None:
    upstream = MockUpstream().json(GECKO, "/api/v3/coins/ethereum", COIN)

    snapshot = await _source(upstream).fetch_snapshot(_identify("ethereum"))

    assert snapshot.source == "coingecko"
    assert snapshot.symbol == "ETH"
    assert snapshot.current_price == 3000.0
    assert snapshot.max_supply == 0.0
    assert snapshot.market_cap_rank == 2
    assert snapshot.all_time_high is not None and snapshot.all_time_high.price == 4878.26
    assert [listing.name for listing in snapshot.exchanges] == ["Binance"]
    assert snapshot.exchanges[0].pair == "ETH/USDT"
    assert snapshot.social_links.homepage == ["https://ethereum.org"]
    assert snapshot.community_stats.telegram_members == 0
    assert snapshot.platforms == {}
    params = upstream.requests[0].url.params
    assert (params["tickers"], params["market_data"], params["community_data"]) == ("true", "true", "true")


@pytest.mark.asyncio
async def test_snapshot_uses_requested_currency() -> None:
    upstream = MockUpstream().json(GECKO, "/api/v3/coins/ethereum", COIN)

    snapshot = await _source(upstream).fetch_snapshot(_identify("ethereum"), "EUR")

    assert snapshot.currency == "eur"
    assert snapshot.current_price == 2800.0
    assert snapshot.all_time_high is None


@pytest.mark.asyncio
async def test_snapshot_keeps_only_configured_number_of_exchanges() -> None:
    coin = dict(COIN, tickers=[COIN["tickers"][0]] * 30)
    upstream = MockUpstream().json(GECKO, "/api/v3/coins/ethereum", coin)

    snapshot = await _source(upstream).fetch_snapshot(_identify("ethereum"))

    assert len(snapshot.exchanges) == 20


@pytest.mark.asyncio
async def test_sparkline_keeps_the_last_day() -> None:
    coin = {
        "id": "ethereum",
        "market_data": {
            "current_price": {"usd": 3000.0},
            "total_volume": {"usd": 5.0},
            "market_cap": {"usd": 7.0},
            "sparkline_7d": {"price": [float(index) for index in range(168)]},
        },
    }
    upstream = MockUpstream().json(GECKO, "/api/v3/coins/ethereum", coin)

    series = await _source(upstream).fetch_sparkline(_identify("ethereum"))

    assert len(series) == 24
    assert series.prices[0] == 144.0
    assert series.prices[-1] == 167.0
    assert series.labels[-1] == "12:00"
    assert set(series.volumes) == {5.0}
    assert upstream.requests[0].url.params["sparkline"] == "true"


@pytest.mark.asyncio
async def test_missing_sparkline_falls_back_to_current_point() -> None:
    coin = {"id": "ethereum", "market_data": {"current_price": {"usd": 3000.0}, "sparkline_7d": None}}
    upstream = MockUpstream().json(GECKO, "/api/v3/coins/ethereum", coin)

    series = await _source(upstream).fetch_sparkline(_identify("ethereum"))

    assert series.labels == ["Current"]
    assert series.prices == [3000.0]


@pytest.mark.asyncio
async def test_market_chart_aligns_columns() -> None:
    day = 86_400_000
    start = 1_735_689_600_000  # 2025-01-01T00:00:00Z
    payload = {
        "prices": [[start + day * index, 100.0 + index] for index in range(3)],
        "total_volumes": [[start + day * index, 10.0] for index in range(3)],
        "market_caps": [[start, 1000.0]],
    }
    upstream = MockUpstream().json(GECKO, "/api/v3/coins/ethereum/market_chart", payload)

    series = await _source(upstream, coingecko_api_key="demo").fetch_chart(_identify("ethereum"), 3)

    assert series.labels == ["Jan 1", "Jan 2", "Jan 3"]
    assert series.prices == [100.0, 101.0, 102.0]
    assert series.market_caps == [1000.0, 0.0, 0.0]
    params = upstream.requests[0].url.params
    assert (params["vs_currency"], params["days"], params["interval"]) == ("usd", "3", "daily")
    assert params["x_cg_demo_api_key"] == "demo"


@pytest.mark.asyncio
async def test_search_and_trending() -> None:
    upstream = (
        MockUpstream()
        .json(GECKO, "/api/v3/search", {"coins": [{"id": "bitcoin", "name": "Bitcoin", "symbol": "btc", "market_cap_rank": 1, "thumb": "b.png"}]})
        .json(GECKO, "/api/v3/search/trending", {"coins": [{"item": {"id": "pepe", "name": "Pepe", "symbol": "PEPE", "market_cap_rank": None}}]})
    )
    source = _source(upstream)

    search = await source.search("bit")
    trending = await source.list_trending()

    assert [(hit.id, hit.symbol, hit.large) for hit in search] == [("bitcoin", "BTC", "b.png")]
    assert [(hit.id, hit.market_cap_rank) for hit in trending] == [("pepe", 0)]


@pytest.mark.asyncio
async def test_simple_prices_are_keyed_by_canonical_id() -> None:
    payload = {"bitcoin": {"usd": 65000.0, "usd_24h_change": 1.0, "usd_24h_vol": 2.0, "usd_market_cap": None}}
    upstream = MockUpstream().json(GECKO, "/api/v3/simple/price", payload)
    translator = IdentifierTranslator(settings=make_settings())

    prices = await _source(upstream).fetch_prices([translator.identify(key, COINGECKO) for key in ("bitcoin", "ethereum")])

    assert list(prices) == ["bitcoin"]
    assert prices["bitcoin"].price == 65000.0
    assert prices["bitcoin"].market_cap == 0.0
    params = upstream.requests[0].url.params
    assert params["ids"] == "bitcoin,ethereum"
    assert params["include_market_cap"] == "true"


@pytest.mark.asyncio
async def test_empty_coin_body_is_not_found() -> None:
    upstream = MockUpstream().json(GECKO, "/api/v3/coins/ethereum", {})

    with pytest.raises(NotFoundError):
        await _source(upstream).fetch_snapshot(_identify("ethereum"))


@pytest.mark.asyncio
async def test_sparkline_is_usd_only() -> None:
    upstream = MockUpstream()

    with pytest.raises(NotFoundError):
        await _source(upstream).fetch_sparkline(_identify("ethereum"), "eur")
    assert upstream.requests == []
