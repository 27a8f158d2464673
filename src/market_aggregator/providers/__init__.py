"""
Source adapters, one per upstream market-data provider.
"""
from __future__ import annotations

import asyncio
from dataclasses import dataclass

import httpx

from ..config import Settings, get_settings
from ..identifiers import IdentifierTranslator
from .base import (
    AdapterConfig,
    ChartSource,
    HttpSourceAdapter,
    PriceSource,
    SearchSource,
    SnapshotSource,
    TrendingSource,
    classify_status,
)
from .coincap import CoinCapSource
from .coingecko import CoinGeckoSource
from .coinpaprika import CoinPaprikaSource
from .cryptocompare import CryptoCompareSource
from .messari import MessariSource


@dataclass(slots=True)
class SourceSet:
    coinpaprika: CoinPaprikaSource
    coingecko: CoinGeckoSource
    coincap: CoinCapSource
    cryptocompare: CryptoCompareSource
    messari: MessariSource

    @classmethod
    def from_settings(
        cls,
        settings: Settings | None = None,
        *,
        client: httpx.AsyncClient | None = None,
        translator: IdentifierTranslator | None = None,
    ) -> "SourceSet":
        settings = settings or get_settings()
        translator = translator or IdentifierTranslator(settings=settings)
        kwargs = {"client": client, "translator": translator, "settings": settings}
        return cls(
            coinpaprika=CoinPaprikaSource(**kwargs),
            coingecko=CoinGeckoSource(**kwargs),
            coincap=CoinCapSource(**kwargs),
            cryptocompare=CryptoCompareSource(**kwargs),
            messari=MessariSource(**kwargs),
        )

    def all(self) -> tuple[HttpSourceAdapter, ...]:
        return (self.coinpaprika, self.coingecko, self.coincap, self.cryptocompare, self.messari)

    async def close(self) -> None:
        await asyncio.gather(*(source.close() for source in self.all()))


__all__ = [
    "AdapterConfig",
    "ChartSource",
    "CoinCapSource",
    "CoinGeckoSource",
    "CoinPaprikaSource",
    "CryptoCompareSource",
    "HttpSourceAdapter",
    "MessariSource",
    "PriceSource",
    "SearchSource",
    "SnapshotSource",
    "SourceSet",
    "TrendingSource",
    "classify_status",
]
