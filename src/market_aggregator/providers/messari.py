from __future__ import annotations

import asyncio
from typing import Sequence

from pydantic import Field

from ..errors import NotFoundError, ProviderError
from ..identifiers import MESSARI
from ..models import ProviderIdentifier, TokenPrice
from .base import HttpSourceAdapter, LenientModel, Num, Text


class MessariMarketData(LenientModel):
    price_usd: Num = 0.0
    percent_change_usd_last_24_hours: Num = 0.0
    volume_last_24_hours: Num = 0.0
    market_cap: Num = 0.0
    market_cap_last_24_hours: Num = 0.0


class MessariAsset(LenientModel):
    id: Text = ""
    symbol: Text = ""
    name: Text = ""
    market_data: MessariMarketData = Field(default_factory=MessariMarketData)


class MessariEnvelope(LenientModel):
    data: MessariAsset | None = None


class MessariSource(HttpSourceAdapter):
    """
    Messari exposes market data one asset at a time, so a batch is fanned out
    concurrently. Assets that fail individually are dropped from the batch;
    the batch as a whole fails only when every asset failed.
    """

    provider_name = MESSARI

    def _auth_headers(self) -> dict[str, str]:
        if self._config.api_key:
            return {"x-messari-api-key": self._config.api_key}
        return {}

    async def fetch_price(self, identifier: ProviderIdentifier) -> TokenPrice:
        native = identifier.native_id
        payload = await self._get_json(f"/assets/{native}/metrics/market-data", subject=native)
        envelope = self._parse(MessariEnvelope, payload, subject=native)
        if envelope.data is None:
            raise self._not_found(native)
        asset = envelope.data
        market = asset.market_data
        return TokenPrice(
            id=identifier.canonical_key,
            symbol=asset.symbol.upper(),
            name=asset.name,
            source=self.name,
            price=market.price_usd,
            change_24h=market.percent_change_usd_last_24_hours,
            volume_24h=market.volume_last_24_hours,
            market_cap=market.market_cap or market.market_cap_last_24_hours,
            last_updated=self._now(),
        )

    async def fetch_prices(self, identifiers: Sequence[ProviderIdentifier]) -> dict[str, TokenPrice]:
        results = await asyncio.gather(
            *(self.fetch_price(identifier) for identifier in identifiers), return_exceptions=True
        )
        prices: dict[str, TokenPrice] = {}
        errors: list[ProviderError] = []
        for identifier, result in zip(identifiers, results):
            if isinstance(result, ProviderError):
                self._logger.warning("Messari price failed for %s: %s", identifier.native_id, result)
                errors.append(result)
                continue
            if isinstance(result, BaseException):
                raise result
            prices[identifier.canonical_key] = result
        if not prices and errors:
            # Surface the most retry-worthy failure so the policy can act on it.
            retryable = [error for error in errors if error.retryable]
            raise (retryable or errors)[0]
        if not prices:
            raise NotFoundError("Messari returned no prices", provider=self.name)
        return prices


__all__ = ["MessariSource"]
