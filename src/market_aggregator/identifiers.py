"""
Canonical token keys and their per-provider identifiers.

Canonical keys follow the CoinGecko slug scheme ("bitcoin", "avalanche-2").
Every other provider names tokens differently: CoinPaprika prefixes the
symbol ("btc-bitcoin"), CryptoCompare wants a ticker symbol ("BTC"), CoinCap
and Messari use their own slugs. Lookups go through an immutable
``IdentifierTables`` object built once at startup and injected into the
translator; misses degrade to deterministic string heuristics.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Mapping

from .config import Settings, get_settings
from .models import ProviderIdentifier

COINGECKO = "coingecko"
COINPAPRIKA = "coinpaprika"
COINCAP = "coincap"
CRYPTOCOMPARE = "cryptocompare"
MESSARI = "messari"

STRIP_PREFIXES = ("wrapped-",)
STRIP_SUFFIXES = ("-token", "-coin", "-network", "-protocol")


class IdentifierScheme(str, Enum):
    IDENTITY = "identity"
    SLUG = "slug"
    SYMBOL_SLUG = "symbol_slug"
    SYMBOL = "symbol"


_BUILTIN_SCHEMES: dict[str, IdentifierScheme] = {
    COINGECKO: IdentifierScheme.IDENTITY,
    COINPAPRIKA: IdentifierScheme.SYMBOL_SLUG,
    COINCAP: IdentifierScheme.SLUG,
    MESSARI: IdentifierScheme.SLUG,
    CRYPTOCOMPARE: IdentifierScheme.SYMBOL,
}

_BUILTIN_TABLES: dict[str, tuple[tuple[str, str], ...]] = {
    COINPAPRIKA: (
        ("bitcoin", "btc-bitcoin"),
        ("ethereum", "eth-ethereum"),
        ("cardano", "ada-cardano"),
        ("polkadot", "dot-polkadot"),
        ("solana", "sol-solana"),
        ("chainlink", "link-chainlink"),
        ("litecoin", "ltc-litecoin"),
        ("bitcoin-cash", "bch-bitcoin-cash"),
        ("stellar", "xlm-stellar"),
        ("monero", "xmr-monero"),
        ("tron", "trx-tron"),
        ("eos", "eos-eos"),
        ("tezos", "xtz-tezos"),
        ("neo", "neo-neo"),
        ("vechain", "vet-vechain"),
        ("iota", "miota-iota"),
        ("dash", "dash-dash"),
        ("zcash", "zec-zcash"),
        ("world-liberty-financial", "wlf-world-liberty-financial"),
        ("uniswap", "uni-uniswap"),
        ("aave", "aave-new"),
        ("binancecoin", "bnb-binance-coin"),
        ("ripple", "xrp-xrp"),
        ("dogecoin", "doge-dogecoin"),
        ("polygon", "matic-polygon"),
        ("avalanche-2", "avax-avalanche"),
        ("terra-luna", "luna-terra"),
        ("fantom", "ftm-fantom"),
        ("algorand", "algo-algorand"),
        ("cosmos", "atom-cosmos"),
        ("near", "near-near-protocol"),
        ("internet-computer", "icp-internet-computer"),
        ("hedera-hashgraph", "hbar-hedera-hashgraph"),
        ("cronos", "cro-cronos"),
        ("apecoin", "ape-apecoin"),
        ("sandbox", "sand-the-sandbox"),
        ("decentraland", "mana-decentraland"),
        ("axie-infinity", "axs-axie-infinity"),
        ("shiba-inu", "shib-shiba-inu"),
        ("tether", "usdt-tether"),
        ("usd-coin", "usdc-usd-coin"),
    ),
    COINCAP: (
        ("binancecoin", "binance-coin"),
        ("ripple", "xrp"),
        ("avalanche-2", "avalanche"),
        ("polygon", "polygon"),
        ("hedera-hashgraph", "hedera-hashgraph"),
        ("shiba-inu", "shiba-inu"),
    ),
    MESSARI: (
        ("binancecoin", "binance-coin"),
        ("ripple", "xrp"),
        ("avalanche-2", "avalanche"),
    ),
    CRYPTOCOMPARE: (
        ("bitcoin", "BTC"),
        ("ethereum", "ETH"),
        ("binancecoin", "BNB"),
        ("ripple", "XRP"),
        ("cardano", "ADA"),
        ("solana", "SOL"),
        ("polkadot", "DOT"),
        ("chainlink", "LINK"),
        ("uniswap", "UNI"),
        ("aave", "AAVE"),
        ("litecoin", "LTC"),
        ("bitcoin-cash", "BCH"),
        ("stellar", "XLM"),
        ("monero", "XMR"),
        ("tron", "TRX"),
        ("eos", "EOS"),
        ("tezos", "XTZ"),
        ("neo", "NEO"),
        ("vechain", "VET"),
        ("iota", "MIOTA"),
        ("dash", "DASH"),
        ("zcash", "ZEC"),
        ("worldcoin-wld", "WLD"),
        ("worldcoin", "WLD"),
        ("polygon", "MATIC"),
        ("avalanche-2", "AVAX"),
        ("fantom", "FTM"),
        ("cosmos", "ATOM"),
        ("algorand", "ALGO"),
        ("near", "NEAR"),
        ("internet-computer", "ICP"),
        ("hedera-hashgraph", "HBAR"),
        ("the-graph", "GRT"),
        ("sandbox", "SAND"),
        ("decentraland", "MANA"),
        ("axie-infinity", "AXS"),
        ("gala", "GALA"),
        ("enjincoin", "ENJ"),
        ("chiliz", "CHZ"),
        ("basic-attention-token", "BAT"),
        ("maker", "MKR"),
        ("compound", "COMP"),
        ("sushi", "SUSHI"),
        ("yearn-finance", "YFI"),
        ("curve-dao-token", "CRV"),
        ("synthetix", "SNX"),
        ("balancer", "BAL"),
        ("uma", "UMA"),
        ("loopring", "LRC"),
        ("0x", "ZRX"),
        ("kyber-network-crystal", "KNC"),
        ("bancor", "BNT"),
        ("tether", "USDT"),
        ("usd-coin", "USDC"),
        ("dai", "DAI"),
        ("frax", "FRAX"),
        ("terrausd", "UST"),
        ("true-usd", "TUSD"),
        ("paxos-standard", "PAX"),
        ("gemini-dollar", "GUSD"),
        ("optimism", "OP"),
        ("arbitrum", "ARB"),
        ("immutable-x", "IMX"),
        ("dogecoin", "DOGE"),
        ("shiba-inu", "SHIB"),
    ),
}


def _freeze(mapping: Mapping[str, Mapping[str, str]]) -> Mapping[str, Mapping[str, str]]:
    return MappingProxyType({provider: MappingProxyType(dict(table)) for provider, table in mapping.items()})


@dataclass(frozen=True, slots=True)
class IdentifierTables:
    """Read-only canonical <-> native lookup tables, one pair per provider."""

    forward: Mapping[str, Mapping[str, str]]
    schemes: Mapping[str, IdentifierScheme]
    reverse: Mapping[str, Mapping[str, str]] = field(init=False)

    def __post_init__(self) -> None:
        reverse: dict[str, dict[str, str]] = {}
        for provider, table in self.forward.items():
            inverted: dict[str, str] = {}
            for canonical, native in table.items():
                inverted.setdefault(native, canonical)
            reverse[provider] = inverted
        object.__setattr__(self, "forward", _freeze(self.forward))
        object.__setattr__(self, "schemes", MappingProxyType(dict(self.schemes)))
        object.__setattr__(self, "reverse", _freeze(reverse))

    @classmethod
    def build(
        cls,
        tables: Mapping[str, Mapping[str, str]] | None = None,
        *,
        schemes: Mapping[str, IdentifierScheme] | None = None,
        overrides: Mapping[str, Mapping[str, str]] | None = None,
    ) -> "IdentifierTables":
        source = tables if tables is not None else {name: dict(rows) for name, rows in _BUILTIN_TABLES.items()}
        merged: dict[str, dict[str, str]] = {
            provider: {key.lower(): value for key, value in table.items()} for provider, table in source.items()
        }
        for provider, table in (overrides or {}).items():
            merged.setdefault(provider, {}).update({key.lower(): value for key, value in table.items()})
        return cls(forward=merged, schemes=dict(schemes or _BUILTIN_SCHEMES))

    @classmethod
    def from_settings(cls, settings: Settings) -> "IdentifierTables":
        return cls.build(overrides=settings.identifier_overrides)

    def table(self, provider: str) -> Mapping[str, str]:
        return self.forward.get(provider, MappingProxyType({}))

    def reverse_table(self, provider: str) -> Mapping[str, str]:
        return self.reverse.get(provider, MappingProxyType({}))

    def scheme(self, provider: str) -> IdentifierScheme:
        return self.schemes.get(provider, IdentifierScheme.SLUG)


def clean_key(key: str) -> str:
    cleaned = key
    for prefix in STRIP_PREFIXES:
        if cleaned.startswith(prefix):
            cleaned = cleaned[len(prefix):]
    for suffix in STRIP_SUFFIXES:
        if cleaned.endswith(suffix):
            cleaned = cleaned[: -len(suffix)]
    return cleaned or key


def guess_symbol(key: str) -> str:
    return clean_key(key).split("-")[0].upper()


class IdentifierTranslator:
    """
    Maps canonical keys to provider identifiers and back. Never raises: an
    unmapped key degrades to a heuristic guess that may simply miss upstream.
    """

    def __init__(self, tables: IdentifierTables | None = None, *, settings: Settings | None = None) -> None:
        if tables is None:
            tables = IdentifierTables.from_settings(settings or get_settings())
        self._tables = tables
        self._logger = logging.getLogger("aggregator.identifiers")

    @property
    def tables(self) -> IdentifierTables:
        return self._tables

    def translate(self, canonical_key: str, provider: str) -> str:
        key = canonical_key.strip().lower()
        table = self._tables.table(provider)
        native = table.get(key)
        if native is not None:
            return native

        scheme = self._tables.scheme(provider)
        if scheme is IdentifierScheme.IDENTITY:
            return key

        cleaned = clean_key(key)
        native = table.get(cleaned)
        if native is not None:
            return native

        if scheme is IdentifierScheme.SYMBOL:
            guess = guess_symbol(key)
            self._logger.debug("No %s mapping for %s, guessing symbol %s", provider, key, guess)
            return guess
        return key

    def identify(self, canonical_key: str, provider: str) -> ProviderIdentifier:
        key = canonical_key.strip().lower()
        return ProviderIdentifier(provider=provider, native_id=self.translate(key, provider), canonical_key=key)

    def to_canonical(self, native_id: str, provider: str) -> str:
        reverse = self._tables.reverse_table(provider)
        canonical = reverse.get(native_id)
        if canonical is not None:
            return canonical

        scheme = self._tables.scheme(provider)
        lowered = native_id.strip().lower()
        canonical = reverse.get(lowered)
        if canonical is not None:
            return canonical
        if scheme is IdentifierScheme.SYMBOL_SLUG and "-" in lowered:
            return lowered.split("-", 1)[1]
        return lowered

    def canonicalize(self, raw_key: str) -> str:
        """Map an inbound id that may be in a provider's native slug scheme to its canonical key."""

        key = raw_key.strip().lower()
        if not key:
            return key
        if any(key in self._tables.table(provider) for provider in self._tables.forward):
            return key
        for provider in self._tables.forward:
            if self._tables.scheme(provider) is IdentifierScheme.SYMBOL:
                continue
            canonical = self._tables.reverse_table(provider).get(key)
            if canonical is not None:
                return canonical
        return key


__all__ = [
    "COINCAP",
    "COINGECKO",
    "COINPAPRIKA",
    "CRYPTOCOMPARE",
    "IdentifierScheme",
    "IdentifierTables",
    "IdentifierTranslator",
    "MESSARI",
    "clean_key",
    "guess_symbol",
]
