from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Generic, TypeVar

from .errors import ErrorKind

T = TypeVar("T")

SYNTHETIC_SOURCE = "synthetic"
NO_SOURCE = "none"


def _now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class ProviderIdentifier:
    provider: str
    native_id: str
    canonical_key: str


@dataclass(slots=True)
class AllTimeHigh:
    price: float = 0.0
    date: str = ""
    change_percentage: float = 0.0


@dataclass(slots=True)
class ExchangeListing:
    name: str
    pair: str
    price: float = 0.0
    volume: float = 0.0
    trust_score: str = "unknown"
    trade_url: str = ""


@dataclass(slots=True)
class TokenImage:
    thumb: str = ""
    small: str = ""
    large: str = ""


@dataclass(slots=True)
class SocialLinks:
    homepage: list[str] = field(default_factory=list)
    twitter: str = ""
    telegram: str = ""
    reddit: str = ""
    github: list[str] = field(default_factory=list)


@dataclass(slots=True)
class CommunityStats:
    twitter_followers: int = 0
    reddit_subscribers: int = 0
    telegram_members: int = 0


@dataclass(slots=True)
class TokenSnapshot:
    """Normalized token record; numeric fields default to zero, never absent."""

    id: str
    symbol: str
    name: str
    source: str
    currency: str = "usd"
    current_price: float = 0.0
    price_change_24h: float = 0.0
    price_change_7d: float = 0.0
    volume_24h: float = 0.0
    market_cap: float = 0.0
    market_cap_rank: int = 0
    circulating_supply: float = 0.0
    total_supply: float = 0.0
    max_supply: float = 0.0
    description: str = ""
    image: TokenImage = field(default_factory=TokenImage)
    all_time_high: AllTimeHigh | None = None
    exchanges: list[ExchangeListing] = field(default_factory=list)
    social_links: SocialLinks = field(default_factory=SocialLinks)
    community_stats: CommunityStats = field(default_factory=CommunityStats)
    platforms: dict[str, str] = field(default_factory=dict)
    fetched_at: datetime = field(default_factory=_now)

    def is_valid(self) -> bool:
        return bool(self.id) and self.current_price > 0


@dataclass(slots=True)
class ChartSeries:
    labels: list[str] = field(default_factory=list)
    prices: list[float] = field(default_factory=list)
    volumes: list[float] = field(default_factory=list)
    market_caps: list[float] = field(default_factory=list)

    def __post_init__(self) -> None:
        lengths = {len(self.labels), len(self.prices), len(self.volumes), len(self.market_caps)}
        if len(lengths) != 1:
            raise ValueError(
                "Chart series columns must have equal length "
                f"(labels={len(self.labels)}, prices={len(self.prices)}, "
                f"volumes={len(self.volumes)}, market_caps={len(self.market_caps)})"
            )

    def __len__(self) -> int:
        return len(self.labels)

    def is_valid(self) -> bool:
        return any(price > 0 for price in self.prices)


@dataclass(slots=True)
class SearchResult:
    id: str
    name: str
    symbol: str
    source: str
    market_cap_rank: int = 0
    thumb: str = ""
    large: str = ""


@dataclass(slots=True)
class TokenPrice:
    id: str
    symbol: str
    name: str
    source: str
    price: float = 0.0
    change_24h: float = 0.0
    volume_24h: float = 0.0
    market_cap: float = 0.0
    last_updated: datetime = field(default_factory=_now)


@dataclass(slots=True)
class CandidateFailure:
    source_name: str
    kind: ErrorKind
    attempts: int
    message: str


@dataclass(slots=True)
class FallbackOutcome(Generic[T]):
    """The only value that leaves the orchestrator; callers unwrap it."""

    data: T | None
    source_name: str
    succeeded: bool
    error_detail: str | None = None
    failures: list[CandidateFailure] = field(default_factory=list)

    @property
    def is_synthetic(self) -> bool:
        return self.source_name == SYNTHETIC_SOURCE


__all__ = [
    "AllTimeHigh",
    "CandidateFailure",
    "ChartSeries",
    "CommunityStats",
    "ExchangeListing",
    "FallbackOutcome",
    "NO_SOURCE",
    "ProviderIdentifier",
    "SYNTHETIC_SOURCE",
    "SearchResult",
    "SocialLinks",
    "TokenImage",
    "TokenPrice",
    "TokenSnapshot",
]
