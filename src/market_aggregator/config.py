from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="AGGREGATOR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="allow",
    )

    service_name: str = "market-aggregator"
    log_level: Literal["debug", "info", "warning", "error", "critical"] = "info"
    log_dir: str | None = None

    default_currency: str = "usd"
    default_chart_days: int = 1
    max_chart_points: int = 31
    overall_deadline_seconds: float = 30.0
    user_agent: str = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"

    snapshot_exchange_limit: int = 20
    search_limit: int = 20
    trending_limit: int = 20

    coinpaprika_base_url: str = "https://api.coinpaprika.com/v1"
    coinpaprika_api_key: str | None = None
    coinpaprika_timeout_seconds: float = 12.0
    coinpaprika_max_attempts: int = 3
    coinpaprika_backoff_seconds: float = 1.0
    coinpaprika_rate_limit_multiplier: float = 2.0
    coinpaprika_include_markets: bool = False
    coinpaprika_markets_timeout_seconds: float = 8.0

    coingecko_base_url: str = "https://api.coingecko.com/api/v3"
    coingecko_api_key: str | None = None
    coingecko_timeout_seconds: float = 15.0
    coingecko_max_attempts: int = 3
    coingecko_backoff_seconds: float = 2.0
    coingecko_rate_limit_multiplier: float = 2.5

    coincap_base_url: str = "https://api.coincap.io/v2"
    coincap_api_key: str | None = None
    coincap_timeout_seconds: float = 15.0
    coincap_max_attempts: int = 2
    coincap_backoff_seconds: float = 1.0
    coincap_rate_limit_multiplier: float = 2.0

    cryptocompare_base_url: str = "https://min-api.cryptocompare.com/data"
    cryptocompare_api_key: str | None = None
    cryptocompare_timeout_seconds: float = 15.0
    cryptocompare_max_attempts: int = 2
    cryptocompare_backoff_seconds: float = 1.0
    cryptocompare_rate_limit_multiplier: float = 2.0

    messari_base_url: str = "https://data.messari.io/api/v1"
    messari_api_key: str | None = None
    messari_timeout_seconds: float = 10.0
    messari_max_attempts: int = 2
    messari_backoff_seconds: float = 1.0
    messari_rate_limit_multiplier: float = 2.0

    synthetic_base_price: float = 45_000.0
    synthetic_volatility: float = 0.05
    synthetic_circulating_supply: float = 19_500_000.0

    # Merged over the built-in identifier tables, keyed by provider name.
    identifier_overrides: dict[str, dict[str, str]] = Field(default_factory=dict)

    health_check_tokens: list[str] = Field(default_factory=lambda: ["bitcoin", "ethereum"])


@lru_cache
def get_settings() -> Settings:
    return Settings()


__all__ = ["Settings", "get_settings"]
