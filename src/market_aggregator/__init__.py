"""Crypto market data aggregator with ordered provider fallback."""

from .assembler import AssembledResponse, ResponseAssembler
from .config import Settings, get_settings
from .errors import (
    AllSourcesExhaustedError,
    BoundaryError,
    ErrorKind,
    NotFoundError,
    ProviderError,
    RateLimitedError,
    SourcesRateLimitedError,
    TokenNotFoundError,
    TransientError,
)
from .identifiers import IdentifierTranslator
from .logging_setup import configure_logging
from .models import ChartSeries, FallbackOutcome, SearchResult, TokenPrice, TokenSnapshot
from .orchestrator import Candidate, Capability, FallbackOrchestrator
from .retry import RetryConfig, RetryPolicy
from .service import MarketDataService, PricingHealth
from .synthetic import SyntheticChartGenerator

__all__ = [
    "AllSourcesExhaustedError",
    "AssembledResponse",
    "BoundaryError",
    "Candidate",
    "Capability",
    "ChartSeries",
    "ErrorKind",
    "FallbackOrchestrator",
    "FallbackOutcome",
    "IdentifierTranslator",
    "MarketDataService",
    "NotFoundError",
    "PricingHealth",
    "ProviderError",
    "RateLimitedError",
    "ResponseAssembler",
    "RetryConfig",
    "RetryPolicy",
    "SearchResult",
    "Settings",
    "SourcesRateLimitedError",
    "SyntheticChartGenerator",
    "TokenNotFoundError",
    "TokenPrice",
    "TokenSnapshot",
    "TransientError",
    "configure_logging",
    "get_settings",
]
