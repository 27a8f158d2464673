"""
Observability helpers (metrics, logging instrumentation, etc.).
"""

from .prometheus import (
    PROMETHEUS_CONTENT_TYPE,
    generate_prometheus_metrics,
    get_sample_value,
    record_provider_attempt,
    record_resolution,
    reset_prometheus_metrics,
)

__all__ = [
    "PROMETHEUS_CONTENT_TYPE",
    "generate_prometheus_metrics",
    "get_sample_value",
    "record_provider_attempt",
    "record_resolution",
    "reset_prometheus_metrics",
]
