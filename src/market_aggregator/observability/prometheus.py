from __future__ import annotations

from typing import Literal

from prometheus_client import (
    CONTENT_TYPE_LATEST,
    CollectorRegistry,
    Counter,
    Histogram,
    generate_latest,
)

PROMETHEUS_CONTENT_TYPE = CONTENT_TYPE_LATEST

AttemptResult = Literal["success", "not_found", "rate_limited", "transient"]


def _build_registry() -> tuple[CollectorRegistry, Counter, Histogram, Counter]:
    registry = CollectorRegistry()
    attempts_counter = Counter(
        "aggregator_provider_attempts_total",
        "Upstream provider calls grouped by capability and outcome",
        labelnames=("provider", "capability", "result"),
        registry=registry,
    )
    latency = Histogram(
        "aggregator_provider_latency_seconds",
        "Latency of single upstream provider attempts",
        labelnames=("provider",),
        buckets=(
            0.05,
            0.1,
            0.25,
            0.5,
            1.0,
            2.5,
            5.0,
            10.0,
            15.0,
        ),
        registry=registry,
    )
    resolutions_counter = Counter(
        "aggregator_resolutions_total",
        "Orchestrated calls grouped by capability and the source that answered",
        labelnames=("capability", "source"),
        registry=registry,
    )
    return registry, attempts_counter, latency, resolutions_counter


_registry, _attempts_counter, _latency, _resolutions_counter = _build_registry()


def record_provider_attempt(
    provider: str,
    capability: str,
    result: AttemptResult | str,
    latency_seconds: float | None = None,
) -> None:
    _attempts_counter.labels(provider=provider, capability=capability, result=result).inc()
    if latency_seconds is not None and latency_seconds >= 0:
        _latency.labels(provider=provider).observe(latency_seconds)


def record_resolution(capability: str, source: str) -> None:
    _resolutions_counter.labels(capability=capability, source=source).inc()


def get_sample_value(name: str, labels: dict[str, str]) -> float | None:
    return _registry.get_sample_value(name, labels)


def generate_prometheus_metrics() -> bytes:
    return generate_latest(_registry)


def reset_prometheus_metrics() -> None:
    global _registry, _attempts_counter, _latency, _resolutions_counter
    _registry, _attempts_counter, _latency, _resolutions_counter = _build_registry()
