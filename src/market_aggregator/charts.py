from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable

from .models import ChartSeries

HOURLY_POINTS = 24


@dataclass(slots=True)
class ChartPoint:
    timestamp: datetime
    price: float
    volume: float = 0.0
    market_cap: float = 0.0


def is_hourly(days: int) -> bool:
    return days == 1


def expected_points(days: int, max_points: int) -> int:
    """Number of points a chart of ``days`` should carry: hourly for one day, daily otherwise."""
    if days < 1:
        raise ValueError(f"days must be >= 1, got {days}")
    if is_hourly(days):
        return HOURLY_POINTS
    return min(days, max_points)


def format_label(moment: datetime, *, hourly: bool) -> str:
    moment = moment.astimezone(timezone.utc)
    if hourly:
        return f"{moment:%H:%M}"
    return f"{moment:%b} {moment.day}"


def from_millis(value: float | int) -> datetime:
    return datetime.fromtimestamp(float(value) / 1000, tz=timezone.utc)


def from_seconds(value: float | int) -> datetime:
    return datetime.fromtimestamp(float(value), tz=timezone.utc)


def build_series(points: Iterable[ChartPoint], *, hourly: bool) -> ChartSeries:
    ordered = sorted(points, key=lambda point: point.timestamp)
    return ChartSeries(
        labels=[format_label(point.timestamp, hourly=hourly) for point in ordered],
        prices=[point.price for point in ordered],
        volumes=[point.volume for point in ordered],
        market_caps=[point.market_cap for point in ordered],
    )


__all__ = [
    "ChartPoint",
    "HOURLY_POINTS",
    "build_series",
    "expected_points",
    "format_label",
    "from_millis",
    "from_seconds",
    "is_hourly",
]
