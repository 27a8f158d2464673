from __future__ import annotations

import hashlib
import logging
import random
from datetime import datetime, timedelta, timezone
from typing import Callable

from .charts import ChartPoint, build_series, expected_points, is_hourly
from .config import Settings, get_settings
from .models import ChartSeries

_BASE_VOLUME = 25_000_000_000.0
_VOLUME_SPREAD = 10_000_000_000.0


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyntheticChartGenerator:
    """
    Last-resort chart source used when every live provider failed.

    The series has exactly the shape of a real one (hourly for a single day,
    daily otherwise) and carries no inline marker; callers recognise it only
    through the ``synthetic`` source tag. Prices follow a random walk around
    a fixed base price with each step bounded by ``volatility``. The walk is
    seeded from the token key and day range, so repeated requests agree.
    """

    def __init__(
        self,
        *,
        settings: Settings | None = None,
        now_fn: Callable[[], datetime] | None = None,
        base_price: float | None = None,
        volatility: float | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._now = now_fn or _utcnow
        self._base_price = base_price if base_price is not None else self._settings.synthetic_base_price
        self._volatility = volatility if volatility is not None else self._settings.synthetic_volatility
        self._supply = self._settings.synthetic_circulating_supply
        self._logger = logging.getLogger("aggregator.synthetic")

    @property
    def volatility(self) -> float:
        return self._volatility

    def generate(self, canonical_key: str, days: int) -> ChartSeries:
        count = expected_points(days, self._settings.max_chart_points)
        hourly = is_hourly(days)
        step = timedelta(hours=1) if hourly else timedelta(days=1)
        anchor = self._now().astimezone(timezone.utc).replace(minute=0, second=0, microsecond=0)
        rng = random.Random(self._seed(canonical_key, days))

        points: list[ChartPoint] = []
        price = self._base_price
        for index in range(count):
            if index:
                price *= 1 + rng.uniform(-self._volatility, self._volatility)
            points.append(
                ChartPoint(
                    timestamp=anchor - step * (count - 1 - index),
                    price=price,
                    volume=_BASE_VOLUME + rng.random() * _VOLUME_SPREAD,
                    market_cap=price * self._supply,
                )
            )
        self._logger.debug("Generated %d synthetic points for %s over %d day(s)", count, canonical_key, days)
        return build_series(points, hourly=hourly)

    @staticmethod
    def _seed(canonical_key: str, days: int) -> int:
        digest = hashlib.sha256(f"{canonical_key.strip().lower()}:{days}".encode("utf-8")).hexdigest()
        return int(digest[:16], 16)


__all__ = ["SyntheticChartGenerator"]
