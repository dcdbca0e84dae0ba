"""Daily price series for the chart, with a synthetic fallback."""
from __future__ import annotations

import asyncio
import datetime as dt
import random
from typing import Awaitable, Callable, List, Mapping, Optional

from tradewatch.assets import DEFAULT_FALLBACK_PRICES, AssetId, resolve_asset, upstream_id
from tradewatch.data_sources import PriceDataSource, RawChartPoint
from tradewatch.domain import ChartPoint, ChartSeries
from tradewatch.retry import DEFAULT_BASE_DELAY_SECONDS, DEFAULT_MAX_ATTEMPTS, fetch_with_retry
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="chart_service")

DEFAULT_WINDOW_DAYS = 30
JITTER_FRACTION = 0.05


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


def generate_synthetic_series(
    base_price: float,
    window_days: int = DEFAULT_WINDOW_DAYS,
    *,
    end: dt.datetime,
    rng: random.Random | None = None,
) -> List[ChartPoint]:
    """
    Build `window_days + 1` daily points ending at `end`.

    Each value is `base_price` jittered uniformly within +/-5%. The result is
    placeholder data and must be presented with `is_live=False`.
    """
    rng = rng or random.Random()
    points: List[ChartPoint] = []
    for offset in range(window_days, -1, -1):
        jitter = rng.uniform(-JITTER_FRACTION, JITTER_FRACTION)
        points.append(
            ChartPoint(
                timestamp=end - dt.timedelta(days=offset),
                value=base_price * (1.0 + jitter),
            )
        )
    return points


class ChartDataAdapter:
    """Fetch the trailing daily series for an asset; never raises for known assets."""

    def __init__(
        self,
        data_source: PriceDataSource,
        *,
        fallback_prices: Optional[Mapping[AssetId, float]] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        now: Callable[[], dt.datetime] = _utcnow,
        rng: random.Random | None = None,
    ) -> None:
        self.data_source = data_source
        self.fallback_prices = dict(DEFAULT_FALLBACK_PRICES)
        if fallback_prices:
            self.fallback_prices.update(fallback_prices)
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep
        self._now = now
        self._rng = rng or random.Random()

    async def _fetch_live(self, asset: AssetId, window_days: int) -> List[RawChartPoint]:
        return await asyncio.to_thread(self.data_source.fetch_chart, upstream_id(asset), window_days)

    async def get_series(self, asset_id: AssetId | str, window_days: int = DEFAULT_WINDOW_DAYS) -> ChartSeries:
        """Return the live series, or a synthetic one tagged `is_live=False`."""
        asset = resolve_asset(asset_id)
        try:
            raw_points = await fetch_with_retry(
                lambda: self._fetch_live(asset, window_days),
                self.max_attempts,
                base_delay=self.base_delay,
                sleep=self._sleep,
                label=f"chart:{asset.value}",
            )
        except Exception as exc:
            logger.warning(
                "Chart data unavailable; generating synthetic series",
                extra={"asset": asset.value, "error": str(exc)},
            )
            points = generate_synthetic_series(
                self.fallback_prices.get(asset, 0.0),
                window_days,
                end=self._now(),
                rng=self._rng,
            )
            return ChartSeries(asset=asset, points=points, is_live=False)

        points = [ChartPoint(timestamp=p.time, value=p.value) for p in raw_points]
        logger.info("Fetched live chart series", extra={"asset": asset.value, "points": len(points)})
        return ChartSeries(asset=asset, points=points, is_live=True)
