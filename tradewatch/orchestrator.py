"""Periodic, concurrent, non-overlapping refresh of every tracked asset."""
from __future__ import annotations

import asyncio
import contextlib
import datetime as dt
import time
from typing import Awaitable, Callable, Dict, Iterable, List, Optional, Protocol, Set

from tradewatch import config
from tradewatch.assets import AssetId, resolve_asset
from tradewatch.chart_service import DEFAULT_WINDOW_DAYS, ChartDataAdapter
from tradewatch.data_sources import PriceDataSource, build_data_source
from tradewatch.domain import (
    AssetView,
    ChartSeries,
    CycleOutcome,
    CyclePhase,
    HistoryView,
    PriceQuote,
    RefreshCycleState,
)
from tradewatch.errors import RecommendationServiceError
from tradewatch.price_service import PriceSourceAdapter
from tradewatch.recommendation_client import RecommendationClient, RecommendationProvider
from tradewatch.store import MarketStateStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="orchestrator")


class PriceProvider(Protocol):
    async def get_price(self, asset_id: AssetId | str) -> PriceQuote:
        ...


class SeriesProvider(Protocol):
    async def get_series(self, asset_id: AssetId | str, window_days: int = DEFAULT_WINDOW_DAYS) -> ChartSeries:
        ...


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class RefreshOrchestrator:
    """
    Drive refresh cycles and hold the per-asset, chart and history views.

    A cycle refreshes every tracked asset concurrently (price, then
    recommendation), then the chart and the history of the selected asset.
    At most one cycle runs at a time: a cycle requested while another is in
    flight is skipped, never queued. Nothing raised inside a cycle escapes
    `run_cycle`, so the ticker keeps running after failures.

    All state lives on the event loop; no locks are taken.
    """

    def __init__(
        self,
        prices: PriceProvider,
        charts: SeriesProvider,
        recommendations: RecommendationProvider,
        *,
        assets: Iterable[AssetId | str],
        selected_asset: AssetId | str | None = None,
        window_days: int = DEFAULT_WINDOW_DAYS,
        interval_seconds: float = 15.0,
        updated_indicator_seconds: float = 2.0,
        now: Callable[[], dt.datetime] = _utcnow,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.prices = prices
        self.charts = charts
        self.recommendations = recommendations
        self.assets: List[AssetId] = list(dict.fromkeys(resolve_asset(a) for a in assets))
        if not self.assets:
            raise ValueError("At least one asset must be tracked")
        self.selected_asset: AssetId = resolve_asset(selected_asset) if selected_asset else self.assets[0]
        if self.selected_asset not in self.assets:
            logger.warning(
                "Selected asset is not tracked; using the first tracked asset",
                extra={"selected": self.selected_asset.value, "fallback": self.assets[0].value},
            )
            self.selected_asset = self.assets[0]
        self.window_days = window_days
        self.interval_seconds = interval_seconds
        self.updated_indicator_seconds = updated_indicator_seconds
        self._now = now
        self._clock = clock
        self._sleep = sleep

        self.state = RefreshCycleState()
        self.views: Dict[AssetId, AssetView] = {a: AssetView.loading(a) for a in self.assets}
        self.chart: Optional[ChartSeries] = None
        self.history: Optional[HistoryView] = None

        self._in_progress = False
        self._updated_until: Optional[float] = None
        self._ticker: Optional[asyncio.Task] = None
        self._cycle_tasks: Set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Read-side helpers
    # ------------------------------------------------------------------
    @property
    def in_progress(self) -> bool:
        return self._in_progress

    @property
    def recently_updated(self) -> bool:
        """True for a short while after a cycle completes successfully."""
        return self._updated_until is not None and self._clock() < self._updated_until

    def view_for(self, asset_id: AssetId | str) -> AssetView:
        """Return the current view of a tracked asset."""
        asset = resolve_asset(asset_id)
        if asset not in self.views:
            raise KeyError(f"Asset '{asset.value}' is not tracked")
        return self.views[asset]

    # ------------------------------------------------------------------
    # Refresh steps
    # ------------------------------------------------------------------
    async def refresh_asset(self, asset: AssetId) -> AssetView:
        """Refresh one asset's quote and recommendation and store the view."""
        quote = await self.prices.get_price(asset)
        if quote.is_synthetic:
            # Do not ask the decision service about a placeholder price.
            view = AssetView.unavailable(asset, "Price data unavailable", updated_at=self._now())
        else:
            try:
                label = await self.recommendations.get_recommendation(asset, quote)
            except RecommendationServiceError as exc:
                logger.warning(
                    "Recommendation unavailable",
                    extra={"asset": asset.value, "error": str(exc)},
                )
                view = AssetView.unavailable(
                    asset, "Recommendation unavailable", quote=quote, updated_at=self._now()
                )
            else:
                view = AssetView.from_quote(asset, quote, label, updated_at=self._now())
        self.views[asset] = view
        return view

    async def _refresh_assets(self) -> None:
        """Refresh all tracked assets concurrently; re-raise the first unexpected error."""
        results = await asyncio.gather(
            *(self.refresh_asset(asset) for asset in self.assets),
            return_exceptions=True,
        )
        errors = [r for r in results if isinstance(r, BaseException)]
        if errors:
            raise errors[0]

    def _still_selected(self, asset: AssetId, what: str) -> bool:
        """False when the selection moved on while `asset` was being fetched."""
        if asset == self.selected_asset:
            return True
        logger.debug(
            "Discarding %s for previously selected asset",
            what,
            extra={"asset": asset.value, "selected": self.selected_asset.value},
        )
        return False

    async def _refresh_chart(self, asset: AssetId) -> ChartSeries:
        series = await self.charts.get_series(asset, self.window_days)
        if self._still_selected(asset, "chart"):
            self.chart = series
        return series

    async def _refresh_history(self, asset: AssetId) -> HistoryView:
        try:
            records = await self.recommendations.get_history(asset)
        except RecommendationServiceError as exc:
            if self._still_selected(asset, "history error"):
                previous = self.history.records if self.history and self.history.asset == asset else []
                self.history = HistoryView(asset=asset, records=previous, error=str(exc))
            raise
        view = HistoryView(asset=asset, records=records)
        if self._still_selected(asset, "history"):
            self.history = view
        return view

    # ------------------------------------------------------------------
    # Cycles
    # ------------------------------------------------------------------
    async def run_cycle(self) -> CycleOutcome:
        """Run one full cycle unless another is already running."""
        if self._in_progress:
            logger.debug("Refresh cycle skipped; previous cycle still running")
            return CycleOutcome.SKIPPED

        self._in_progress = True
        started = self._clock()
        try:
            self.state.phase = CyclePhase.FETCHING_ASSETS
            await self._refresh_assets()
            self.state.phase = CyclePhase.FETCHING_CHART
            await self._refresh_chart(self.selected_asset)
            self.state.phase = CyclePhase.FETCHING_HISTORY
            await self._refresh_history(self.selected_asset)
        except Exception:
            logger.exception(
                "Refresh cycle aborted",
                extra={"phase": self.state.phase.value, "cycle_count": self.state.cycle_count},
            )
            outcome = CycleOutcome.PARTIAL_FAILURE
        else:
            self.state.cycle_count += 1
            self.state.last_completed_at = self._now()
            self._updated_until = self._clock() + self.updated_indicator_seconds
            outcome = CycleOutcome.COMPLETED
            logger.info(
                "Refresh cycle completed",
                extra={"cycle_count": self.state.cycle_count, "duration_s": round(self._clock() - started, 3)},
            )
        finally:
            self.state.phase = CyclePhase.IDLE
            self._in_progress = False
        self.state.last_outcome = outcome
        return outcome

    async def select_asset(self, asset_id: AssetId | str) -> None:
        """Switch the selected asset and refresh its chart and history now."""
        asset = resolve_asset(asset_id)
        if asset not in self.views:
            raise KeyError(f"Asset '{asset.value}' is not tracked")
        self.selected_asset = asset
        logger.info("Selected asset changed", extra={"asset": asset.value})
        await self._refresh_chart(asset)
        await self._refresh_history(asset)

    async def refresh_history(self) -> HistoryView:
        """Refresh the history log of the selected asset outside the timer cadence."""
        return await self._refresh_history(self.selected_asset)

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------
    def tick(self) -> bool:
        """Launch a cycle in the background unless one is running."""
        if self._in_progress:
            logger.debug("Refresh tick dropped; cycle still running")
            return False
        task = asyncio.create_task(self.run_cycle())
        self._cycle_tasks.add(task)
        task.add_done_callback(self._cycle_tasks.discard)
        return True

    async def _tick_loop(self) -> None:
        while True:
            self.tick()
            await self._sleep(self.interval_seconds)

    def start(self) -> None:
        """Start ticking: one cycle immediately, then every `interval_seconds`."""
        if self._ticker is not None and not self._ticker.done():
            return
        logger.info(
            "Starting refresh ticker",
            extra={"interval_seconds": self.interval_seconds, "assets": [a.value for a in self.assets]},
        )
        self._ticker = asyncio.create_task(self._tick_loop())

    async def stop(self) -> None:
        """Stop ticking and wait for any in-flight cycle to finish."""
        ticker, self._ticker = self._ticker, None
        if ticker is not None:
            ticker.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await ticker
        if self._cycle_tasks:
            await asyncio.gather(*list(self._cycle_tasks), return_exceptions=True)
        logger.info("Refresh ticker stopped")


def build_orchestrator(
    settings: config.Settings | None = None,
    *,
    data_source: PriceDataSource | None = None,
    store: MarketStateStore | None = None,
    recommendations: RecommendationProvider | None = None,
) -> RefreshOrchestrator:
    """Wire adapters, store and client from configuration."""
    settings = settings or config.settings
    data_source = data_source or build_data_source(settings)
    store = store or MarketStateStore(ttl_seconds=settings.cache_ttl_seconds)
    retry_kwargs = {
        "max_attempts": settings.fetch_max_attempts,
        "base_delay": settings.backoff_base_seconds,
    }
    prices = PriceSourceAdapter(data_source, store, **retry_kwargs)
    charts = ChartDataAdapter(data_source, fallback_prices=settings.fallback_prices, **retry_kwargs)
    recommendations = recommendations or RecommendationClient(
        settings.recommendation_base_url,
        timeout=settings.recommendation_timeout_seconds,
    )
    return RefreshOrchestrator(
        prices,
        charts,
        recommendations,
        assets=settings.tracked_assets,
        selected_asset=settings.selected_asset,
        window_days=settings.chart_window_days,
        interval_seconds=settings.refresh_interval_seconds,
        updated_indicator_seconds=settings.updated_indicator_seconds,
    )
