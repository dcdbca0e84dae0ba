"""Turn upstream quotes into always-available, clearly tagged PriceQuotes."""
from __future__ import annotations

import asyncio
import datetime as dt
from typing import Awaitable, Callable

from tradewatch.assets import AssetId, resolve_asset, upstream_id
from tradewatch.data_sources import PriceDataSource, RawQuote
from tradewatch.domain import PriceQuote
from tradewatch.retry import DEFAULT_BASE_DELAY_SECONDS, DEFAULT_MAX_ATTEMPTS, fetch_with_retry
from tradewatch.store import MarketStateStore
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="price_service")


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class PriceSourceAdapter:
    """
    Resolve the best available quote for an asset.

    Preference order: a live quote still inside the cache TTL, a fresh
    upstream quote (retried with backoff), the asset's last-known-good quote
    re-tagged as stale, and finally the synthetic zero quote. Only the first
    two can carry `is_live=True`.
    """

    def __init__(
        self,
        data_source: PriceDataSource,
        store: MarketStateStore,
        *,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        base_delay: float = DEFAULT_BASE_DELAY_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        now: Callable[[], dt.datetime] = _utcnow,
    ) -> None:
        self.data_source = data_source
        self.store = store
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self._sleep = sleep
        self._now = now

    async def _fetch_live(self, asset: AssetId) -> RawQuote:
        """One upstream attempt; runs the blocking client in a worker thread."""
        return await asyncio.to_thread(self.data_source.fetch_quote, upstream_id(asset))

    async def get_price(self, asset_id: AssetId | str) -> PriceQuote:
        """Return a quote for `asset_id`; upstream failures never escape."""
        asset = resolve_asset(asset_id)

        cached = self.store.cached_quote(asset)
        if cached is not None and cached.is_live:
            logger.debug("Serving cached quote", extra={"asset": asset.value})
            return cached

        try:
            raw = await fetch_with_retry(
                lambda: self._fetch_live(asset),
                self.max_attempts,
                base_delay=self.base_delay,
                sleep=self._sleep,
                label=f"quote:{asset.value}",
            )
        except Exception as exc:
            return self._fallback(asset, exc)

        quote = PriceQuote(
            price=raw.price,
            change_24h=raw.change_24h,
            is_live=True,
            observed_at=raw.last_updated_at or self._now(),
        )
        self.store.record_live_quote(asset, quote)
        logger.info(
            "Fetched live quote",
            extra={"asset": asset.value, "price": quote.price, "change_24h": quote.change_24h},
        )
        return quote

    def _fallback(self, asset: AssetId, exc: Exception) -> PriceQuote:
        """Pick last-known-good data, else the synthetic placeholder."""
        last_good = self.store.last_known_good(asset)
        if last_good is not None:
            logger.warning(
                "Live quote unavailable; serving last-known-good",
                extra={"asset": asset.value, "error": str(exc), "observed_at": last_good.observed_at},
            )
            return last_good.as_stale()
        logger.warning(
            "Live quote unavailable and no last-known-good; serving synthetic quote",
            extra={"asset": asset.value, "error": str(exc)},
        )
        return PriceQuote.synthetic()
