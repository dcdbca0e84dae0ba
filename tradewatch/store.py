"""Process-lifetime market state shared by the price and chart adapters."""

from __future__ import annotations

from typing import Dict, Optional

from tradewatch.assets import AssetId
from tradewatch.cache import TTLCache
from tradewatch.domain import PriceQuote


def price_cache_key(asset: AssetId) -> str:
    """Cache key for an asset's live quote."""
    return f"price_{asset.value}"


class MarketStateStore:
    """Owns the quote cache and the last-known-good quote per asset.

    Build one per process (or one per test); nothing here is module-global.
    """

    def __init__(self, cache: Optional[TTLCache[PriceQuote]] = None, *, ttl_seconds: float = 10.0) -> None:
        self.cache: TTLCache[PriceQuote] = cache if cache is not None else TTLCache(ttl_seconds=ttl_seconds)
        self._last_known_good: Dict[AssetId, PriceQuote] = {}

    def cached_quote(self, asset: AssetId) -> Optional[PriceQuote]:
        return self.cache.get(price_cache_key(asset))

    def record_live_quote(self, asset: AssetId, quote: PriceQuote) -> None:
        """Cache a validated live quote and remember it as last-known-good."""
        if not quote.is_live:
            raise ValueError("Only live quotes may be recorded as last-known-good")
        self.cache.set(price_cache_key(asset), quote)
        self._last_known_good[asset] = quote

    def last_known_good(self, asset: AssetId) -> Optional[PriceQuote]:
        return self._last_known_good.get(asset)
