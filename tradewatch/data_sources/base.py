"""Interfaces and helpers for upstream price data sources."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, List, Protocol

from tradewatch.data_sources.coingecko_client import RawChartPoint, RawQuote


class PriceDataSource(Protocol):
    """Interface for anything that can provide spot quotes and daily series.

    Implementations are blocking; callers run them off the event loop.
    """

    def fetch_quote(self, coin_id: str) -> RawQuote:
        """Return the validated current quote, raising on any failure."""
        ...

    def fetch_chart(self, coin_id: str, days: int) -> List[RawChartPoint]:
        """Return validated daily points for the trailing `days`, raising on any failure."""
        ...


@dataclass
class CallablePriceDataSource(PriceDataSource):
    """Wrap two callables so they can be swapped for different backends."""

    quote: Callable[..., RawQuote]
    chart: Callable[..., List[RawChartPoint]]

    def fetch_quote(self, coin_id: str) -> RawQuote:
        """Delegate to the configured quote callable."""
        return self.quote(coin_id)

    def fetch_chart(self, coin_id: str, days: int) -> List[RawChartPoint]:
        """Delegate to the configured chart callable."""
        return self.chart(coin_id, days)
