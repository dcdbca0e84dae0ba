"""Data source factories for plugging different price backends."""

from .base import CallablePriceDataSource, PriceDataSource
from .factory import build_data_source
from .coingecko_client import (
    RawChartPoint,
    RawQuote,
    fetch_market_chart,
    fetch_simple_price,
    parse_market_chart,
    parse_simple_price,
)

__all__ = [
    "build_data_source",
    "PriceDataSource",
    "CallablePriceDataSource",
    "RawChartPoint",
    "RawQuote",
    "fetch_market_chart",
    "fetch_simple_price",
    "parse_market_chart",
    "parse_simple_price",
]
