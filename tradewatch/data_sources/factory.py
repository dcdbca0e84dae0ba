"""Factory helpers for choosing a price data source at startup."""

from __future__ import annotations

from functools import partial

from tradewatch import config
from tradewatch.data_sources.base import CallablePriceDataSource, PriceDataSource
from tradewatch.data_sources.coingecko_client import fetch_market_chart, fetch_simple_price
from utils.logging_utils import get_tagged_logger, mask_url

logger = get_tagged_logger(__name__, tag="data_sources/factory")


DEFAULT_SOURCE_NAME = "coingecko"


def build_data_source(settings: config.Settings | None = None) -> PriceDataSource:
    """Instantiate the configured price data source."""
    settings = settings or config.settings
    source = (settings.price_source or DEFAULT_SOURCE_NAME).lower()

    if source == "coingecko":
        base_url = settings.coingecko_base_url
        if not base_url:
            raise ValueError("coingecko_base_url must be set for the CoinGecko data source")
        logger.info("Using CoinGecko data source", extra={"base_url": mask_url(base_url)})
        common = {
            "vs_currency": settings.vs_currency,
            "base_url": base_url,
            "timeout": settings.request_timeout_seconds,
        }
        return CallablePriceDataSource(
            quote=partial(fetch_simple_price, **common),
            chart=partial(fetch_market_chart, **common),
        )

    raise ValueError(f"Unknown price source '{source}'")
