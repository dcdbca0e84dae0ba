"""Helpers for fetching spot quotes and daily price series from the CoinGecko API."""
from __future__ import annotations

import datetime as dt
import math
from dataclasses import dataclass
from typing import Any, List, Optional

import requests

from tradewatch.errors import MalformedPayloadError, UpstreamError
from utils.logging_utils import get_tagged_logger
logger = get_tagged_logger(__name__, tag='coingecko_client')

session = requests.Session()

COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3"
DEFAULT_TIMEOUT_SECONDS = 10.0


@dataclass
class RawQuote:
    """Validated fields of a CoinGecko simple/price entry."""
    price: float
    change_24h: float
    last_updated_at: Optional[dt.datetime]  # timezone-aware, UTC


@dataclass
class RawChartPoint:
    """Validated `[timestamp_millis, value]` pair from a market_chart response."""
    time: dt.datetime  # timezone-aware, UTC
    value: float


def _is_number(value: Any) -> bool:
    """Return True for finite ints/floats (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def _millis_to_dt(ms: float) -> dt.datetime:
    """Convert epoch milliseconds to an aware UTC datetime."""
    return dt.datetime.fromtimestamp(ms / 1000.0, tz=dt.timezone.utc)


def _get_json(url: str, params: dict, *, timeout: float) -> Any:
    """GET `url` and decode JSON, mapping transport and status errors to UpstreamError."""
    try:
        resp = session.get(url, params=params, timeout=timeout)
        resp.raise_for_status()
    except requests.exceptions.RequestException as exc:
        raise UpstreamError(f"CoinGecko request failed: {exc}") from exc
    try:
        return resp.json()
    except ValueError as exc:
        raise MalformedPayloadError("CoinGecko returned non-JSON response") from exc


def parse_simple_price(payload: Any, coin_id: str, vs_currency: str = "usd") -> RawQuote:
    """Validate a simple/price payload and extract the entry for `coin_id`."""
    if not isinstance(payload, dict):
        raise MalformedPayloadError("simple/price payload is not an object")
    entry = payload.get(coin_id)
    if not isinstance(entry, dict):
        raise MalformedPayloadError(f"simple/price payload has no entry for '{coin_id}'")

    price = entry.get(vs_currency)
    if not _is_number(price) or price < 0:
        raise MalformedPayloadError(f"simple/price entry for '{coin_id}' has no usable {vs_currency} price")

    change = entry.get(f"{vs_currency}_24h_change")
    if change is None:
        change = 0.0
    elif not _is_number(change):
        raise MalformedPayloadError(f"simple/price entry for '{coin_id}' has a non-numeric 24h change")

    updated = entry.get("last_updated_at")
    last_updated_at = None
    if _is_number(updated):
        last_updated_at = dt.datetime.fromtimestamp(updated, tz=dt.timezone.utc)

    return RawQuote(price=float(price), change_24h=float(change), last_updated_at=last_updated_at)


def parse_market_chart(payload: Any) -> List[RawChartPoint]:
    """Validate a market_chart payload; keep the upstream ordering as-is."""
    if not isinstance(payload, dict):
        raise MalformedPayloadError("market_chart payload is not an object")
    prices = payload.get("prices")
    if not isinstance(prices, list):
        raise MalformedPayloadError("market_chart payload has no 'prices' array")
    if not prices:
        raise MalformedPayloadError("market_chart payload has an empty 'prices' array")

    out: List[RawChartPoint] = []
    for i, pair in enumerate(prices):
        if not isinstance(pair, (list, tuple)) or len(pair) != 2:
            raise MalformedPayloadError(f"market_chart entry {i} is not a [timestamp, value] pair")
        ts, value = pair
        if not _is_number(ts) or not _is_number(value):
            raise MalformedPayloadError(f"market_chart entry {i} has non-numeric fields")
        out.append(RawChartPoint(time=_millis_to_dt(ts), value=float(value)))
    return out


def fetch_simple_price(
    coin_id: str,
    *,
    vs_currency: str = "usd",
    base_url: str = COINGECKO_BASE_URL,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> RawQuote:
    """Fetch the current spot price and 24h change for a single coin."""
    params = {
        "ids": coin_id,
        "vs_currencies": vs_currency,
        "include_24hr_change": "true",
        "include_last_updated_at": "true",
    }
    data = _get_json(f"{base_url}/simple/price", params, timeout=timeout)
    quote = parse_simple_price(data, coin_id, vs_currency)
    logger.debug("Fetched CoinGecko quote", extra={"coin_id": coin_id, "price": quote.price})
    return quote


def fetch_market_chart(
    coin_id: str,
    days: int = 30,
    *,
    vs_currency: str = "usd",
    base_url: str = COINGECKO_BASE_URL,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
) -> List[RawChartPoint]:
    """Fetch `days` of daily prices for a coin, oldest first as CoinGecko returns them."""
    params = {
        "vs_currency": vs_currency,
        "days": days,
        "interval": "daily",
    }
    data = _get_json(f"{base_url}/coins/{coin_id}/market_chart", params, timeout=timeout)
    points = parse_market_chart(data)
    logger.debug("Fetched CoinGecko market chart", extra={"coin_id": coin_id, "points": len(points)})
    return points
