"""Enumeration of tradable assets and their upstream identifiers."""

from __future__ import annotations

from enum import Enum
from typing import Dict

from tradewatch.errors import UnknownAssetError


class AssetId(str, Enum):
    """Assets the service knows how to price."""
    ICP = "ICP"
    BTC = "BTC"


UPSTREAM_IDS: Dict[AssetId, str] = {
    AssetId.ICP: "internet-computer",
    AssetId.BTC: "bitcoin",
}

# Base prices for synthetic chart data when the upstream is unreachable.
DEFAULT_FALLBACK_PRICES: Dict[AssetId, float] = {
    AssetId.ICP: 5.0,
    AssetId.BTC: 60000.0,
}


def resolve_asset(value: AssetId | str) -> AssetId:
    """Return the AssetId for `value`, accepting case-insensitive strings."""
    if isinstance(value, AssetId):
        return value
    try:
        return AssetId(str(value).strip().upper())
    except ValueError:
        raise UnknownAssetError(f"Unknown asset '{value}'") from None


def upstream_id(asset: AssetId | str) -> str:
    """Return the upstream (CoinGecko) identifier for an asset."""
    return UPSTREAM_IDS[resolve_asset(asset)]
