"""Thin client for the external trade recommendation (decision) service."""

from __future__ import annotations

import asyncio
from typing import Any, List, Optional, Protocol

import requests
from pydantic import ValidationError

from tradewatch.assets import AssetId, resolve_asset
from tradewatch.domain import PriceQuote, RecommendationRecord
from tradewatch.errors import RecommendationServiceError
from utils.logging_utils import get_tagged_logger, mask_url

logger = get_tagged_logger(__name__, tag="recommendation_client")


class RecommendationProvider(Protocol):
    """What the orchestrator needs from a decision service."""

    async def get_recommendation(self, asset_id: AssetId | str, quote: PriceQuote) -> str:
        """Return a recommendation label for the quote."""
        ...

    async def get_history(self, asset_id: AssetId | str) -> List[RecommendationRecord]:
        """Return the service's recommendation log for the asset."""
        ...


class RecommendationClient:
    """
    Minimal HTTP client for the decision service.

    Calls are made once: no retry and no caching. Every failure surfaces as
    RecommendationServiceError so callers can show an "unavailable" state.
    """

    def __init__(self, base_url: str, *, timeout: float = 30.0, session: Optional[requests.Session] = None):
        """Initialize with the service base URL and a request timeout."""
        self.base_url = str(base_url).rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    def _decode(self, resp: requests.Response, what: str) -> Any:
        """Return the JSON body of a 200 response or raise RecommendationServiceError."""
        if resp.status_code != 200:
            error_text = (resp.text or "")[:200]
            raise RecommendationServiceError(
                f"{what} failed with status {resp.status_code}: {error_text} "
                f"(url={mask_url(self.base_url)})"
            )
        try:
            return resp.json()
        except ValueError as exc:
            raise RecommendationServiceError(f"{what} returned non-JSON response: {resp.text[:200]}") from exc

    def _post_recommendation(self, asset: AssetId, price: float, change_24h: float) -> str:
        payload = {"asset": asset.value, "price": price, "change24h": change_24h}
        logger.debug("Recommendation POST payload: %s", payload)
        try:
            resp = self.session.post(f"{self.base_url}/recommendation", json=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as exc:
            raise RecommendationServiceError(f"Recommendation request failed: {exc}") from exc

        data = self._decode(resp, "Recommendation request")
        label = data.get("recommendation") if isinstance(data, dict) else None
        if not isinstance(label, str) or not label.strip():
            raise RecommendationServiceError(f"Recommendation response has no label: {str(data)[:200]}")
        return label.strip()

    def _fetch_history(self, asset: AssetId) -> List[RecommendationRecord]:
        try:
            resp = self.session.get(
                f"{self.base_url}/history", params={"asset": asset.value}, timeout=self.timeout
            )
        except requests.exceptions.RequestException as exc:
            raise RecommendationServiceError(f"History request failed: {exc}") from exc

        data = self._decode(resp, "History request")
        if not isinstance(data, list):
            raise RecommendationServiceError("History response is not a list")
        try:
            return [RecommendationRecord.model_validate(item) for item in data]
        except ValidationError as exc:
            raise RecommendationServiceError(f"History response has malformed entries: {exc}") from exc

    async def get_recommendation(self, asset_id: AssetId | str, quote: PriceQuote) -> str:
        """Ask the decision service for a label for (asset, price, 24h change)."""
        asset = resolve_asset(asset_id)
        label = await asyncio.to_thread(self._post_recommendation, asset, quote.price, quote.change_24h)
        logger.info(
            "Received recommendation",
            extra={"asset": asset.value, "price": quote.price, "is_live": quote.is_live, "recommendation": label},
        )
        return label

    async def get_history(self, asset_id: AssetId | str) -> List[RecommendationRecord]:
        """Read the decision service's recommendation log for an asset."""
        asset = resolve_asset(asset_id)
        records = await asyncio.to_thread(self._fetch_history, asset)
        logger.debug("Fetched recommendation history", extra={"asset": asset.value, "records": len(records)})
        return records
