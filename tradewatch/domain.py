"""Domain vocabulary and schemas for quotes, chart series and per-asset views.

This module defines the contract between the refresh layer and any
presentation layer: enums, Pydantic models and the small constructors that
keep the live/stale tagging consistent. No fetching logic lives here.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from tradewatch.assets import AssetId


class _FrozenModel(BaseModel):
    """Base model for immutable value objects."""

    model_config = ConfigDict(frozen=True, extra="forbid")


class AssetStatus(str, Enum):
    """What the presentation layer should render for an asset."""
    LOADING = "loading"
    LIVE = "live"
    STALE = "stale"
    UNAVAILABLE = "unavailable"


class CyclePhase(str, Enum):
    """Step of the refresh cycle currently executing."""
    IDLE = "idle"
    FETCHING_ASSETS = "fetching_assets"
    FETCHING_CHART = "fetching_chart"
    FETCHING_HISTORY = "fetching_history"


class CycleOutcome(str, Enum):
    """Result of a single attempt to run a refresh cycle."""
    COMPLETED = "completed"
    PARTIAL_FAILURE = "partial_failure"
    SKIPPED = "skipped"


class PriceQuote(_FrozenModel):
    """Priced snapshot of an asset with live/stale provenance."""
    price: float = Field(ge=0)
    change_24h: float
    is_live: bool
    observed_at: Optional[datetime] = None

    @classmethod
    def synthetic(cls) -> "PriceQuote":
        """Placeholder used when neither live nor last-known-good data exists."""
        return cls(price=0.0, change_24h=0.0, is_live=False, observed_at=None)

    @property
    def is_synthetic(self) -> bool:
        """True for the placeholder quote (never observed upstream)."""
        return not self.is_live and self.observed_at is None

    def as_stale(self) -> "PriceQuote":
        """Return a copy tagged as fallback data."""
        return self.model_copy(update={"is_live": False})

    def to_display_strings(self) -> dict:
        """Return display-friendly strings for API serialization."""
        return {
            "price": f"${self.price:.2f}",
            "change_24h": f"{self.change_24h:.2f}%",
            "summary": f"${self.price:.2f} ({self.change_24h:.2f}%)",
            "direction": "up" if self.change_24h >= 0 else "down",
        }


class ChartPoint(_FrozenModel):
    """One daily sample of the price series."""
    timestamp: datetime
    value: float


class ChartSeries(_FrozenModel):
    """Ordered chart samples plus their provenance."""
    asset: AssetId
    points: List[ChartPoint]
    is_live: bool


# Epoch millis stay below 1e14 until year 5138; larger values are micros or nanos.
_NANOS_THRESHOLD = 10 ** 17
_MICROS_THRESHOLD = 10 ** 14
# 9999-12-31T23:59:59.999Z
MAX_EPOCH_MILLIS = 253_402_300_799_999


class RecommendationRecord(BaseModel):
    """Entry of the decision service's recommendation log."""
    model_config = ConfigDict(populate_by_name=True)

    timestamp: int  # epoch millis
    price: float
    price_change: float = Field(alias="priceChange")
    recommendation: str

    @field_validator("timestamp", mode="after")
    @classmethod
    def normalize_to_millis(cls, v: int) -> int:
        """Accept epoch nanos, micros or millis; store millis within datetime range."""
        if v >= _NANOS_THRESHOLD:
            v //= 1_000_000
        elif v >= _MICROS_THRESHOLD:
            v //= 1_000
        if not 0 <= v <= MAX_EPOCH_MILLIS:
            raise ValueError(f"timestamp {v} is outside the supported range")
        return v


def signal_for(label: Optional[str]) -> Optional[str]:
    """Classify a recommendation label as a buy or wait signal."""
    if label is None:
        return None
    return "buy" if "BUY" in label.upper() else "wait"


class AssetView(BaseModel):
    """Tagged union rendered by the presentation layer for a single asset.

    `status` is the tag: LOADING carries nothing, LIVE and STALE carry the
    quote and recommendation, UNAVAILABLE carries a reason (and the quote when
    one was available).
    """
    asset: AssetId
    status: AssetStatus
    quote: Optional[PriceQuote] = None
    recommendation: Optional[str] = None
    reason: Optional[str] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def loading(cls, asset: AssetId) -> "AssetView":
        """Initial view before the first refresh finishes."""
        return cls(asset=asset, status=AssetStatus.LOADING)

    @classmethod
    def from_quote(cls, asset: AssetId, quote: PriceQuote, recommendation: str,
                   updated_at: Optional[datetime] = None) -> "AssetView":
        """LIVE or STALE depending on the quote's staleness tag."""
        status = AssetStatus.LIVE if quote.is_live else AssetStatus.STALE
        return cls(asset=asset, status=status, quote=quote, recommendation=recommendation,
                   updated_at=updated_at)

    @classmethod
    def unavailable(cls, asset: AssetId, reason: str, quote: Optional[PriceQuote] = None,
                    updated_at: Optional[datetime] = None) -> "AssetView":
        """View for an asset whose recommendation could not be produced."""
        return cls(asset=asset, status=AssetStatus.UNAVAILABLE, quote=quote, reason=reason,
                   updated_at=updated_at)

    @property
    def signal(self) -> Optional[str]:
        """Buy/wait classification of the recommendation, if any."""
        return signal_for(self.recommendation)


class HistoryView(BaseModel):
    """Recommendation log for the selected asset."""
    asset: AssetId
    records: List[RecommendationRecord] = Field(default_factory=list)
    error: Optional[str] = None


class RefreshCycleState(BaseModel):
    """Process-wide bookkeeping for scheduled refresh cycles."""
    cycle_count: int = Field(default=0, ge=0)
    last_completed_at: Optional[datetime] = None
    phase: CyclePhase = CyclePhase.IDLE
    last_outcome: Optional[CycleOutcome] = None
