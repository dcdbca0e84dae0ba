"""HTTP API exposing refreshed quotes, chart and recommendation history."""

import datetime as dt
import hmac
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status
from pydantic import BaseModel

from tradewatch.assets import AssetId
from tradewatch.config import settings
from tradewatch.domain import (
    AssetStatus,
    AssetView,
    ChartPoint,
    CycleOutcome,
    CyclePhase,
    PriceQuote,
    RecommendationRecord,
    signal_for,
)
from tradewatch.errors import RecommendationServiceError, UnknownAssetError
from tradewatch.orchestrator import RefreshOrchestrator
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="api")


def require_api_key(x_api_key: str | None = Header(default=None)):
    """Validate the X-API-Key header against the static api_key setting."""
    if not settings.api_key:
        logger.debug("No API key configured; allowing all requests")
        return

    if not x_api_key:
        logger.debug("No API key provided")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing API key")

    if hmac.compare_digest(str(x_api_key), str(settings.api_key)):
        return

    logger.debug("Invalid API key provided")
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid API key")


def get_orchestrator(request: Request) -> RefreshOrchestrator:
    """Return the process-wide orchestrator created at startup."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Refresh service not started")
    return orchestrator


router = APIRouter(dependencies=[Depends(require_api_key)])


class AssetViewResponse(BaseModel):
    """Per-asset view rendered by the front end."""
    asset: AssetId
    status: AssetStatus
    quote: Optional[PriceQuote] = None
    recommendation: Optional[str] = None
    signal: Optional[str] = None
    reason: Optional[str] = None
    display: Optional[str] = None
    updated_at: Optional[dt.datetime] = None


class ChartResponse(BaseModel):
    """Chart points for the selected asset and their provenance."""
    asset: AssetId
    is_live: bool
    points: list[ChartPoint]


class HistoryItem(BaseModel):
    """Single entry of the recommendation log."""
    timestamp: dt.datetime
    price: float
    price_change: float
    recommendation: str
    signal: Optional[str] = None


class HistoryResponse(BaseModel):
    """Recommendation log for the selected asset."""
    asset: AssetId
    items: list[HistoryItem]
    error: Optional[str] = None


class SelectionRequest(BaseModel):
    """Incoming asset selection."""
    asset_id: str


class RefreshResponse(BaseModel):
    """Outcome of a manually triggered refresh cycle."""
    outcome: CycleOutcome
    cycle_count: int


class StatusResponse(BaseModel):
    """Refresh bookkeeping and the transient "updated" indicator."""
    cycle_count: int
    last_completed_at: Optional[dt.datetime] = None
    phase: CyclePhase
    last_outcome: Optional[CycleOutcome] = None
    in_progress: bool
    recently_updated: bool
    selected_asset: AssetId
    tracked_assets: list[AssetId]


def _to_view_response(view: AssetView) -> AssetViewResponse:
    """Convert an AssetView into the serialized API shape."""
    display = view.quote.to_display_strings()["summary"] if view.quote else None
    return AssetViewResponse(
        asset=view.asset,
        status=view.status,
        quote=view.quote,
        recommendation=view.recommendation,
        signal=view.signal,
        reason=view.reason,
        display=display,
        updated_at=view.updated_at,
    )


def _to_history_item(record: RecommendationRecord) -> HistoryItem:
    """Convert a recommendation record (epoch millis) into the API shape."""
    return HistoryItem(
        timestamp=dt.datetime.fromtimestamp(record.timestamp / 1000.0, tz=dt.timezone.utc),
        price=record.price,
        price_change=record.price_change,
        recommendation=record.recommendation,
        signal=signal_for(record.recommendation),
    )


def _lookup_view(orchestrator: RefreshOrchestrator, asset_id: str) -> AssetView:
    """Return the view of a tracked asset or raise a 404."""
    try:
        return orchestrator.view_for(asset_id)
    except (UnknownAssetError, KeyError):
        raise HTTPException(status_code=404, detail=f"Unknown asset: {asset_id}")


@router.get("/assets", response_model=list[AssetViewResponse])
def list_assets(orchestrator: RefreshOrchestrator = Depends(get_orchestrator)):
    """Return the current view of every tracked asset."""
    return [_to_view_response(orchestrator.views[a]) for a in orchestrator.assets]


@router.get("/assets/{asset_id}", response_model=AssetViewResponse)
def get_asset(asset_id: str, orchestrator: RefreshOrchestrator = Depends(get_orchestrator)):
    """Return the current view of one asset."""
    return _to_view_response(_lookup_view(orchestrator, asset_id))


@router.get("/chart", response_model=ChartResponse)
def get_chart(orchestrator: RefreshOrchestrator = Depends(get_orchestrator)):
    """Return the chart series of the selected asset."""
    series = orchestrator.chart
    if series is None:
        raise HTTPException(status_code=404, detail="No chart data available yet.")
    return ChartResponse(asset=series.asset, is_live=series.is_live, points=series.points)


@router.get("/history", response_model=HistoryResponse)
def get_history(orchestrator: RefreshOrchestrator = Depends(get_orchestrator)):
    """Return the recommendation log of the selected asset."""
    history = orchestrator.history
    if history is None:
        raise HTTPException(status_code=404, detail="No recommendation history available yet.")
    return HistoryResponse(
        asset=history.asset,
        items=[_to_history_item(r) for r in history.records],
        error=history.error,
    )


@router.post("/history/refresh", response_model=HistoryResponse)
async def refresh_history(orchestrator: RefreshOrchestrator = Depends(get_orchestrator)):
    """Reload the recommendation log of the selected asset now."""
    try:
        history = await orchestrator.refresh_history()
    except RecommendationServiceError as exc:
        logger.warning("History refresh failed", extra={"error": str(exc)})
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Recommendation history unavailable")
    return HistoryResponse(asset=history.asset, items=[_to_history_item(r) for r in history.records])


@router.post("/selection", response_model=ChartResponse)
async def select_asset(req: SelectionRequest, orchestrator: RefreshOrchestrator = Depends(get_orchestrator)):
    """Select an asset and refresh its chart and history immediately."""
    _lookup_view(orchestrator, req.asset_id)
    try:
        await orchestrator.select_asset(req.asset_id)
    except RecommendationServiceError as exc:
        # The chart is already refreshed; the history error is kept on the history view.
        logger.warning("History refresh after selection failed", extra={"error": str(exc)})
    series = orchestrator.chart
    return ChartResponse(asset=series.asset, is_live=series.is_live, points=series.points)


@router.post("/refresh", response_model=RefreshResponse)
async def trigger_refresh(orchestrator: RefreshOrchestrator = Depends(get_orchestrator)):
    """Run a refresh cycle now; reports `skipped` if one is already running."""
    outcome = await orchestrator.run_cycle()
    return RefreshResponse(outcome=outcome, cycle_count=orchestrator.state.cycle_count)


@router.get("/status", response_model=StatusResponse)
def get_status(orchestrator: RefreshOrchestrator = Depends(get_orchestrator)):
    """Return refresh-cycle bookkeeping."""
    state = orchestrator.state
    return StatusResponse(
        cycle_count=state.cycle_count,
        last_completed_at=state.last_completed_at,
        phase=state.phase,
        last_outcome=state.last_outcome,
        in_progress=orchestrator.in_progress,
        recently_updated=orchestrator.recently_updated,
        selected_asset=orchestrator.selected_asset,
        tracked_assets=orchestrator.assets,
    )
