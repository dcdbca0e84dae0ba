"""FastAPI application setup for the tradewatch refresh service."""

from contextlib import asynccontextmanager

from fastapi import FastAPI

from .api import router as api_router
from .config import settings
from .orchestrator import build_orchestrator
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Own one orchestrator for the lifetime of the process."""
    orchestrator = build_orchestrator(settings)
    app.state.orchestrator = orchestrator
    if settings.autostart_refresh:
        orchestrator.start()
    else:
        logger.info("Automatic refresh disabled (TRADEWATCH_AUTOSTART_REFRESH=false)")
    try:
        yield
    finally:
        await orchestrator.stop()
        app.state.orchestrator = None


app = FastAPI(title="Tradewatch", lifespan=lifespan)

# API routes
app.include_router(api_router, prefix="/v1")
