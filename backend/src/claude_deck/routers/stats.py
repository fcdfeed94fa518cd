"""Aggregate statistics and pricing endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from ..dependencies import get_store
from ..models.responses import StatsResponse
from ..services.async_io import get_stats_async
from ..services.database import SessionStore
from ..services.metrics import get_pricing

router = APIRouter(prefix="/api", tags=["stats"])


@router.get("/stats", response_model=StatsResponse)
async def get_stats(
    store: Annotated[SessionStore, Depends(get_store)],
    after: str | None = Query(default=None),
    before: str | None = Query(default=None),
    model: str | None = Query(default=None),
) -> StatsResponse:
    """Totals plus breakdowns by model, project, day and tool."""
    return await get_stats_async(store, after=after, before=before, model=model)


@router.get("/pricing")
async def get_pricing_endpoint() -> dict[str, dict[str, float]]:
    """Per-million-token prices for every known model."""
    return {model: pricing.model_dump() for model, pricing in get_pricing().items()}
