"""Session-related API endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query

from ..dependencies import get_store
from ..models.responses import (
    SessionInsights,
    SessionListResponse,
    SessionSummary,
    SubagentAggregate,
    TimelineEntry,
)
from ..services.async_io import (
    get_insights_async,
    get_session_async,
    get_subagents_async,
    get_timeline_async,
    list_sessions_async,
)
from ..services.database import SessionStore

router = APIRouter(prefix="/api/sessions", tags=["sessions"])

StoreDep = Annotated[SessionStore, Depends(get_store)]


@router.get("", response_model=SessionListResponse)
async def list_sessions(
    store: StoreDep,
    project: str | None = Query(default=None),
    model: str | None = Query(default=None),
    after: str | None = Query(default=None),
    before: str | None = Query(default=None),
    sort: str | None = Query(default=None, description="date, cost, tokens or duration"),
    limit: int = Query(default=50, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
) -> SessionListResponse:
    """List stored sessions, newest first unless another sort is requested."""
    return await list_sessions_async(
        store,
        project=project,
        model=model,
        after=after,
        before=before,
        sort=sort,
        limit=limit,
        offset=offset,
    )


@router.get("/{session_id}", response_model=SessionSummary)
async def get_session(session_id: str, store: StoreDep) -> SessionSummary:
    summary = await get_session_async(store, session_id)
    if not summary:
        raise HTTPException(status_code=404, detail="Session not found")
    return summary


@router.get("/{session_id}/timeline", response_model=list[TimelineEntry])
async def get_timeline(session_id: str, store: StoreDep) -> list[TimelineEntry]:
    """Tool calls and messages of a session in time order.

    Sub-agent tool calls are included, tagged with their ``subagent_id``.
    """
    return await get_timeline_async(store, session_id)


@router.get("/{session_id}/subagents", response_model=list[SubagentAggregate])
async def get_subagents(session_id: str, store: StoreDep) -> list[SubagentAggregate]:
    return await get_subagents_async(store, session_id)


@router.get("/{session_id}/insights", response_model=SessionInsights)
async def get_insights(session_id: str, store: StoreDep) -> SessionInsights:
    insights = await get_insights_async(store, session_id)
    if insights is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return insights
