"""Async wrappers for blocking store and parse operations.

DuckDB queries and log parsing block; these helpers run them in a worker
thread via asyncio.to_thread so the FastAPI event loop stays responsive.
"""

import asyncio
from pathlib import Path

from ..models.responses import (
    SessionInsights,
    SessionListResponse,
    SessionSummary,
    StatsResponse,
    SubagentAggregate,
    SyncResult,
    SyncStatus,
    TimelineEntry,
)
from .database import SessionStore
from .ingest import sync_all

# ============================================================================
# Async Sync
# ============================================================================


async def sync_all_async(store: SessionStore, claude_dir: Path) -> SyncResult:
    """Sync all session logs in a thread pool."""
    return await asyncio.to_thread(sync_all, store, claude_dir)


async def sync_status_async(store: SessionStore) -> SyncStatus:
    return await asyncio.to_thread(store.sync_status)


# ============================================================================
# Async Queries
# ============================================================================


async def list_sessions_async(
    store: SessionStore,
    *,
    project: str | None = None,
    model: str | None = None,
    after: str | None = None,
    before: str | None = None,
    sort: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> SessionListResponse:
    def run() -> SessionListResponse:
        return store.list_sessions(
            project=project,
            model=model,
            after=after,
            before=before,
            sort=sort,
            limit=limit,
            offset=offset,
        )

    return await asyncio.to_thread(run)


async def get_session_async(store: SessionStore, session_id: str) -> SessionSummary | None:
    return await asyncio.to_thread(store.get_session, session_id)


async def get_timeline_async(store: SessionStore, session_id: str) -> list[TimelineEntry]:
    return await asyncio.to_thread(store.get_timeline, session_id)


async def get_subagents_async(store: SessionStore, session_id: str) -> list[SubagentAggregate]:
    return await asyncio.to_thread(store.get_subagents, session_id)


async def get_insights_async(store: SessionStore, session_id: str) -> SessionInsights | None:
    return await asyncio.to_thread(store.get_insights, session_id)


async def get_stats_async(
    store: SessionStore,
    *,
    after: str | None = None,
    before: str | None = None,
    model: str | None = None,
) -> StatsResponse:
    def run() -> StatsResponse:
        return store.get_stats(after=after, before=before, model=model)

    return await asyncio.to_thread(run)
