"""Endpoints to trigger and inspect log syncing."""

from typing import Annotated

from fastapi import APIRouter, Depends

from ..config import Settings
from ..dependencies import get_settings, get_store
from ..models.responses import SyncResult, SyncStatus
from ..services.async_io import sync_all_async, sync_status_async
from ..services.database import SessionStore

router = APIRouter(prefix="/api/sync", tags=["sync"])

StoreDep = Annotated[SessionStore, Depends(get_store)]


@router.post("", response_model=SyncResult)
async def run_sync(
    store: StoreDep, settings: Annotated[Settings, Depends(get_settings)]
) -> SyncResult:
    """Sync changed session logs from the Claude directory."""
    return await sync_all_async(store, settings.claude_dir)


@router.get("/status", response_model=SyncStatus)
async def get_sync_status(store: StoreDep) -> SyncStatus:
    return await sync_status_async(store)
