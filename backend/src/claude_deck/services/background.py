"""Periodic background re-sync of the session store.

Keeps the store fresh while the server runs, without blocking requests on
filesystem scans.
"""

import asyncio
from pathlib import Path

from loguru import logger

from .async_io import sync_all_async
from .database import SessionStore


class BackgroundSyncer:
    """Re-syncs ``claude_dir`` into ``store`` every ``interval`` seconds."""

    def __init__(self, store: SessionStore, claude_dir: Path, interval: float) -> None:
        self.store = store
        self.claude_dir = claude_dir
        self.interval = interval
        self._task: "asyncio.Task[None] | None" = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the background loop."""
        if self.is_running:
            return
        self._task = asyncio.create_task(self._loop())
        logger.info(f"Background sync started (every {self.interval}s)")

    async def stop(self) -> None:
        """Stop the background loop."""
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Background sync stopped")

    async def _loop(self) -> None:
        while True:
            try:
                await asyncio.sleep(self.interval)
                await sync_all_async(self.store, self.claude_dir)
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in background sync: {e}")
                # Continue running even on errors
