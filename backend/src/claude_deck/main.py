"""FastAPI application entry point for Claude Deck."""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse
from loguru import logger

from .config import Settings
from .routers import sessions, stats, sync
from .services.async_io import sync_all_async
from .services.background import BackgroundSyncer
from .services.database import SessionStore


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the store, optionally sync, and run the background syncer."""
    settings: Settings = app.state.settings
    logger.info("Starting Claude Deck API")

    store = SessionStore(settings.db_path)
    app.state.store = store
    logger.info(f"Session store ready at {settings.db_path}")

    if settings.sync_on_startup:
        await sync_all_async(store, settings.claude_dir)

    syncer: BackgroundSyncer | None = None
    if settings.sync_interval_seconds > 0:
        syncer = BackgroundSyncer(store, settings.claude_dir, settings.sync_interval_seconds)
        syncer.start()

    yield

    logger.info("Shutting down Claude Deck API")
    if syncer is not None:
        await syncer.stop()
    store.close()


def create_app(settings: Settings | None = None) -> FastAPI:
    app = FastAPI(
        title="Claude Deck",
        description="Cost and behavior analytics for Claude Code session logs",
        version="0.1.0",
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
    )
    app.state.settings = settings or Settings.from_env()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(sessions.router)
    app.include_router(stats.router)
    app.include_router(sync.router)

    @app.get("/health")
    async def health() -> dict[str, str]:
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.get("/")
    async def root() -> dict[str, str]:
        return {"message": "Claude Deck API", "docs": "/docs"}

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("claude_deck.main:app", host="127.0.0.1", port=7722, reload=True)
