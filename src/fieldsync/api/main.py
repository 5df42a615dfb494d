"""FastAPI application factory."""
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from fieldsync.api.routes import queue as queue_routes, sync as sync_routes
from fieldsync.sync.engine import SyncEngine, build_sync_engine


def create_app(sync_engine: Optional[SyncEngine] = None, start_coordinator: bool = True) -> FastAPI:
    """
    Build and return the FastAPI app.

    Args:
        sync_engine: Pre-built SyncEngine (tests inject one over an in-memory DB).
            Defaults to build_sync_engine() from settings.
        start_coordinator: Start the coordinator's scheduler on app startup.
    """
    sync_engine = sync_engine or build_sync_engine()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if start_coordinator:
            sync_engine.coordinator.start()
        yield
        await sync_engine.coordinator.stop()

    app = FastAPI(
        title="FieldSync API",
        description="Offline mutation queue and sync engine",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.sync_engine = sync_engine

    app.include_router(queue_routes.router, prefix="/queue", tags=["queue"])
    app.include_router(sync_routes.router, prefix="/sync", tags=["sync"])

    return app
