"""FastAPI dependencies."""
from fastapi import Request

from fieldsync.sync.engine import SyncEngine


def get_sync_engine(request: Request) -> SyncEngine:
    """Return the SyncEngine attached to the app by create_app()."""
    return request.app.state.sync_engine
