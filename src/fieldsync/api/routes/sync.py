"""Sync trigger, status and connectivity routes."""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from fieldsync.api.deps import get_sync_engine
from fieldsync.sync.engine import SyncEngine

router = APIRouter()


class ProgressResponse(BaseModel):
    current: int
    total: int


class ConflictResponse(BaseModel):
    id: str
    resource: str
    record_id: str
    superseded: int
    message: str
    resolved_at: datetime


class SyncStatusResponse(BaseModel):
    is_online: bool
    status: str
    progress: Optional[ProgressResponse]
    pending_count: int
    last_error: Optional[str]
    tenant_id: Optional[str]
    conflicts: List[ConflictResponse]


class SyncTriggerResponse(BaseModel):
    ran: bool
    total: int = 0
    succeeded: int = 0
    failed: int = 0
    collapsed: int = 0
    status: str


class ConnectivityRequest(BaseModel):
    online: bool


def _status_response(sync: SyncEngine) -> SyncStatusResponse:
    state = sync.state
    return SyncStatusResponse(
        is_online=state.is_online,
        status=state.status.value,
        progress=(
            ProgressResponse(current=state.progress.current, total=state.progress.total)
            if state.progress
            else None
        ),
        pending_count=state.pending_count,
        last_error=state.last_error,
        tenant_id=sync.context.tenant_id or None,
        conflicts=[
            ConflictResponse(
                id=n.id,
                resource=n.resource,
                record_id=n.record_id,
                superseded=n.superseded,
                message=n.message,
                resolved_at=n.resolved_at,
            )
            for n in state.conflict_notifications
        ],
    )


@router.post("/trigger", response_model=SyncTriggerResponse)
async def trigger_sync(sync: SyncEngine = Depends(get_sync_engine)):
    """
    Run one sync pass now and wait for it.
    ran=False means the pass was skipped (nothing pending, no tenant, or a
    pass already in flight) or aborted; see status/last_error.
    """
    result = await sync.trigger_sync_now()
    status = sync.state.status.value
    if result is None:
        return SyncTriggerResponse(ran=False, status=status)
    return SyncTriggerResponse(
        ran=True,
        total=result.total,
        succeeded=result.succeeded,
        failed=result.failed,
        collapsed=result.collapsed,
        status=status,
    )


@router.get("/status", response_model=SyncStatusResponse)
async def sync_status(sync: SyncEngine = Depends(get_sync_engine)):
    return _status_response(sync)


@router.post("/connectivity", response_model=SyncStatusResponse)
async def set_connectivity(request: ConnectivityRequest, sync: SyncEngine = Depends(get_sync_engine)):
    """Feed a platform connectivity event. Coming online starts a pass in the background."""
    sync.coordinator.set_online(request.online)
    return _status_response(sync)


@router.delete("/conflicts", status_code=204)
async def clear_conflicts(sync: SyncEngine = Depends(get_sync_engine)):
    sync.context.clear_conflict_notifications()
