"""
Local mutation queue routes: enqueue, inspect, retry, discard.

Handlers are async so queue and state changes stay on the event loop the
sync driver runs on.
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from fieldsync.api.deps import get_sync_engine
from fieldsync.errors import InvalidMutationError
from fieldsync.models.mutation import MutationOperation, MutationRecord
from fieldsync.sync.engine import SyncEngine

router = APIRouter()


class EnqueueRequest(BaseModel):
    resource: str
    operation: MutationOperation
    record_id: str
    payload: Dict[str, Any]
    tenant_id: Optional[str] = None  # defaults to the active tenant


class EnqueueResponse(BaseModel):
    id: int


class PendingCountResponse(BaseModel):
    tenant_id: str
    pending_count: int


def _tenant(sync: SyncEngine, tenant_id: Optional[str] = None) -> str:
    tenant_id = tenant_id or sync.context.tenant_id
    if not tenant_id:
        raise HTTPException(status_code=409, detail="No active tenant")
    return tenant_id


def _owned_item(sync: SyncEngine, item_id: int) -> MutationRecord:
    """Fetch an item belonging to the active tenant, or 404."""
    item = sync.queue.get_item(item_id)
    if item is None or item.tenant_id != sync.context.tenant_id:
        raise HTTPException(status_code=404, detail="Queue item not found")
    return item


@router.post("", response_model=EnqueueResponse, status_code=201)
async def enqueue(request: EnqueueRequest, sync: SyncEngine = Depends(get_sync_engine)):
    """Record a local write for later replay."""
    tenant_id = _tenant(sync, request.tenant_id)
    try:
        item_id = sync.enqueue(
            request.resource,
            request.operation,
            request.record_id,
            request.payload,
            tenant_id=tenant_id,
        )
    except InvalidMutationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return EnqueueResponse(id=item_id)


@router.get("/pending", response_model=List[MutationRecord])
async def pending_items(sync: SyncEngine = Depends(get_sync_engine)):
    """Items the next pass will send for the active tenant, oldest first."""
    return sync.get_pending_items(_tenant(sync))


@router.get("/items", response_model=List[MutationRecord])
async def all_items(limit: int = 50, sync: SyncEngine = Depends(get_sync_engine)):
    """Every queued item of the active tenant regardless of status, newest first."""
    return sync.queue.get_all_items(_tenant(sync), limit=limit)


@router.get("/count", response_model=PendingCountResponse)
async def pending_count(sync: SyncEngine = Depends(get_sync_engine)):
    tenant_id = _tenant(sync)
    return PendingCountResponse(tenant_id=tenant_id, pending_count=sync.get_pending_count(tenant_id))


@router.post("/{item_id}/retry", response_model=MutationRecord)
async def retry_item(item_id: int, sync: SyncEngine = Depends(get_sync_engine)):
    """Give a failed item a fresh retry budget."""
    _owned_item(sync, item_id)
    if not sync.retry_item(item_id):
        raise HTTPException(status_code=409, detail="Only failed items can be retried")
    sync.context.set_pending_count(sync.get_pending_count(sync.context.tenant_id))
    return sync.queue.get_item(item_id)


@router.delete("/{item_id}", status_code=204)
async def discard_item(item_id: int, sync: SyncEngine = Depends(get_sync_engine)):
    """Permanently drop a queued item. Cannot be undone."""
    _owned_item(sync, item_id)
    if not sync.discard_item(item_id):
        raise HTTPException(status_code=409, detail="Item is being synced")
    sync.context.set_pending_count(sync.get_pending_count(sync.context.tenant_id))
