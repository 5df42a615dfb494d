"""
Wiring for the sync subsystem.

SyncEngine bundles the queue, the observable context, the driver and the
coordinator built from one Settings object, and exposes the operations the
rest of the application calls.
"""
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from fieldsync.config import Settings, get_settings
from fieldsync.errors import InvalidMutationError
from fieldsync.models.mutation import MutationOperation, MutationRecord
from fieldsync.queue.mutations import MutationQueue
from fieldsync.queue.store import QueueStore
from fieldsync.remote.client import RemoteApplier, build_remote_applier
from fieldsync.sync.coordinator import SyncCoordinator
from fieldsync.sync.driver import SyncDriver, SyncPassResult
from fieldsync.sync.state import Listener, SyncContext, SyncRunState, TenantProvider


@dataclass
class SyncEngine:
    queue: MutationQueue
    context: SyncContext
    driver: SyncDriver
    coordinator: SyncCoordinator

    def enqueue(
        self,
        resource: str,
        operation: MutationOperation,
        record_id: str,
        payload: Dict[str, Any],
        tenant_id: Optional[str] = None,
    ) -> int:
        """Queue a mutation for the given tenant, or the active one if omitted."""
        tenant_id = tenant_id or self.context.tenant_id
        if not tenant_id:
            raise InvalidMutationError("tenant_id is required (no active tenant)")
        record_pk = self.queue.enqueue(resource, operation, record_id, payload, tenant_id)
        if tenant_id == self.context.tenant_id:
            self.context.set_pending_count(self.queue.get_pending_count(tenant_id))
        return record_pk

    def get_pending_count(self, tenant_id: str) -> int:
        return self.queue.get_pending_count(tenant_id)

    def get_pending_items(self, tenant_id: str) -> List[MutationRecord]:
        return self.queue.get_pending_items(tenant_id)

    def retry_item(self, record_id: int) -> bool:
        return self.queue.retry_item(record_id)

    def discard_item(self, record_id: int) -> bool:
        return self.queue.discard_item(record_id)

    async def trigger_sync_now(self) -> Optional[SyncPassResult]:
        return await self.coordinator.trigger_sync_now()

    @property
    def state(self) -> SyncRunState:
        return self.context.state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        return self.context.subscribe(listener)


def build_sync_engine(
    engine=None,
    settings: Optional[Settings] = None,
    remote: Optional[RemoteApplier] = None,
    tenant_provider: Optional[TenantProvider] = None,
) -> SyncEngine:
    """
    Assemble a SyncEngine.

    Args:
        engine: SQLAlchemy engine. Defaults to fieldsync.db.engine.get_engine().
        settings: Defaults to get_settings().
        remote: Remote applier. Defaults to the one selected by remote_mode.
        tenant_provider: Zero-arg callable returning the active tenant id.
            Defaults to reading settings.tenant_id.
    """
    settings = settings or get_settings()
    if engine is None:
        from fieldsync.db.engine import get_engine
        engine = get_engine()
    if remote is None:
        remote = build_remote_applier(settings)
    if tenant_provider is None:
        tenant_provider = lambda: settings.tenant_id  # noqa: E731

    queue = MutationQueue(QueueStore(engine), max_retries=settings.max_retries)
    context = SyncContext(tenant_provider, is_online=settings.start_online)
    driver = SyncDriver(
        queue,
        context,
        remote,
        success_display_seconds=settings.success_display_seconds,
    )
    coordinator = SyncCoordinator(
        driver,
        context,
        queue,
        pending_refresh_seconds=settings.pending_refresh_seconds,
    )
    return SyncEngine(queue=queue, context=context, driver=driver, coordinator=coordinator)
