"""
SyncCoordinator: connectivity and status source of truth.

Mirrors the platform's online/offline signal into the SyncContext, starts a
sync pass when the device comes back online, and keeps the pending-count
badge fresh on a fixed interval. It never touches queue items itself.
"""
import asyncio
import logging
from typing import Optional, Set

from fieldsync.queue.mutations import MutationQueue
from fieldsync.sync.driver import SyncDriver, SyncPassResult
from fieldsync.sync.state import SyncContext

logger = logging.getLogger(__name__)


class SyncCoordinator:
    def __init__(
        self,
        driver: SyncDriver,
        context: SyncContext,
        queue: MutationQueue,
        pending_refresh_seconds: Optional[float] = None,
    ):
        self.driver = driver
        self.context = context
        self.queue = queue
        self.pending_refresh_seconds = pending_refresh_seconds
        self.scheduler = None
        self._tasks: Set[asyncio.Task] = set()

    def set_online(self, is_online: bool) -> Optional[asyncio.Task]:
        """
        Feed a connectivity event.

        Returns:
            The task running the triggered pass on an offline->online
            transition with an active tenant, else None. Must be called from
            inside the event loop when a pass may be triggered.
        """
        was_online = self.context.state.is_online
        if was_online == is_online:
            return None

        self.context.set_online(is_online)
        logger.info("Connectivity changed: %s", "online" if is_online else "offline")

        if is_online and self.context.tenant_id:
            return self._spawn_pass()
        return None

    async def trigger_sync_now(self) -> Optional[SyncPassResult]:
        """Run one pass and wait for it (manual "sync now")."""
        return await self.driver.run_pass()

    async def refresh_pending_count(self) -> None:
        """Reload the pending badge. Errors are logged; the next tick retries."""
        tenant_id = self.context.tenant_id
        if not tenant_id:
            return
        try:
            count = self.queue.get_pending_count(tenant_id)
        except Exception:
            logger.warning("Pending count refresh failed", exc_info=True)
            return
        self.context.set_pending_count(count)

    def start(self) -> None:
        """
        Start the periodic refresh and load the initial badge. Items a
        previous process left syncing are re-queued first. If the device is
        already online with an active tenant, one pass is started too.
        Must be called from inside the running event loop.
        """
        from fieldsync.scheduler.jobs import build_scheduler

        tenant_id = self.context.tenant_id
        if tenant_id and not self.driver.is_running:
            try:
                self.queue.requeue_stale_syncing(tenant_id)
            except Exception:
                logger.warning("Could not re-queue stale items; the next pass retries", exc_info=True)

        self.scheduler = build_scheduler(self, self.pending_refresh_seconds)
        self.scheduler.start()
        loop = asyncio.get_running_loop()
        self._track(loop.create_task(self.refresh_pending_count()))
        if self.context.state.is_online and tenant_id:
            self._spawn_pass()

    def shutdown(self) -> None:
        """Stop the scheduler and cancel passes in flight. See stop() to also wait for them."""
        if self.scheduler is not None and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self.scheduler = None
        for task in list(self._tasks):
            task.cancel()
        self.driver.cancel_pending_revert()

    async def stop(self) -> None:
        """Shut down and wait until cancelled passes have released their items."""
        self.shutdown()
        await self.wait_idle()

    async def wait_idle(self) -> None:
        """Wait for any passes started by connectivity events to finish."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def _spawn_pass(self) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(self.driver.run_pass())
        return self._track(task)

    def _track(self, task: asyncio.Task) -> asyncio.Task:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task
