"""
SyncDriver: one synchronization pass for the active tenant.

Flow for a pass:
  1. Bail out if there is no tenant or a pass is already running
  2. Re-queue items an interrupted pass left syncing, read pending items (FIFO) and collapse superseded updates (LWW)
  3. For each item in order: progress -> syncing -> remote apply
     -> synced, or mark_failed (back to pending, or failed at max retries)
  4. Final progress, purge synced rows, refresh the pending count
  5. Aggregate status: success (reverts to idle after a short window) or error

Per-item failures are recorded on the item and never stop the pass. Anything
raised outside the per-item handling (e.g. the initial read failing) ends
the pass with status=error; items already processed keep their state and
the item in flight goes back to pending. A cancelled pass does the same and
leaves status idle.
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from fieldsync.queue.mutations import MutationQueue
from fieldsync.remote.client import RemoteApplier
from fieldsync.sync.conflicts import (
    build_conflict_notifications,
    collapse_updates,
    superseded_by,
)
from fieldsync.sync.state import SyncContext, SyncProgress, SyncStatus

logger = logging.getLogger(__name__)

SUCCESS_DISPLAY_SECONDS = 3.0


@dataclass(frozen=True)
class SyncPassResult:
    total: int
    succeeded: int
    failed: int
    collapsed: int = 0


def _error_message(exc: BaseException) -> str:
    return str(exc) or exc.__class__.__name__


class SyncDriver:
    """Drains the mutation queue for the active tenant, one pass at a time."""

    def __init__(
        self,
        queue: MutationQueue,
        context: SyncContext,
        remote: RemoteApplier,
        success_display_seconds: float = SUCCESS_DISPLAY_SECONDS,
    ):
        self.queue = queue
        self.context = context
        self.remote = remote
        self.success_display_seconds = success_display_seconds
        self._running = False
        # Bumped when a pass starts sending; a stale success->idle revert sees a newer epoch and does nothing
        self._epoch = 0
        self._revert_handle: Optional[asyncio.TimerHandle] = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def run_pass(self) -> Optional[SyncPassResult]:
        """
        Run one pass. Safe to call at any time.

        Returns:
            A SyncPassResult, or None when the pass was skipped (no tenant,
            already running, nothing to send) or aborted with an error.
        """
        tenant_id = self.context.tenant_id
        if self._running or not tenant_id:
            return None

        self._running = True
        try:
            return await self._run(tenant_id)
        except asyncio.CancelledError:
            logger.warning("Sync pass for tenant %s cancelled", tenant_id)
            self.context.update(status=SyncStatus.IDLE, progress=None)
            raise
        except Exception as exc:
            logger.exception("Sync pass for tenant %s aborted", tenant_id)
            self.context.update(status=SyncStatus.ERROR, progress=None, last_error=_error_message(exc))
            return None
        finally:
            self._running = False

    async def _run(self, tenant_id: str) -> Optional[SyncPassResult]:
        # No pass is running, so anything still syncing was orphaned by an interrupted one
        self.queue.requeue_stale_syncing(tenant_id)
        pending = self.queue.get_pending_items(tenant_id)
        items = collapse_updates(pending)
        skipped = superseded_by(pending, items)

        # Superseded updates are folded into the surviving one; they go through
        # syncing -> synced without being sent and are purged with the pass.
        for record in skipped:
            self.queue.mark_syncing(record.id)
            self.queue.mark_synced(record.id)
        if skipped:
            logger.info("Collapsed %d superseded update(s) for tenant %s", len(skipped), tenant_id)
            self.context.add_conflict_notifications(build_conflict_notifications(skipped))

        if not items:
            if skipped:
                self.queue.clear_synced(tenant_id)
                self._refresh_pending_count(tenant_id)
            return None

        total = len(items)
        self._epoch += 1
        logger.info("Sync pass starting: %d item(s) for tenant %s", total, tenant_id)
        self.context.update(
            status=SyncStatus.SYNCING,
            progress=SyncProgress(current=0, total=total),
            last_error=None,
        )

        succeeded = 0
        failed = 0
        for index, record in enumerate(items):
            self.context.set_progress(SyncProgress(current=index, total=total))
            if await self._process_item(record):
                succeeded += 1
            else:
                failed += 1

        self.context.set_progress(SyncProgress(current=total, total=total))
        self.queue.clear_synced(tenant_id)
        self._refresh_pending_count(tenant_id)

        result = SyncPassResult(total=total, succeeded=succeeded, failed=failed, collapsed=len(skipped))
        self._finish(result)
        return result

    async def _process_item(self, record) -> bool:
        """
        Send one claimed item and record the outcome. Returns True on success.

        If anything stops the item between mark_syncing and the outcome being
        stored (a storage error, cancellation), the item is released back to
        pending before the exception propagates.
        """
        self.queue.mark_syncing(record.id)
        settled = False
        try:
            try:
                await self.remote.apply_mutation(record)
            except Exception as exc:
                message = _error_message(exc)
                status = self.queue.mark_failed(record.id, message)
                settled = True
                logger.warning(
                    "Item #%s (%s %s/%s) failed: %s -> %s",
                    record.id,
                    record.operation.value,
                    record.resource,
                    record.record_id,
                    message,
                    status.value if status else "gone",
                )
                return False
            self.queue.mark_synced(record.id)
            settled = True
            return True
        finally:
            if not settled:
                self._release(record.id)

    def _release(self, record_id: int) -> None:
        try:
            self.queue.release_syncing(record_id)
        except Exception:
            logger.exception("Could not release item #%s; it is re-queued on the next pass", record_id)

    def _refresh_pending_count(self, tenant_id: str) -> None:
        self.context.set_pending_count(self.queue.get_pending_count(tenant_id))

    def _finish(self, result: SyncPassResult) -> None:
        if result.failed and not result.succeeded:
            message = f"{result.failed} item(s) failed to sync"
            self.context.update(status=SyncStatus.ERROR, progress=None, last_error=message)
            logger.warning("Sync pass finished: %s", message)
        elif result.failed:
            message = f"{result.failed} item(s) failed, {result.succeeded} synced"
            self.context.update(status=SyncStatus.ERROR, progress=None, last_error=message)
            logger.warning("Sync pass finished: %s", message)
        else:
            self.context.update(status=SyncStatus.SUCCESS, progress=None, last_error=None)
            logger.info("Sync pass finished: %d item(s) synced", result.succeeded)
            self._schedule_idle_revert()

    def _schedule_idle_revert(self) -> None:
        if self._revert_handle is not None:
            self._revert_handle.cancel()
        loop = asyncio.get_running_loop()
        self._revert_handle = loop.call_later(
            self.success_display_seconds, self._revert_to_idle, self._epoch
        )

    def _revert_to_idle(self, epoch: int) -> None:
        self._revert_handle = None
        if epoch != self._epoch or self._running:
            return
        if self.context.state.status == SyncStatus.SUCCESS:
            self.context.set_status(SyncStatus.IDLE)

    def cancel_pending_revert(self) -> None:
        """Drop a scheduled success->idle revert (used on shutdown)."""
        if self._revert_handle is not None:
            self._revert_handle.cancel()
            self._revert_handle = None
