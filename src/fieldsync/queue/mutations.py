"""
MutationQueue: enqueue API and the per-record retry/status state machine.

Retry policy:
  - Items start as pending with attempts=0.
  - mark_failed increments attempts; the item stays pending until
    max_retries is reached, then becomes failed and stops retrying.
  - failed items stay visible (and counted) until the user retries or
    discards them.
  - synced items are purged by clear_synced() at the end of a pass.
"""
import logging
import uuid
from typing import Any, Dict, List, Optional

from fieldsync.errors import InvalidMutationError
from fieldsync.models.mutation import (
    MutationOperation,
    MutationRecord,
    MutationStatus,
    utc_now,
)
from fieldsync.queue.store import QueueStore

logger = logging.getLogger(__name__)

MAX_RETRIES = 3
MAX_ERROR_LENGTH = 500


class MutationQueue:
    """High-level queue operations over a QueueStore."""

    def __init__(self, store: QueueStore, max_retries: int = MAX_RETRIES):
        self.store = store
        self.max_retries = max_retries

    # ─── Enqueue ──────────────────────────────────────────────────────────────

    def enqueue(
        self,
        resource: str,
        operation: MutationOperation,
        record_id: str,
        payload: Dict[str, Any],
        tenant_id: str,
    ) -> int:
        """
        Queue a local write for replay against the backend.

        Every call gets a fresh idempotency key, even when an identical
        mutation is already queued; deduplication is the backend's job.

        Returns:
            The store-assigned id of the new record.

        Raises:
            InvalidMutationError: if a required field is missing or empty.
        """
        for name, value in (("resource", resource), ("record_id", record_id), ("tenant_id", tenant_id)):
            if not value:
                raise InvalidMutationError(f"{name} is required")
        if payload is None:
            raise InvalidMutationError("payload is required")
        try:
            operation = MutationOperation(operation)
        except ValueError:
            raise InvalidMutationError(f"unknown operation: {operation!r}")

        record = MutationRecord(
            idempotency_key=uuid.uuid4().hex,
            resource=resource,
            operation=operation,
            record_id=record_id,
            payload=dict(payload),
            created_at=utc_now(),
            status=MutationStatus.PENDING,
            attempts=0,
            last_attempt_at=None,
            last_error=None,
            tenant_id=tenant_id,
        )
        record_pk = self.store.insert(record)
        logger.debug("Queued %s %s/%s as #%s", operation.value, resource, record_id, record_pk)
        return record_pk

    # ─── Queries ──────────────────────────────────────────────────────────────

    def get_pending_count(self, tenant_id: str) -> int:
        """Pending + failed items for the badge."""
        return self.store.count_outstanding_for_tenant(tenant_id)

    def get_pending_items(self, tenant_id: str) -> List[MutationRecord]:
        """Items the next pass will process, oldest first. Failed items are excluded."""
        return self.store.query_pending_for_tenant(tenant_id)

    def get_all_items(self, tenant_id: str, limit: int = 50) -> List[MutationRecord]:
        """Every item regardless of status, newest first, for the sync panel."""
        return self.store.list_for_tenant(tenant_id, limit=limit)

    def get_item(self, record_id: int) -> Optional[MutationRecord]:
        return self.store.get_by_id(record_id)

    # ─── Status transitions ───────────────────────────────────────────────────

    def mark_syncing(self, record_id: int) -> None:
        self.store.update_status(
            record_id,
            status=MutationStatus.SYNCING,
            last_attempt_at=utc_now(),
        )

    def mark_synced(self, record_id: int) -> None:
        self.store.update_status(record_id, status=MutationStatus.SYNCED)

    def mark_failed(self, record_id: int, error_message: str) -> Optional[MutationStatus]:
        """
        Record a failed attempt.

        Returns:
            The status the record ended in (pending or failed), or None if
            the record no longer exists.
        """
        record = self.store.get_by_id(record_id)
        if record is None:
            return None

        attempts = (record.attempts or 0) + 1
        status = MutationStatus.FAILED if attempts >= self.max_retries else MutationStatus.PENDING
        self.store.update_status(
            record_id,
            status=status,
            attempts=attempts,
            last_attempt_at=utc_now(),
            last_error=(error_message or "")[:MAX_ERROR_LENGTH],
        )
        return status

    def release_syncing(self, record_id: int) -> bool:
        """
        Hand a claimed record back to the pending pool without counting an
        attempt. Used when a pass stops before the outcome of the remote call
        was recorded. The resend carries the same idempotency key.

        Returns False if the record is gone or no longer syncing.
        """
        record = self.store.get_by_id(record_id)
        if record is None or record.status != MutationStatus.SYNCING:
            return False
        return self.store.update_status(record_id, status=MutationStatus.PENDING)

    def requeue_stale_syncing(self, tenant_id: str) -> int:
        """
        Return syncing records left behind by an interrupted pass (crash,
        cancellation) to pending. Only valid while no pass is running.
        """
        count = self.store.reset_syncing_for_tenant(tenant_id)
        if count:
            logger.warning("Re-queued %d item(s) left syncing for tenant %s", count, tenant_id)
        return count

    # ─── User actions ─────────────────────────────────────────────────────────

    def retry_item(self, record_id: int) -> bool:
        """
        Put a failed item back in the pending pool with a fresh retry budget.

        Returns False if the item doesn't exist or isn't failed.
        """
        record = self.store.get_by_id(record_id)
        if record is None or record.status != MutationStatus.FAILED:
            return False
        self.store.update_status(
            record_id,
            status=MutationStatus.PENDING,
            attempts=0,
            last_error=None,
        )
        logger.info("Re-queued failed item #%s", record_id)
        return True

    def discard_item(self, record_id: int) -> bool:
        """
        Permanently delete a queued item. The mutation will never reach the
        backend. Refused while the item is being synced.
        """
        record = self.store.get_by_id(record_id)
        if record is None or record.status == MutationStatus.SYNCING:
            return False
        self.store.delete(record_id)
        logger.info("Discarded item #%s (%s)", record_id, record.status.value)
        return True

    # ─── Cleanup ──────────────────────────────────────────────────────────────

    def clear_synced(self, tenant_id: str) -> int:
        return self.store.delete_synced_for_tenant(tenant_id)
