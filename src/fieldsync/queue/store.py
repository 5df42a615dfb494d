"""
Tenant-scoped persistence for MutationRecord rows.

Every method opens its own Session and commits before returning, so writes
are visible to the next read. SQLAlchemy errors propagate to the caller.
"""
import logging
from datetime import timezone
from typing import Any, List, Optional

from sqlalchemy import func
from sqlmodel import Session, col, select

from fieldsync.models.mutation import MutationRecord, MutationStatus, as_utc

logger = logging.getLogger(__name__)

OUTSTANDING_STATUSES = (MutationStatus.PENDING, MutationStatus.FAILED)


def _with_utc(record: Optional[MutationRecord]) -> Optional[MutationRecord]:
    if record is not None:
        record.created_at = as_utc(record.created_at)
        record.last_attempt_at = as_utc(record.last_attempt_at)
    return record


class QueueStore:
    """Repository over the mutationrecord table."""

    def __init__(self, engine):
        """
        Args:
            engine: SQLAlchemy engine (SQLModel create_engine result).
        """
        self.engine = engine

    def insert(self, record: MutationRecord) -> int:
        record.created_at = as_utc(record.created_at).astimezone(timezone.utc)
        with Session(self.engine) as s:
            s.add(record)
            s.commit()
            s.refresh(record)
            _with_utc(record)
            return record.id

    def get_by_id(self, record_id: int) -> Optional[MutationRecord]:
        with Session(self.engine) as s:
            return _with_utc(s.get(MutationRecord, record_id))

    def query_pending_for_tenant(self, tenant_id: str) -> List[MutationRecord]:
        """Pending records for a tenant, oldest first."""
        with Session(self.engine) as s:
            return [
                _with_utc(r)
                for r in s.exec(
                    select(MutationRecord)
                    .where(MutationRecord.tenant_id == tenant_id)
                    .where(MutationRecord.status == MutationStatus.PENDING)
                    .order_by(col(MutationRecord.created_at).asc(), col(MutationRecord.id).asc())
                ).all()
            ]

    def count_outstanding_for_tenant(self, tenant_id: str) -> int:
        """Count of pending + failed records, i.e. everything not yet on the backend."""
        with Session(self.engine) as s:
            return s.exec(
                select(func.count())
                .select_from(MutationRecord)
                .where(MutationRecord.tenant_id == tenant_id)
                .where(col(MutationRecord.status).in_(OUTSTANDING_STATUSES))
            ).one()

    def list_for_tenant(self, tenant_id: str, limit: int = 50) -> List[MutationRecord]:
        """All records for a tenant regardless of status, newest first."""
        with Session(self.engine) as s:
            return [
                _with_utc(r)
                for r in s.exec(
                    select(MutationRecord)
                    .where(MutationRecord.tenant_id == tenant_id)
                    .order_by(col(MutationRecord.created_at).desc(), col(MutationRecord.id).desc())
                    .limit(limit)
                ).all()
            ]

    def update_status(self, record_id: int, **fields: Any) -> bool:
        """Apply field changes to one record. Returns False if the id is absent."""
        with Session(self.engine) as s:
            record = s.get(MutationRecord, record_id)
            if record is None:
                logger.debug("update_status: record %s not found", record_id)
                return False
            for k, v in fields.items():
                setattr(record, k, v)
            s.add(record)
            s.commit()
            return True

    def delete(self, record_id: int) -> bool:
        with Session(self.engine) as s:
            record = s.get(MutationRecord, record_id)
            if record is None:
                return False
            s.delete(record)
            s.commit()
            return True

    def delete_synced_for_tenant(self, tenant_id: str) -> int:
        """Purge synced records for a tenant. Returns the number removed."""
        with Session(self.engine) as s:
            synced = s.exec(
                select(MutationRecord)
                .where(MutationRecord.tenant_id == tenant_id)
                .where(MutationRecord.status == MutationStatus.SYNCED)
            ).all()
            for record in synced:
                s.delete(record)
            s.commit()
            return len(synced)

    def reset_syncing_for_tenant(self, tenant_id: str) -> int:
        """Move every syncing record for a tenant back to pending. Returns the number moved."""
        with Session(self.engine) as s:
            stuck = s.exec(
                select(MutationRecord)
                .where(MutationRecord.tenant_id == tenant_id)
                .where(MutationRecord.status == MutationStatus.SYNCING)
            ).all()
            for record in stuck:
                record.status = MutationStatus.PENDING
                s.add(record)
            s.commit()
            return len(stuck)
