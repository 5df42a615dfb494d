"""Queued mutation model: one row per local write waiting to reach the backend."""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from sqlalchemy import JSON, Column, DateTime, Index
from sqlmodel import Field, SQLModel


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """SQLite hands back naive datetimes; everything stored here is UTC."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


class MutationOperation(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class MutationStatus(str, Enum):
    """
    Per-record lifecycle.

    pending -> syncing -> synced (terminal, purged after the pass)
                       -> pending (retry on the next pass)
                       -> failed (terminal until retried or discarded by the user)
    """

    PENDING = "pending"
    SYNCING = "syncing"
    SYNCED = "synced"
    FAILED = "failed"


class MutationRecord(SQLModel, table=True):
    """A queued create/update/delete against a remote collection."""

    __table_args__ = (
        Index("ix_mutationrecord_tenant_status_created", "tenant_id", "status", "created_at"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    idempotency_key: str = Field(unique=True, index=True)
    resource: str = Field(index=True)  # remote collection, e.g. "lotes"
    operation: MutationOperation
    record_id: str
    payload: Dict[str, Any] = Field(default_factory=dict, sa_column=Column(JSON, nullable=False))

    # FIFO key; ties are broken by id. Stored as UTC
    created_at: datetime = Field(
        default_factory=utc_now,
        sa_column=Column(DateTime(timezone=True), nullable=False, index=True),
    )

    status: MutationStatus = Field(default=MutationStatus.PENDING, index=True)
    attempts: int = 0
    last_attempt_at: Optional[datetime] = Field(
        default=None, sa_column=Column(DateTime(timezone=True), nullable=True)
    )
    last_error: Optional[str] = None

    tenant_id: str = Field(index=True)
