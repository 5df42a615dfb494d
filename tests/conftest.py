"""Shared test fixtures."""
import uuid
from datetime import datetime, timedelta, timezone
from typing import Generator

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

# Import all models so SQLModel.metadata knows about them
from fieldsync.models.mutation import (  # noqa: F401
    MutationOperation,
    MutationRecord,
    MutationStatus,
)
from fieldsync.queue.mutations import MutationQueue
from fieldsync.queue.store import QueueStore

TENANT = "tenant-a"
OTHER_TENANT = "tenant-b"
BASE_TIME = datetime(2025, 3, 1, 10, 0, tzinfo=timezone.utc)


@pytest.fixture(name="engine")
def engine_fixture():
    """In-memory SQLite engine. Tables recreated fresh for each test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="test_session")
def test_session_fixture(engine) -> Generator[Session, None, None]:
    with Session(engine) as session:
        yield session


@pytest.fixture(name="store")
def store_fixture(engine) -> QueueStore:
    return QueueStore(engine)


@pytest.fixture(name="queue")
def queue_fixture(store) -> MutationQueue:
    return MutationQueue(store)


def make_record(
    record_pk=None,
    *,
    operation=MutationOperation.UPDATE,
    resource="lotes",
    record_id="abc",
    created_at=None,
    tenant_id=TENANT,
    payload=None,
    status=MutationStatus.PENDING,
) -> MutationRecord:
    """Build an unsaved MutationRecord with sensible defaults."""
    return MutationRecord(
        id=record_pk,
        idempotency_key=uuid.uuid4().hex,
        resource=resource,
        operation=operation,
        record_id=record_id,
        payload=payload or {"nombre": "Lote Norte"},
        created_at=created_at or BASE_TIME,
        status=status,
        tenant_id=tenant_id,
    )


def at(minutes: int) -> datetime:
    """Timestamp `minutes` after a fixed base time."""
    return BASE_TIME + timedelta(minutes=minutes)
