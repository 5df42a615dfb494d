"""Tests for the SyncEngine facade built by build_sync_engine."""
from unittest.mock import AsyncMock

import pytest

from fieldsync.config import Settings
from fieldsync.errors import InvalidMutationError
from fieldsync.models.mutation import MutationOperation
from fieldsync.sync.engine import build_sync_engine

from conftest import OTHER_TENANT, TENANT


def _build(engine, tenant=TENANT):
    return build_sync_engine(
        engine=engine,
        settings=Settings(start_online=False, tenant_id=tenant),
        remote=AsyncMock(),
        tenant_provider=lambda: tenant,
    )


class TestEnqueue:
    def test_defaults_to_active_tenant_and_updates_badge(self, engine):
        sync = _build(engine)

        record_pk = sync.enqueue("lotes", MutationOperation.CREATE, "abc", {"nombre": "Lote Norte"})

        assert sync.queue.get_item(record_pk).tenant_id == TENANT
        assert sync.state.pending_count == 1

    def test_other_tenant_does_not_touch_badge(self, engine):
        sync = _build(engine)

        sync.enqueue("lotes", MutationOperation.CREATE, "abc", {}, tenant_id=OTHER_TENANT)

        assert sync.get_pending_count(OTHER_TENANT) == 1
        assert sync.state.pending_count == 0

    def test_no_active_tenant_raises(self, engine):
        sync = _build(engine, tenant="")

        with pytest.raises(InvalidMutationError):
            sync.enqueue("lotes", MutationOperation.CREATE, "abc", {})

        assert sync.get_pending_count(TENANT) == 0


def test_subscribe_receives_snapshots(engine):
    sync = _build(engine)
    seen = []
    unsubscribe = sync.subscribe(seen.append)

    sync.enqueue("lotes", MutationOperation.UPDATE, "abc", {"nombre": "x"})
    unsubscribe()
    sync.enqueue("lotes", MutationOperation.UPDATE, "abc", {"nombre": "y"})

    assert [s.pending_count for s in seen] == [1]
