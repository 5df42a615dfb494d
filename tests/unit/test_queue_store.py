"""Tests for QueueStore persistence and tenant scoping."""
from datetime import datetime, timedelta, timezone

from fieldsync.models.mutation import MutationStatus

from conftest import BASE_TIME, OTHER_TENANT, TENANT, at, make_record


class TestInsertAndGet:
    def test_insert_assigns_id(self, store):
        pk = store.insert(make_record())
        assert isinstance(pk, int)
        assert store.get_by_id(pk).resource == "lotes"

    def test_get_missing_returns_none(self, store):
        assert store.get_by_id(999) is None


class TestQueryPending:
    def test_orders_by_created_at_ascending(self, store):
        late = store.insert(make_record(record_id="late", created_at=at(10)))
        early = store.insert(make_record(record_id="early", created_at=at(1)))
        mid = store.insert(make_record(record_id="mid", created_at=at(5)))

        assert [r.id for r in store.query_pending_for_tenant(TENANT)] == [early, mid, late]

    def test_equal_timestamps_fall_back_to_insert_order(self, store):
        first = store.insert(make_record(record_id="x", created_at=at(0)))
        second = store.insert(make_record(record_id="y", created_at=at(0)))

        assert [r.id for r in store.query_pending_for_tenant(TENANT)] == [first, second]

    def test_excludes_other_statuses(self, store):
        pending = store.insert(make_record(record_id="p"))
        for status in (MutationStatus.SYNCING, MutationStatus.SYNCED, MutationStatus.FAILED):
            store.insert(make_record(record_id=status.value, status=status))

        assert [r.id for r in store.query_pending_for_tenant(TENANT)] == [pending]

    def test_scoped_to_tenant(self, store):
        mine = store.insert(make_record(tenant_id=TENANT))
        store.insert(make_record(tenant_id=OTHER_TENANT))

        assert [r.id for r in store.query_pending_for_tenant(TENANT)] == [mine]


class TestCountOutstanding:
    def test_counts_pending_and_failed_only(self, store):
        store.insert(make_record(record_id="1", status=MutationStatus.PENDING))
        store.insert(make_record(record_id="2", status=MutationStatus.FAILED))
        store.insert(make_record(record_id="3", status=MutationStatus.SYNCING))
        store.insert(make_record(record_id="4", status=MutationStatus.SYNCED))

        assert store.count_outstanding_for_tenant(TENANT) == 2

    def test_zero_for_unknown_tenant(self, store):
        store.insert(make_record())
        assert store.count_outstanding_for_tenant("nobody") == 0


class TestUpdateAndDelete:
    def test_update_status_sets_fields(self, store):
        pk = store.insert(make_record())
        assert store.update_status(pk, status=MutationStatus.SYNCING, attempts=2) is True

        record = store.get_by_id(pk)
        assert record.status == MutationStatus.SYNCING
        assert record.attempts == 2

    def test_update_missing_is_noop(self, store):
        assert store.update_status(42, status=MutationStatus.SYNCED) is False

    def test_delete_synced_for_tenant(self, store):
        synced = store.insert(make_record(record_id="s", status=MutationStatus.SYNCED))
        pending = store.insert(make_record(record_id="p"))
        other = store.insert(make_record(tenant_id=OTHER_TENANT, status=MutationStatus.SYNCED))

        assert store.delete_synced_for_tenant(TENANT) == 1

        assert store.get_by_id(synced) is None
        assert store.get_by_id(pending) is not None
        assert store.get_by_id(other) is not None

    def test_delete_by_id(self, store):
        pk = store.insert(make_record())
        assert store.delete(pk) is True
        assert store.delete(pk) is False


class TestListForTenant:
    def test_newest_first_with_limit(self, store):
        ids = [store.insert(make_record(record_id=str(i), created_at=at(i))) for i in range(5)]

        listed = store.list_for_tenant(TENANT, limit=3)

        assert [r.id for r in listed] == [ids[4], ids[3], ids[2]]

    def test_includes_all_statuses(self, store):
        store.insert(make_record(record_id="p"))
        store.insert(make_record(record_id="f", status=MutationStatus.FAILED))
        store.insert(make_record(record_id="s", status=MutationStatus.SYNCED))

        assert len(store.list_for_tenant(TENANT)) == 3


class TestTimestamps:
    def test_created_at_reads_back_as_utc(self, store):
        pk = store.insert(make_record(created_at=at(5)))

        record = store.get_by_id(pk)
        assert record.created_at == at(5)
        assert record.created_at.tzinfo is not None

    def test_naive_created_at_is_taken_as_utc(self, store):
        pk = store.insert(make_record(created_at=datetime(2025, 3, 1, 10, 0)))

        assert store.get_by_id(pk).created_at == BASE_TIME

    def test_offset_created_at_is_normalised_for_ordering(self, store):
        # 10:30 at UTC-3 is 13:30 UTC, after a 12:00 UTC record
        minus_three = timezone(timedelta(hours=-3))
        later = store.insert(
            make_record(record_id="later", created_at=datetime(2025, 3, 1, 10, 30, tzinfo=minus_three))
        )
        earlier = store.insert(make_record(record_id="earlier", created_at=at(120)))

        assert [r.id for r in store.query_pending_for_tenant(TENANT)] == [earlier, later]

    def test_last_attempt_at_reads_back_as_utc(self, store):
        pk = store.insert(make_record())
        store.update_status(pk, last_attempt_at=at(1))

        assert store.get_by_id(pk).last_attempt_at == at(1)


class TestResetSyncing:
    def test_moves_only_syncing_rows_for_tenant(self, store):
        stuck = store.insert(make_record(record_id="s", status=MutationStatus.SYNCING))
        failed = store.insert(make_record(record_id="f", status=MutationStatus.FAILED))
        other = store.insert(make_record(tenant_id=OTHER_TENANT, status=MutationStatus.SYNCING))

        assert store.reset_syncing_for_tenant(TENANT) == 1

        assert store.get_by_id(stuck).status == MutationStatus.PENDING
        assert store.get_by_id(failed).status == MutationStatus.FAILED
        assert store.get_by_id(other).status == MutationStatus.SYNCING
