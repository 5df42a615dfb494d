"""Tests for database migration helpers."""
import pytest
from sqlalchemy import text
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine

from fieldsync.db.migrations import run_migrations

INDEX = "ix_mutationrecord_tenant_status_created"


@pytest.fixture(name="migration_engine")
def migration_engine_fixture():
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


def _index_names(engine) -> set:
    with engine.connect() as conn:
        return {row[1] for row in conn.execute(text("PRAGMA index_list(mutationrecord)"))}


class TestRunMigrations:
    def test_run_migrations_does_not_raise(self, migration_engine):
        run_migrations(migration_engine)

    def test_run_migrations_is_idempotent(self, migration_engine):
        run_migrations(migration_engine)
        run_migrations(migration_engine)

    def test_recreates_missing_pending_index(self, migration_engine):
        """A database created before the composite index existed gets it added."""
        with migration_engine.connect() as conn:
            conn.execute(text(f"DROP INDEX {INDEX}"))
            conn.commit()
        assert INDEX not in _index_names(migration_engine)

        run_migrations(migration_engine)

        assert INDEX in _index_names(migration_engine)
