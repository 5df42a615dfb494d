"""
Schema migrations for the local queue database.

Queue databases created before the composite pending-lookup index existed
get it added here. Each step is idempotent.

Called automatically from get_engine() after create_all() so both fresh
installs and existing databases are handled without manual steps.
"""
from sqlalchemy import text


def run_migrations(engine) -> None:
    """Apply all pending schema migrations.

    Safe to call multiple times. Supports SQLite only (uses PRAGMA index_list).

    Args:
        engine: SQLAlchemy engine (SQLModel create_engine result).
    """
    with engine.connect() as conn:
        # Pending lookup filters on tenant + status and sorts by created_at
        _add_index_if_missing(
            conn,
            "mutationrecord",
            "ix_mutationrecord_tenant_status_created",
            ["tenant_id", "status", "created_at"],
        )
        conn.commit()


def _add_index_if_missing(conn, table: str, index: str, columns: list) -> None:
    """Create an index on a table if one with that name doesn't exist.

    Args:
        conn: SQLAlchemy connection.
        table: Table name (lowercase, as SQLite stores it).
        index: Index name.
        columns: Ordered column names the index covers.
    """
    result = conn.execute(text(f"PRAGMA index_list({table})"))
    existing = {row[1] for row in result}
    if index not in existing:
        conn.execute(text(f"CREATE INDEX {index} ON {table} ({', '.join(columns)})"))
