"""SQLModel engine singleton."""
from sqlmodel import SQLModel, create_engine

from fieldsync.config import get_settings

_engine = None


def get_engine():
    """Return the module-level engine, creating it on first call."""
    global _engine
    if _engine is None:
        settings = get_settings()
        connect_args = {}
        if settings.database_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False  # shared by the API and the sync loop
        _engine = create_engine(settings.database_url, connect_args=connect_args)
        # Import models so metadata is populated before create_all
        from fieldsync.models.mutation import MutationRecord  # noqa
        SQLModel.metadata.create_all(_engine)
        from fieldsync.db.migrations import run_migrations
        run_migrations(_engine)
    return _engine
