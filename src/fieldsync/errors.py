"""Exception types raised by the queue and the remote-apply boundary."""
from typing import Optional


class FieldSyncError(Exception):
    """Base class for fieldsync errors."""


class InvalidMutationError(FieldSyncError, ValueError):
    """Raised by enqueue when a required mutation field is missing or empty."""


class RemoteApplyError(FieldSyncError):
    """The backend rejected or failed to apply a mutation."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
