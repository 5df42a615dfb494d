"""
Observable sync state shared by the coordinator, the driver and the API.

SyncRunState is never persisted: connectivity and status must reflect the
running process, not a previous one.

  idle -> syncing -> success -> (after the display window) idle
  idle -> syncing -> error
"""
import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Callable, List, Optional

from fieldsync.sync.conflicts import ConflictNotification

logger = logging.getLogger(__name__)


class SyncStatus(str, Enum):
    IDLE = "idle"
    SYNCING = "syncing"
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class SyncProgress:
    current: int
    total: int


@dataclass(frozen=True)
class SyncRunState:
    is_online: bool = True
    status: SyncStatus = SyncStatus.IDLE
    progress: Optional[SyncProgress] = None  # only set while syncing
    pending_count: int = 0  # pending + failed for the active tenant
    last_error: Optional[str] = None
    conflict_notifications: tuple = ()


Listener = Callable[[SyncRunState], None]
TenantProvider = Callable[[], Optional[str]]


class SyncContext:
    """
    Holder for the current SyncRunState plus the active-tenant provider.

    Passed explicitly to the driver, coordinator and API so tests get a
    fresh instance each time. Listeners are called synchronously with the
    new snapshot after every change.
    """

    def __init__(self, tenant_provider: TenantProvider, is_online: bool = True):
        self._tenant_provider = tenant_provider
        self._state = SyncRunState(is_online=is_online)
        self._listeners: List[Listener] = []

    @property
    def state(self) -> SyncRunState:
        return self._state

    @property
    def tenant_id(self) -> str:
        return self._tenant_provider() or ""

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener. Returns a function that unsubscribes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def update(self, **changes) -> SyncRunState:
        """Replace fields on the current snapshot and notify listeners."""
        self._state = replace(self._state, **changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("Sync state listener failed")
        return self._state

    # Convenience setters mirror the fields the UI binds to

    def set_online(self, is_online: bool) -> None:
        self.update(is_online=is_online)

    def set_status(self, status: SyncStatus) -> None:
        self.update(status=status)

    def set_progress(self, progress: Optional[SyncProgress]) -> None:
        self.update(progress=progress)

    def set_pending_count(self, count: int) -> None:
        self.update(pending_count=count)

    def set_last_error(self, error: Optional[str]) -> None:
        self.update(last_error=error)

    def add_conflict_notifications(self, notifications: List[ConflictNotification]) -> None:
        if notifications:
            self.update(conflict_notifications=self._state.conflict_notifications + tuple(notifications))

    def clear_conflict_notifications(self) -> None:
        self.update(conflict_notifications=())
