"""
APScheduler jobs for the sync coordinator.

The pending-count refresh runs every few seconds whether or not a pass is in
flight, so the badge stays reasonably fresh between passes (e.g. after the
app enqueues new writes while offline).

The scheduler runs on the same event loop as the coordinator and the API.
"""
import logging
from typing import Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from fieldsync.config import get_settings

logger = logging.getLogger(__name__)


def build_scheduler(coordinator, interval_seconds: Optional[float] = None) -> AsyncIOScheduler:
    """
    Create and configure the APScheduler.

    Args:
        coordinator: SyncCoordinator whose pending count is refreshed.
        interval_seconds: Refresh interval. Defaults to
            settings.pending_refresh_seconds.

    Returns:
        Configured AsyncIOScheduler (not yet started).
    """
    if interval_seconds is None:
        interval_seconds = get_settings().pending_refresh_seconds
    scheduler = AsyncIOScheduler()

    scheduler.add_job(
        _refresh_pending_count,
        trigger="interval",
        seconds=interval_seconds,
        id="pending_refresh",
        replace_existing=True,
        coalesce=True,
        max_instances=1,
        kwargs={"coordinator": coordinator},
    )

    return scheduler


async def _refresh_pending_count(coordinator) -> None:
    """Interval job: reload the pending badge for the active tenant."""
    try:
        await coordinator.refresh_pending_count()
    except Exception as exc:
        logger.error("Pending count refresh failed: %s", exc)
