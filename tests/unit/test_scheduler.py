"""Tests for APScheduler job configuration and the refresh job body."""
import pytest
from unittest.mock import AsyncMock, MagicMock, patch
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from fieldsync.scheduler.jobs import _refresh_pending_count, build_scheduler


class TestBuildScheduler:
    def test_returns_scheduler(self):
        scheduler = build_scheduler(MagicMock())
        assert isinstance(scheduler, AsyncIOScheduler)

    def test_refresh_job_registered(self):
        scheduler = build_scheduler(MagicMock())
        job_ids = [job.id for job in scheduler.get_jobs()]
        assert "pending_refresh" in job_ids

    def test_refresh_is_interval(self):
        scheduler = build_scheduler(MagicMock())
        job = next(j for j in scheduler.get_jobs() if j.id == "pending_refresh")
        assert job.trigger.__class__.__name__ == "IntervalTrigger"
        assert job.trigger.interval.total_seconds() == 10

    def test_interval_from_settings(self):
        with patch("fieldsync.scheduler.jobs.get_settings") as mock_settings:
            mock_settings.return_value.pending_refresh_seconds = 30
            scheduler = build_scheduler(MagicMock())

        job = next(j for j in scheduler.get_jobs() if j.id == "pending_refresh")
        assert job.trigger.interval.total_seconds() == 30

    def test_explicit_interval_wins_over_settings(self):
        with patch("fieldsync.scheduler.jobs.get_settings") as mock_settings:
            mock_settings.return_value.pending_refresh_seconds = 30
            scheduler = build_scheduler(MagicMock(), interval_seconds=2)

        job = next(j for j in scheduler.get_jobs() if j.id == "pending_refresh")
        assert job.trigger.interval.total_seconds() == 2
        mock_settings.assert_not_called()

    def test_scheduler_not_running_on_creation(self):
        scheduler = build_scheduler(MagicMock())
        assert not scheduler.running


class TestRefreshJob:
    @pytest.mark.asyncio
    async def test_calls_coordinator(self):
        coordinator = MagicMock()
        coordinator.refresh_pending_count = AsyncMock()

        await _refresh_pending_count(coordinator=coordinator)

        coordinator.refresh_pending_count.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_exception_does_not_propagate(self):
        """The job swallows errors so the scheduler keeps ticking."""
        coordinator = MagicMock()
        coordinator.refresh_pending_count = AsyncMock(side_effect=Exception("db locked"))

        await _refresh_pending_count(coordinator=coordinator)
