"""
Tests for the cache scheduler

Tests cover:
- run_full_sync: sync then cleanup, result recorded in sync_runs
- Cleanup failure keeps the sync result (deleted_count None)
- Overlapping pass propagates SyncAlreadyRunning
- Staleness policy
- Scheduler start / status / stop
"""

import asyncio
from datetime import datetime, timedelta
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from staysync.models.sync_run import SyncRun
from staysync.services import cache_scheduler
from staysync.services.cache_scheduler import (
    get_scheduler_status,
    is_cache_stale,
    record_sync_run,
    run_full_sync,
    start_cache_scheduler,
    stop_cache_scheduler,
)
from staysync.services.cache_sync_service import (
    OutcomeStatus,
    SyncRunResult,
    UnitSyncError,
    UnitSyncOutcome,
)
from staysync.services.errors import SyncAlreadyRunning


def pass_result(trigger="scheduled", failed=False):
    result = SyncRunResult(trigger=trigger).record(UnitSyncOutcome("u1", "RU-1", OutcomeStatus.SYNCED))
    if failed:
        error = UnitSyncError("u2", "RU-2", "prices", "HTTP 500")
        result = result.record(UnitSyncOutcome("u2", "RU-2", OutcomeStatus.FAILED, error=error))
    return result.finish(2.5)


class TestRunFullSync:

    def test_sync_then_cleanup(self, db):
        service = MagicMock()
        service.sync_all_units.return_value = pass_result()
        service.cleanup_old_data.return_value = 42

        result = run_full_sync(db, trigger="manual", service=service)

        service.sync_all_units.assert_called_once_with(trigger="manual")
        service.cleanup_old_data.assert_called_once()
        assert result.success_count == 1
        assert result.deleted_count == 42

    def test_run_is_recorded(self, db):
        service = MagicMock()
        service.sync_all_units.return_value = pass_result(failed=True)
        service.cleanup_old_data.return_value = 0

        run_full_sync(db, service=service)

        run = db.query(SyncRun).one()
        assert run.trigger == "scheduled"
        assert run.status == "partial"
        assert run.success_count == 1
        assert run.error_count == 1
        assert run.error_summary == [
            {"unit_id": "u2", "ru_property_id": "RU-2", "stage": "prices", "message": "HTTP 500"}
        ]

    def test_cleanup_failure_keeps_pass_result(self, db):
        service = MagicMock()
        service.sync_all_units.return_value = pass_result()
        service.cleanup_old_data.side_effect = OperationalError("DELETE", {}, Exception("locked"))

        result = run_full_sync(db, service=service)

        assert result.success_count == 1
        assert result.deleted_count is None
        assert db.query(SyncRun).one().deleted_count is None

    def test_overlapping_pass_propagates(self, db):
        service = MagicMock()
        service.sync_all_units.side_effect = SyncAlreadyRunning("running")

        with pytest.raises(SyncAlreadyRunning):
            run_full_sync(db, service=service)

        service.cleanup_old_data.assert_not_called()
        assert db.query(SyncRun).count() == 0

    def test_status_keeps_last_result(self, db):
        service = MagicMock()
        service.sync_all_units.return_value = pass_result(trigger="manual")
        service.cleanup_old_data.return_value = 3

        run_full_sync(db, trigger="manual", service=service)
        status = get_scheduler_status()

        assert status["last_sync"] is not None
        assert status["last_sync_result"]["trigger"] == "manual"
        assert status["last_sync_result"]["deleted_count"] == 3


class TestRecordSyncRun:

    def test_store_failure_is_not_raised(self):
        db = MagicMock()
        db.commit.side_effect = OperationalError("INSERT", {}, Exception("db down"))

        assert record_sync_run(db, pass_result()) is None
        db.rollback.assert_called_once()


class TestIsCacheStale:

    def test_never_synced(self):
        assert is_cache_stale(None) is True

    def test_recent_sync_is_fresh(self):
        now = datetime(2025, 6, 2, 3, 0)
        assert is_cache_stale(now - timedelta(hours=25), now, stale_after_hours=26) is False

    def test_old_sync_is_stale(self):
        now = datetime(2025, 6, 2, 3, 0)
        assert is_cache_stale(now - timedelta(hours=27), now, stale_after_hours=26) is True


class TestSchedulerLifecycle:

    def test_start_status_stop(self):
        async def scenario():
            assert start_cache_scheduler() is True
            # Second start is a no-op
            assert start_cache_scheduler() is True
            status = get_scheduler_status()
            assert stop_cache_scheduler() is True
            return status

        status = asyncio.run(scenario())

        assert status["running"] is True
        job_ids = {job["id"] for job in status["jobs"]}
        assert job_ids == {cache_scheduler.SYNC_JOB_ID, cache_scheduler.RETENTION_JOB_ID}
        assert all(job["next_run"] for job in status["jobs"])
        assert get_scheduler_status()["running"] is False
