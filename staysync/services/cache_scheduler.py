"""
Cache Scheduler Service

Runs the daily cache refresh and retention with APScheduler:
- SYNC_CRON_HOUR:SYNC_CRON_MINUTE (default 02:00): full sync of every
  active unit, then cleanup of expired records
- RETENTION_CRON_HOUR (default 04:00): retention purge alone, in case the
  post-sync cleanup failed

Times are in SCHEDULER_TIMEZONE. The blocking sync runs in a worker thread
so the event loop keeps serving requests. Staleness of the cache is decided
here (is_cache_stale) and only reported, never acted on by read paths.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger

from ..config import settings
from ..database import SessionLocal
from ..models.sync_run import SyncRun, SyncRunStatus
from .cache_sync_service import CacheSyncService, SyncRunResult
from .errors import SyncAlreadyRunning
from .ru_client import RentalsUnitedClient, get_ru_client

logger = logging.getLogger(__name__)

# Global scheduler instance
_scheduler: Optional[AsyncIOScheduler] = None
_last_sync_time: Optional[datetime] = None
_last_sync_result: Optional[Dict] = None

SYNC_JOB_ID = "cache_sync_daily"
RETENTION_JOB_ID = "cache_retention_daily"

# Per-unit errors kept in sync_runs.error_summary
MAX_LOGGED_ERRORS = 50


def is_cache_stale(
    last_synced_at: Optional[datetime],
    now: Optional[datetime] = None,
    stale_after_hours: Optional[int] = None
) -> bool:
    """True when nothing was ever synced or the newest write is too old."""
    if last_synced_at is None:
        return True
    now = now or datetime.utcnow()
    hours = stale_after_hours if stale_after_hours is not None else settings.cache_stale_after_hours
    return now - last_synced_at > timedelta(hours=hours)


def record_sync_run(
    db: Session,
    result: SyncRunResult,
    status: Optional[SyncRunStatus] = None
) -> Optional[SyncRun]:
    """Append the pass to sync_runs. Best effort: failures are only logged."""
    run = SyncRun(
        trigger=result.trigger,
        status=(status or result.status).value,
        started_at=result.started_at,
        finished_at=datetime.utcnow(),
        duration_seconds=result.duration_seconds,
        success_count=result.success_count,
        error_count=result.error_count,
        skipped_count=result.skipped_count,
        deleted_count=result.deleted_count,
        error_summary=[error.to_dict() for error in result.errors[:MAX_LOGGED_ERRORS]] or None
    )
    try:
        db.add(run)
        db.commit()
        return run
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Failed to record sync run: {e}")
        return None


def run_full_sync(
    db: Session,
    client: Optional[RentalsUnitedClient] = None,
    trigger: str = "scheduled",
    service: Optional[CacheSyncService] = None
) -> SyncRunResult:
    """
    Sync every unit, then purge expired records.

    Cleanup failure leaves deleted_count = None and keeps the sync result.
    Raises SyncAlreadyRunning when a pass is in flight.
    """
    global _last_sync_time, _last_sync_result

    owns_client = client is None and service is None
    if owns_client:
        client = get_ru_client()
    service = service or CacheSyncService(db, client)

    try:
        try:
            result = service.sync_all_units(trigger=trigger)
        except SyncAlreadyRunning:
            raise
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"❌ Cache sync pass ({trigger}) could not run: {e}")
            record_sync_run(db, SyncRunResult(trigger=trigger), status=SyncRunStatus.FAILED)
            raise

        try:
            deleted = service.cleanup_old_data()
        except SQLAlchemyError as e:
            logger.error(f"❌ Cache cleanup failed after sync pass: {e}")
            deleted = None
        result = result.with_cleanup(deleted)
    finally:
        if owns_client:
            client.close()

    record_sync_run(db, result)

    _last_sync_time = datetime.utcnow()
    _last_sync_result = result.to_dict()
    return result


def run_retention(db: Session) -> int:
    """Retention purge alone. Store errors propagate."""
    return CacheSyncService(db, client=None).cleanup_old_data()


def _scheduled_sync():
    db = SessionLocal()
    try:
        result = run_full_sync(db, trigger="scheduled")
        logger.info(f"Scheduled cache sync result: {result.to_dict()}")
    except SyncAlreadyRunning:
        logger.warning("⏭️  Scheduled cache sync skipped: a pass is already running")
    except Exception as e:
        logger.exception(f"Scheduled cache sync job failed: {e}")
    finally:
        db.close()


def _scheduled_retention():
    db = SessionLocal()
    try:
        run_retention(db)
    except Exception as e:
        logger.exception(f"Scheduled cache retention job failed: {e}")
    finally:
        db.close()


async def run_cache_sync_job():
    """Async job function called by the scheduler."""
    logger.info("Running scheduled cache sync job...")
    await asyncio.to_thread(_scheduled_sync)


async def run_cache_retention_job():
    logger.info("Running scheduled cache retention job...")
    await asyncio.to_thread(_scheduled_retention)


def start_cache_scheduler() -> bool:
    """
    Start the scheduler with the daily sync and retention jobs.

    Returns:
        True if scheduler started successfully, False otherwise
    """
    global _scheduler

    if _scheduler is not None and _scheduler.running:
        logger.warning("Cache scheduler is already running")
        return True

    timezone = settings.scheduler_timezone
    try:
        _scheduler = AsyncIOScheduler(timezone=timezone)

        _scheduler.add_job(
            run_cache_sync_job,
            CronTrigger(hour=settings.sync_cron_hour, minute=settings.sync_cron_minute, timezone=timezone),
            id=SYNC_JOB_ID,
            name="Daily cache sync from Rentals United",
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )

        _scheduler.add_job(
            run_cache_retention_job,
            CronTrigger(hour=settings.retention_cron_hour, minute=0, timezone=timezone),
            id=RETENTION_JOB_ID,
            name="Daily cache retention purge",
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )

        _scheduler.start()

        logger.info(
            f"📅 Cache Scheduler started (sync {settings.sync_cron_hour:02d}:{settings.sync_cron_minute:02d}, "
            f"retention {settings.retention_cron_hour:02d}:00 {timezone})"
        )
        return True

    except Exception as e:
        logger.error(f"Failed to start cache scheduler: {e}")
        return False


def stop_cache_scheduler() -> bool:
    """Stop the scheduler without waiting for running jobs."""
    global _scheduler

    if _scheduler is None:
        logger.warning("Cache scheduler is not running")
        return True

    try:
        _scheduler.shutdown(wait=False)
        _scheduler = None
        logger.info("📅 Cache Scheduler stopped")
        return True
    except Exception as e:
        logger.error(f"Failed to stop cache scheduler: {e}")
        return False


def get_scheduler_status() -> Dict:
    status = {
        "running": False,
        "timezone": settings.scheduler_timezone,
        "last_sync": None,
        "last_sync_result": None,
        "jobs": []
    }

    if _scheduler is not None and _scheduler.running:
        status["running"] = True
        for job in _scheduler.get_jobs():
            status["jobs"].append({
                "id": job.id,
                "name": job.name,
                "next_run": job.next_run_time.isoformat() if job.next_run_time else None
            })

    if _last_sync_time:
        status["last_sync"] = _last_sync_time.isoformat()

    if _last_sync_result:
        status["last_sync_result"] = _last_sync_result

    return status


def trigger_manual_sync(trigger: str = "manual") -> SyncRunResult:
    """
    Run a full sync immediately (blocking).

    Raises SyncAlreadyRunning if a pass is in flight.
    """
    db = SessionLocal()
    try:
        return run_full_sync(db, trigger=trigger)
    finally:
        db.close()
