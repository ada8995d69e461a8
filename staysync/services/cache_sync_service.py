"""
Property Cache Sync Service

Pulls a rolling window of availability and seasonal prices for every
active unit from Rentals United and upserts it into property_daily_cache.

Per unit:
1. Window = today .. today + CACHE_WINDOW_DAYS (both ends included)
2. Fetch availability calendar and seasonal prices concurrently
3. No seasons upstream -> skip the unit for this pass (not an error)
4. Resolve each day's seasonal price and upsert (unit_id, date)
5. Days missing from the upstream response are left untouched

A unit failure is logged and counted; it never stops the pass. There is
no retry inside a pass, the next scheduled run picks failed units up.
"""

import time
import enum
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..models.unit import Unit
from ..models.sync_run import SyncRunStatus
from ..utils.dates import local_today
from ..utils.logging_config import get_logger, sync_context
from .daily_cache_store import CacheDay, DailyCacheStore
from .errors import NoPricingConfigured, SyncAlreadyRunning, UpstreamError
from .ru_client import RentalsUnitedClient
from .ru_parser import AvailabilityDay
from .season_pricing import SeasonPriceInterval, resolve_price

logger = get_logger(__name__)

STAGE_AVAILABILITY = "availability"
STAGE_PRICES = "prices"
STAGE_STORE = "store"
STAGE_UNEXPECTED = "unexpected"

# One full pass at a time (scheduled vs manual trigger)
_pass_lock = threading.Lock()

# Serializes syncs of the same unit
_unit_locks: Dict[str, threading.Lock] = {}
_unit_locks_guard = threading.Lock()


def _unit_lock(unit_id: str) -> threading.Lock:
    with _unit_locks_guard:
        return _unit_locks.setdefault(unit_id, threading.Lock())


def is_sync_running() -> bool:
    return _pass_lock.locked()


class OutcomeStatus(str, enum.Enum):
    SYNCED = "synced"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class SyncTarget:
    """Detached snapshot of a unit taking part in a pass."""
    id: str
    ru_property_id: str
    name: Optional[str] = None


@dataclass(frozen=True)
class UnitSyncError:
    unit_id: str
    ru_property_id: str
    stage: str
    message: str

    def to_dict(self) -> dict:
        return {
            "unit_id": self.unit_id,
            "ru_property_id": self.ru_property_id,
            "stage": self.stage,
            "message": self.message,
        }


@dataclass(frozen=True)
class UnitSyncOutcome:
    unit_id: str
    ru_property_id: str
    status: OutcomeStatus
    days_written: int = 0
    fallback_days: int = 0
    error: Optional[UnitSyncError] = None


@dataclass(frozen=True)
class SyncRunResult:
    """Aggregate of one pass, built by folding UnitSyncOutcome values."""
    trigger: str = "manual"
    started_at: datetime = field(default_factory=datetime.utcnow)
    success_count: int = 0
    error_count: int = 0
    skipped_count: int = 0
    duration_seconds: float = 0.0
    deleted_count: Optional[int] = None
    errors: Tuple[UnitSyncError, ...] = ()

    def record(self, outcome: UnitSyncOutcome) -> "SyncRunResult":
        if outcome.status == OutcomeStatus.SYNCED:
            return replace(self, success_count=self.success_count + 1)
        if outcome.status == OutcomeStatus.SKIPPED:
            return replace(self, skipped_count=self.skipped_count + 1)
        errors = self.errors + ((outcome.error,) if outcome.error else ())
        return replace(self, error_count=self.error_count + 1, errors=errors)

    def finish(self, duration_seconds: float) -> "SyncRunResult":
        return replace(self, duration_seconds=round(duration_seconds, 2))

    def with_cleanup(self, deleted_count: Optional[int]) -> "SyncRunResult":
        return replace(self, deleted_count=deleted_count)

    @property
    def units_processed(self) -> int:
        return self.success_count + self.error_count + self.skipped_count

    @property
    def status(self) -> SyncRunStatus:
        return SyncRunStatus.PARTIAL if self.error_count else SyncRunStatus.COMPLETED

    def to_dict(self) -> dict:
        return {
            "trigger": self.trigger,
            "status": self.status.value,
            "started_at": self.started_at.isoformat(),
            "success_count": self.success_count,
            "error_count": self.error_count,
            "skipped_count": self.skipped_count,
            "duration_seconds": self.duration_seconds,
            "deleted_count": self.deleted_count,
            "errors": [error.to_dict() for error in self.errors],
        }


def merge_days(
    days: Sequence[AvailabilityDay],
    seasons: Sequence[SeasonPriceInterval]
) -> Tuple[List[CacheDay], int]:
    """
    Attach the seasonal price to every availability day.

    Returns (cache days, number of days priced by the min-price fallback).
    Raises NoPricingConfigured when there are no seasons.
    """
    if not seasons:
        raise NoPricingConfigured("no pricing data available in RU")

    cache_days = []
    fallback_days = 0
    for day in days:
        resolution = resolve_price(seasons, day.date)
        if resolution.fallback:
            fallback_days += 1
        cache_days.append(CacheDay(
            date=day.date,
            is_available=day.is_available,
            price_per_night=resolution.price
        ))
    return cache_days, fallback_days


class CacheSyncService:
    """
    Orchestrates the sync of the daily cache from Rentals United.

    The session is used from the calling thread only; the two upstream
    fetches of a unit run on a small thread pool and never touch it.
    """

    def __init__(
        self,
        db: Session,
        client: RentalsUnitedClient,
        window_days: Optional[int] = None,
        retention_days: Optional[int] = None,
        unit_delay_seconds: Optional[float] = None,
        today: Callable[[], date] = local_today,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.db = db
        self.client = client
        self.store = DailyCacheStore(db)
        self.window_days = window_days if window_days is not None else settings.cache_window_days
        self.retention_days = retention_days if retention_days is not None else settings.cache_retention_days
        self.unit_delay_seconds = (
            unit_delay_seconds if unit_delay_seconds is not None else settings.sync_unit_delay_seconds
        )
        self._today = today
        self._sleep = sleep

    def sync_window(self) -> Tuple[date, date]:
        """(first day, last day), both included."""
        today = self._today()
        return today, today + timedelta(days=self.window_days)

    def get_sync_candidates(self) -> List[SyncTarget]:
        """Active units that have an upstream property id."""
        units = self.db.query(Unit).filter(
            Unit.is_active == True,  # noqa: E712
            Unit.ru_property_id.isnot(None),
            Unit.ru_property_id != ""
        ).order_by(Unit.id).all()
        return [SyncTarget(id=u.id, ru_property_id=u.ru_property_id, name=u.name) for u in units]

    def _failed(self, unit, stage: str, error: Exception) -> UnitSyncOutcome:
        message = str(error) or error.__class__.__name__
        logger.unit_sync_failed(unit.id, unit.ru_property_id, stage, message)
        return UnitSyncOutcome(
            unit_id=unit.id,
            ru_property_id=unit.ru_property_id,
            status=OutcomeStatus.FAILED,
            error=UnitSyncError(unit.id, unit.ru_property_id, stage, message)
        )

    def sync_unit(self, unit) -> UnitSyncOutcome:
        """
        Sync one unit's availability and pricing.

        `unit` is a Unit or SyncTarget (anything with id and ru_property_id).
        """
        with _unit_lock(unit.id):
            date_from, date_to = self.sync_window()
            logger.info(f"   Fetching data for {unit.ru_property_id} ({date_from} to {date_to})")

            with ThreadPoolExecutor(max_workers=2, thread_name_prefix="ru-fetch") as pool:
                availability_future = pool.submit(
                    self.client.fetch_availability_calendar, unit.ru_property_id, date_from, date_to
                )
                prices_future = pool.submit(
                    self.client.fetch_seasonal_prices, unit.ru_property_id, date_from, date_to
                )

                try:
                    days = availability_future.result()
                except UpstreamError as e:
                    return self._failed(unit, STAGE_AVAILABILITY, e)

                try:
                    seasons = prices_future.result()
                except UpstreamError as e:
                    return self._failed(unit, STAGE_PRICES, e)

            try:
                cache_days, fallback_days = merge_days(days, seasons)
            except NoPricingConfigured as e:
                logger.unit_sync_skipped(unit.id, unit.ru_property_id, str(e))
                return UnitSyncOutcome(
                    unit_id=unit.id,
                    ru_property_id=unit.ru_property_id,
                    status=OutcomeStatus.SKIPPED
                )

            try:
                written = self.store.upsert_days(unit.id, unit.ru_property_id, cache_days)
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                return self._failed(unit, STAGE_STORE, e)

            if fallback_days:
                logger.warning(
                    f"   {fallback_days} day(s) of unit {unit.id} priced with the min-season fallback"
                )
            logger.info(f"   📝 Upserted {written} records with seasonal pricing ({len(seasons)} seasons)")

            return UnitSyncOutcome(
                unit_id=unit.id,
                ru_property_id=unit.ru_property_id,
                status=OutcomeStatus.SYNCED,
                days_written=written,
                fallback_days=fallback_days
            )

    def sync_all_units(self, trigger: str = "manual") -> SyncRunResult:
        """
        Sync every eligible unit.

        Raises SyncAlreadyRunning if another pass is in flight. Store
        errors while listing units propagate (the pass cannot start).
        """
        if not _pass_lock.acquire(blocking=False):
            raise SyncAlreadyRunning("A cache sync pass is already running")

        try:
            with sync_context(trigger):
                return self._run_pass(trigger)
        finally:
            _pass_lock.release()

    def _run_pass(self, trigger: str) -> SyncRunResult:
        logger.info(f"🔄 Starting property cache sync ({trigger})...")
        start = time.monotonic()
        result = SyncRunResult(trigger=trigger, started_at=datetime.utcnow())

        units = self.get_sync_candidates()
        logger.info(f"📋 Found {len(units)} units to sync")

        for index, unit in enumerate(units):
            if index and self.unit_delay_seconds:
                self._sleep(self.unit_delay_seconds)

            try:
                outcome = self.sync_unit(unit)
            except Exception as e:
                # Never let one unit stop the pass
                self.db.rollback()
                outcome = self._failed(unit, STAGE_UNEXPECTED, e)

            if outcome.status == OutcomeStatus.SYNCED:
                logger.info(f"✅ Synced unit {unit.id} ({unit.ru_property_id})")
            result = result.record(outcome)

        result = result.finish(time.monotonic() - start)
        logger.sync_pass_completed(
            trigger,
            result.success_count,
            result.error_count,
            result.skipped_count,
            result.duration_seconds
        )
        return result

    def retention_cutoff(self) -> date:
        return self._today() - timedelta(days=self.retention_days)

    def cleanup_old_data(self) -> int:
        """
        Delete records dated before today - CACHE_RETENTION_DAYS.
        Store errors roll back and propagate.
        """
        cutoff = self.retention_cutoff()
        try:
            deleted = self.store.delete_before(cutoff)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        logger.info(f"🗑️  Cleaned up {deleted} old records (before {cutoff.isoformat()})")
        return deleted
