"""
Cache Query Service

Read-only search and quote over property_daily_cache. Never calls
Rentals United and never waits for a sync: whatever is cached is the
answer, and gaps are reported as insufficient data, not unavailability.

Money stays exact (Decimal) here; rounding happens in the response schemas.
"""

import enum
import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from ..config import settings
from ..models.daily_cache import DailyAvailabilityRecord
from ..models.sync_run import SyncRun, SyncRunStatus
from ..models.unit import Unit
from ..utils.dates import local_today, nights_between
from .cache_scheduler import is_cache_stale
from .daily_cache_store import DailyCacheStore
from .errors import InvalidDateRange, UnitNotFound

logger = logging.getLogger(__name__)

HEALTHY_COVERAGE_PERCENT = 90
PARTIAL_COVERAGE_PERCENT = 50


class QuoteStatus(str, enum.Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    INSUFFICIENT_DATA = "insufficient_data"


@dataclass(frozen=True)
class SearchFilters:
    building_id: Optional[str] = None
    room_type: Optional[str] = None


@dataclass
class SearchResult:
    unit: Unit
    total_price: Decimal
    price_per_night: Decimal
    nights: int


@dataclass(frozen=True)
class DailyPrice:
    date: date
    price: Decimal
    is_available: bool


@dataclass
class Quote:
    unit_id: str
    check_in: date
    check_out: date
    status: QuoteStatus
    nights: int
    cached_nights: int
    total_price: Optional[Decimal] = None
    price_per_night: Optional[Decimal] = None
    daily_breakdown: List[DailyPrice] = field(default_factory=list)


@dataclass
class SyncStatus:
    total_records: int
    active_units: int
    expected_records: int
    window_records: int
    coverage_percent: float
    last_synced_at: Optional[datetime]
    stale: bool
    health: str
    last_run: Optional[dict] = None


def _validate_range(date_from: date, date_to: date) -> int:
    nights = nights_between(date_from, date_to)
    if nights <= 0:
        raise InvalidDateRange("Check-out must be after check-in")
    return nights


def _health_for(coverage_percent: float) -> str:
    if coverage_percent >= HEALTHY_COVERAGE_PERCENT:
        return "healthy"
    if coverage_percent >= PARTIAL_COVERAGE_PERCENT:
        return "partial"
    return "critical"


class CacheQueryService:

    def __init__(
        self,
        db: Session,
        today: Callable[[], date] = local_today,
        now: Callable[[], datetime] = datetime.utcnow
    ):
        self.db = db
        self.store = DailyCacheStore(db)
        self._today = today
        self._now = now

    def _candidate_units(self, filters: SearchFilters) -> List[Unit]:
        query = self.db.query(Unit).filter(Unit.is_active == True)  # noqa: E712
        if filters.building_id:
            query = query.filter(Unit.building_id == filters.building_id)
        if filters.room_type:
            query = query.filter(Unit.room_type == filters.room_type)
        return query.order_by(Unit.id).all()

    def search(
        self,
        date_from: date,
        date_to: date,
        filters: Optional[SearchFilters] = None
    ) -> List[SearchResult]:
        """
        Units bookable for every night in [date_from, date_to), cheapest first.

        A unit is dropped when any night is missing from the cache or
        unavailable.
        """
        nights = _validate_range(date_from, date_to)
        units = self._candidate_units(filters or SearchFilters())
        ranges = self.store.get_ranges([unit.id for unit in units], date_from, date_to)

        results = []
        for unit in units:
            records = ranges.get(unit.id, [])
            if len(records) != nights:
                continue
            if not all(record.is_available for record in records):
                continue

            total = sum((Decimal(record.price_per_night) for record in records), Decimal("0"))
            results.append(SearchResult(
                unit=unit,
                total_price=total,
                price_per_night=total / nights,
                nights=nights
            ))

        results.sort(key=lambda result: (result.total_price, result.unit.id))
        logger.debug(f"Search {date_from}..{date_to}: {len(results)}/{len(units)} units bookable")
        return results

    def quote(self, unit_id: str, date_from: date, date_to: date) -> Quote:
        """Price a stay for one unit. Raises UnitNotFound / InvalidDateRange."""
        nights = _validate_range(date_from, date_to)

        unit = self.db.query(Unit).filter(Unit.id == unit_id).first()
        if not unit:
            raise UnitNotFound(unit_id)

        records: List[DailyAvailabilityRecord] = self.store.get_range(unit_id, date_from, date_to)
        breakdown = [
            DailyPrice(
                date=record.date,
                price=Decimal(record.price_per_night),
                is_available=record.is_available
            )
            for record in records
        ]
        quote = Quote(
            unit_id=unit_id,
            check_in=date_from,
            check_out=date_to,
            status=QuoteStatus.AVAILABLE,
            nights=nights,
            cached_nights=len(records),
            daily_breakdown=breakdown
        )

        if len(records) < nights:
            quote.status = QuoteStatus.INSUFFICIENT_DATA
            return quote

        total = sum((day.price for day in breakdown), Decimal("0"))
        quote.total_price = total
        quote.price_per_night = total / nights

        # Complete cache: totals are reported even when a night is closed
        if not all(day.is_available for day in breakdown):
            quote.status = QuoteStatus.UNAVAILABLE
        return quote

    def _last_successful_sync(self) -> Optional[datetime]:
        """
        Finish time of the newest pass that synced anything (completed or
        partial). Cache rows are not used: reservation flips refresh their
        last_synced without a pass having run.
        """
        run = self.db.query(SyncRun).filter(
            SyncRun.status.in_([SyncRunStatus.COMPLETED.value, SyncRunStatus.PARTIAL.value])
        ).order_by(SyncRun.started_at.desc()).first()
        if not run:
            return None
        return run.finished_at or run.started_at

    def get_sync_status(self) -> SyncStatus:
        """Coverage of the forward window, freshness and the latest run."""
        today = self._today()
        window_end = today + timedelta(days=settings.cache_window_days)
        window_days = settings.cache_window_days + 1

        unit_ids = [
            unit_id for (unit_id,) in self.db.query(Unit.id).filter(
                Unit.is_active == True,  # noqa: E712
                Unit.ru_property_id.isnot(None),
                Unit.ru_property_id != ""
            ).all()
        ]
        active_units = len(unit_ids)
        expected = active_units * window_days
        window_records = self.store.count_records(today, window_end, unit_ids=unit_ids)
        coverage = round(window_records / expected * 100, 1) if expected else 0.0

        last_synced_at = self._last_successful_sync()
        last_run = self.db.query(SyncRun).order_by(SyncRun.started_at.desc()).first()

        return SyncStatus(
            total_records=self.store.count_records(),
            active_units=active_units,
            expected_records=expected,
            window_records=window_records,
            coverage_percent=coverage,
            last_synced_at=last_synced_at,
            stale=is_cache_stale(last_synced_at, self._now()),
            health=_health_for(coverage),
            last_run=last_run.to_dict() if last_run else None
        )
