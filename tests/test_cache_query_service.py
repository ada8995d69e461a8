"""
Tests for CacheQueryService

Tests cover:
- Quote: available (exact totals), unavailable, insufficient data
- Search: exclusion rules, filters, cheapest-first ordering
- Invalid ranges and unknown units
- Sync status coverage and health
- Staleness follows the newest successful run, not cache row writes
"""

from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from staysync.models.sync_run import SyncRun
from staysync.services.cache_invalidator import CacheInvalidator
from staysync.services.cache_query_service import CacheQueryService, QuoteStatus, SearchFilters
from staysync.services.errors import InvalidDateRange, UnitNotFound


def record_run(db, status, finished_at):
    db.add(SyncRun(
        trigger="scheduled",
        status=status,
        started_at=finished_at - timedelta(minutes=10),
        finished_at=finished_at
    ))
    db.commit()
    return finished_at


class TestQuote:

    def test_three_night_quote(self, db, make_unit, cache_days, june_first):
        unit = make_unit("unit-a", "RU-1")
        cache_days(unit, june_first, [100, 110, 120])

        quote = CacheQueryService(db).quote(unit.id, june_first, june_first + timedelta(days=3))

        assert quote.status == QuoteStatus.AVAILABLE
        assert quote.nights == 3
        assert quote.total_price == Decimal("330")
        assert quote.price_per_night == Decimal("110")
        assert [d.price for d in quote.daily_breakdown] == [Decimal("100"), Decimal("110"), Decimal("120")]

    def test_four_nights_with_three_cached_is_insufficient(self, db, make_unit, cache_days, june_first):
        unit = make_unit("unit-a", "RU-1")
        cache_days(unit, june_first, [100, 110, 120])

        quote = CacheQueryService(db).quote(unit.id, june_first, june_first + timedelta(days=4))

        assert quote.status == QuoteStatus.INSUFFICIENT_DATA
        assert quote.nights == 4
        assert quote.cached_nights == 3
        assert quote.total_price is None

    def test_unavailable_night_keeps_totals(self, db, make_unit, cache_days, june_first):
        unit = make_unit("unit-a", "RU-1")
        cache_days(unit, june_first, [100, 120, 110])
        CacheInvalidator(db).mark_unavailable(unit.id, june_first + timedelta(days=1), june_first + timedelta(days=2))

        quote = CacheQueryService(db).quote(unit.id, june_first, june_first + timedelta(days=3))

        assert quote.status == QuoteStatus.UNAVAILABLE
        assert quote.total_price == Decimal("330")
        assert quote.price_per_night == Decimal("110")
        assert [d.is_available for d in quote.daily_breakdown] == [True, False, True]

    def test_non_integer_average_stays_exact(self, db, make_unit, cache_days, june_first):
        unit = make_unit("unit-a", "RU-1")
        cache_days(unit, june_first, [100, 100, 101])

        quote = CacheQueryService(db).quote(unit.id, june_first, june_first + timedelta(days=3))

        assert quote.total_price == Decimal("301")
        assert quote.price_per_night * 3 == pytest.approx(Decimal("301"))

    def test_unknown_unit(self, db, june_first):
        with pytest.raises(UnitNotFound):
            CacheQueryService(db).quote("missing", june_first, june_first + timedelta(days=1))

    def test_invalid_range(self, db, make_unit, june_first):
        make_unit("unit-a", "RU-1")
        with pytest.raises(InvalidDateRange):
            CacheQueryService(db).quote("unit-a", june_first, june_first)


class TestSearch:

    def test_cheapest_first(self, db, make_unit, cache_days, june_first):
        unit_a = make_unit("unit-a", "RU-1")
        unit_b = make_unit("unit-b", "RU-2")
        cache_days(unit_a, june_first, [100, 110, 120])
        cache_days(unit_b, june_first, [100, 100, 100])

        results = CacheQueryService(db).search(june_first, june_first + timedelta(days=3))

        assert [r.unit.id for r in results] == ["unit-b", "unit-a"]
        assert results[0].total_price == Decimal("300")
        assert results[1].total_price == Decimal("330")
        assert results[1].price_per_night == Decimal("110")
        assert all(r.nights == 3 for r in results)

    def test_ties_broken_by_unit_id(self, db, make_unit, cache_days, june_first):
        for unit_id in ("unit-z", "unit-m"):
            cache_days(make_unit(unit_id, f"RU-{unit_id}"), june_first, [100, 100])

        results = CacheQueryService(db).search(june_first, june_first + timedelta(days=2))

        assert [r.unit.id for r in results] == ["unit-m", "unit-z"]

    def test_excludes_missing_and_unavailable_nights(self, db, make_unit, cache_days, june_first):
        complete = make_unit("unit-a", "RU-1")
        partial = make_unit("unit-b", "RU-2")
        blocked = make_unit("unit-c", "RU-3")
        cache_days(complete, june_first, [100, 100, 100])
        cache_days(partial, june_first, [50, 50])
        cache_days(blocked, june_first, [60, 60])
        cache_days(blocked, june_first + timedelta(days=2), [60], available=False)

        results = CacheQueryService(db).search(june_first, june_first + timedelta(days=3))

        assert [r.unit.id for r in results] == ["unit-a"]
        assert all(r.nights == 3 for r in results)

    def test_inactive_units_excluded(self, db, make_unit, cache_days, june_first):
        cache_days(make_unit("unit-a", "RU-1", is_active=False), june_first, [100])

        assert CacheQueryService(db).search(june_first, june_first + timedelta(days=1)) == []

    def test_filters(self, db, make_unit, cache_days, june_first):
        cache_days(make_unit("unit-a", "RU-1", building_id="b1", room_type="studio"), june_first, [100])
        cache_days(make_unit("unit-b", "RU-2", building_id="b1", room_type="2bhk"), june_first, [200])
        cache_days(make_unit("unit-c", "RU-3", building_id="b2", room_type="studio"), june_first, [90])
        service = CacheQueryService(db)
        stay = (june_first, june_first + timedelta(days=1))

        by_building = service.search(*stay, SearchFilters(building_id="b1"))
        by_both = service.search(*stay, SearchFilters(building_id="b1", room_type="studio"))

        assert [r.unit.id for r in by_building] == ["unit-a", "unit-b"]
        assert [r.unit.id for r in by_both] == ["unit-a"]

    def test_invalid_range(self, db, june_first):
        with pytest.raises(InvalidDateRange):
            CacheQueryService(db).search(june_first, june_first - timedelta(days=1))


class TestSyncStatus:

    def test_full_window_is_healthy(self, db, make_unit, cache_days, june_first):
        unit = make_unit("unit-a", "RU-1")
        make_unit("unit-b", None)
        cache_days(unit, june_first, [100] * 181)
        # Past records do not count toward coverage
        cache_days(unit, june_first - timedelta(days=5), [100] * 5)

        status = CacheQueryService(db, today=lambda: june_first).get_sync_status()

        assert status.active_units == 1
        assert status.expected_records == 181
        assert status.window_records == 181
        assert status.total_records == 186
        assert status.coverage_percent == 100.0
        assert status.health == "healthy"
        assert status.last_run is None

    def test_partial_and_critical_coverage(self, db, make_unit, cache_days, june_first):
        unit_a = make_unit("unit-a", "RU-1")
        make_unit("unit-b", "RU-2")
        cache_days(unit_a, june_first, [100] * 181)
        service = CacheQueryService(db, today=lambda: june_first)

        assert service.get_sync_status().health == "partial"

        make_unit("unit-c", "RU-3")
        status = service.get_sync_status()
        assert status.coverage_percent == pytest.approx(33.3)
        assert status.health == "critical"

    def test_empty_cache_is_stale(self, db):
        status = CacheQueryService(db).get_sync_status()

        assert status.last_synced_at is None
        assert status.stale is True
        assert status.coverage_percent == 0.0
        assert status.health == "critical"

    def test_fresh_after_successful_run(self, db):
        now = datetime(2025, 6, 2, 3, 0)
        finished = record_run(db, "partial", now - timedelta(hours=1))

        status = CacheQueryService(db, now=lambda: now).get_sync_status()

        assert status.last_synced_at == finished
        assert status.stale is False

    def test_old_sync_is_stale(self, db):
        now = datetime(2025, 6, 2, 3, 0)
        record_run(db, "completed", now - timedelta(hours=27))

        status = CacheQueryService(db, now=lambda: now).get_sync_status()

        assert status.stale is True

    def test_failed_run_does_not_refresh(self, db):
        now = datetime(2025, 6, 2, 3, 0)
        record_run(db, "completed", now - timedelta(hours=30))
        record_run(db, "failed", now - timedelta(minutes=5))

        status = CacheQueryService(db, now=lambda: now).get_sync_status()

        assert status.last_synced_at == now - timedelta(hours=30)
        assert status.stale is True

    def test_reservation_flip_does_not_refresh(self, db, make_unit, cache_days, june_first):
        unit = make_unit("unit-a", "RU-1")
        cache_days(unit, june_first, [100, 100, 100])
        record_run(db, "completed", datetime(2020, 1, 1))
        service = CacheQueryService(db, today=lambda: june_first)
        assert service.get_sync_status().stale is True

        assert CacheInvalidator(db).mark_unavailable(unit.id, june_first, june_first + timedelta(days=2)) == 2

        status = service.get_sync_status()
        assert status.last_synced_at == datetime(2020, 1, 1)
        assert status.stale is True

    def test_last_run_reported(self, db):
        db.add(SyncRun(trigger="scheduled", status="completed", success_count=3))
        db.commit()

        status = CacheQueryService(db).get_sync_status()

        assert status.last_run["trigger"] == "scheduled"
        assert status.last_run["success_count"] == 3
