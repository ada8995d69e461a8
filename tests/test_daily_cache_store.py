"""
Tests for DailyCacheStore (in-memory SQLite)

Tests cover:
- Upsert inserts, then overwrites by (unit_id, date)
- Dates missing from an upsert are untouched
- Range availability flip leaves price alone
- Retention delete
- Range reads and counts
"""

from datetime import date, datetime, timedelta
from decimal import Decimal

from staysync.models.daily_cache import DailyAvailabilityRecord
from staysync.services.daily_cache_store import UPSERT_CHUNK_SIZE, CacheDay, DailyCacheStore


def day(d, price, available=True):
    return CacheDay(date=d, is_available=available, price_per_night=Decimal(str(price)))


class TestUpsertDays:

    def test_inserts_one_record_per_day(self, db, make_unit, june_first):
        unit = make_unit("unit-a", "RU-1")
        store = DailyCacheStore(db)

        written = store.upsert_days(unit.id, "RU-1", [
            day(june_first, 100),
            day(june_first + timedelta(days=1), 110),
        ])
        db.commit()

        assert written == 2
        assert db.query(DailyAvailabilityRecord).count() == 2

    def test_second_upsert_overwrites_same_key(self, db, make_unit, june_first):
        unit = make_unit("unit-a", "RU-1")
        store = DailyCacheStore(db)

        store.upsert_days(unit.id, "RU-1", [day(june_first, 100)], synced_at=datetime(2025, 6, 1, 2, 0))
        db.commit()
        store.upsert_days(unit.id, "RU-1", [day(june_first, 125, available=False)], synced_at=datetime(2025, 6, 2, 2, 0))
        db.commit()

        records = db.query(DailyAvailabilityRecord).all()
        assert len(records) == 1
        assert records[0].price_per_night == Decimal("125")
        assert records[0].is_available is False
        assert records[0].last_synced == datetime(2025, 6, 2, 2, 0)

    def test_days_not_in_upsert_are_untouched(self, db, make_unit, june_first):
        unit = make_unit("unit-a", "RU-1")
        store = DailyCacheStore(db)
        second = june_first + timedelta(days=1)

        store.upsert_days(unit.id, "RU-1", [day(june_first, 100), day(second, 100)],
                          synced_at=datetime(2025, 6, 1, 2, 0))
        db.commit()
        store.upsert_days(unit.id, "RU-1", [day(june_first, 200)], synced_at=datetime(2025, 6, 2, 2, 0))
        db.commit()

        untouched = store.get_range(unit.id, second, second + timedelta(days=1))[0]
        assert untouched.price_per_night == Decimal("100")
        assert untouched.last_synced == datetime(2025, 6, 1, 2, 0)

    def test_full_window_spans_several_statements(self, db, make_unit, june_first):
        unit = make_unit("unit-a", "RU-1")
        days = [day(june_first + timedelta(days=offset), 100 + offset) for offset in range(181)]

        assert DailyCacheStore(db).upsert_days(unit.id, "RU-1", days) == 181
        db.commit()

        assert db.query(DailyAvailabilityRecord).count() == 181
        last = DailyCacheStore(db).get_range(unit.id, june_first + timedelta(days=180), june_first + timedelta(days=181))
        assert last[0].price_per_night == Decimal("280")

    def test_chunk_fits_sqlite_parameter_limit(self):
        columns = len(DailyAvailabilityRecord.__table__.columns)
        assert UPSERT_CHUNK_SIZE * columns <= 999

    def test_empty_upsert_writes_nothing(self, db, make_unit):
        unit = make_unit("unit-a", "RU-1")
        assert DailyCacheStore(db).upsert_days(unit.id, "RU-1", []) == 0


class TestSetAvailability:

    def test_flips_half_open_range_without_touching_price(self, db, make_unit, cache_days, june_first):
        unit = make_unit("unit-a", "RU-1")
        cache_days(unit, june_first, [100, 110, 120, 130])
        store = DailyCacheStore(db)

        updated = store.set_availability(unit.id, june_first, june_first + timedelta(days=2), False)
        db.commit()

        records = store.get_range(unit.id, june_first, june_first + timedelta(days=4))
        assert updated == 2
        assert [r.is_available for r in records] == [False, False, True, True]
        assert [r.price_per_night for r in records] == [Decimal("100"), Decimal("110"), Decimal("120"), Decimal("130")]

    def test_missing_dates_are_ignored(self, db, make_unit):
        unit = make_unit("unit-a", "RU-1")
        updated = DailyCacheStore(db).set_availability(unit.id, date(2030, 1, 1), date(2030, 1, 5), False)
        assert updated == 0


class TestRetentionAndReads:

    def test_delete_before_cutoff(self, db, make_unit, cache_days, june_first):
        unit = make_unit("unit-a", "RU-1")
        cache_days(unit, june_first - timedelta(days=2), [90, 90, 90, 90])
        store = DailyCacheStore(db)

        deleted = store.delete_before(june_first)
        db.commit()

        assert deleted == 2
        remaining = db.query(DailyAvailabilityRecord).order_by(DailyAvailabilityRecord.date).all()
        assert [r.date for r in remaining] == [june_first, june_first + timedelta(days=1)]

    def test_get_ranges_groups_by_unit(self, db, make_unit, cache_days, june_first):
        unit_a = make_unit("unit-a", "RU-1")
        unit_b = make_unit("unit-b", "RU-2")
        cache_days(unit_a, june_first, [100, 100])
        cache_days(unit_b, june_first, [80])

        ranges = DailyCacheStore(db).get_ranges(
            ["unit-a", "unit-b", "unit-c"], june_first, june_first + timedelta(days=2)
        )

        assert len(ranges["unit-a"]) == 2
        assert len(ranges["unit-b"]) == 1
        assert ranges["unit-c"] == []

    def test_count_records_inclusive_window(self, db, make_unit, cache_days, june_first):
        unit = make_unit("unit-a", "RU-1")
        cache_days(unit, june_first, [100, 100, 100, 100, 100])
        store = DailyCacheStore(db)

        assert store.count_records() == 5
        assert store.count_records(june_first, june_first + timedelta(days=2)) == 3
        assert store.count_records(unit_ids=[]) == 0
        assert store.count_records(unit_ids=["other"]) == 0
