"""
Script to run a full cache sync from the command line
(all active units, then retention cleanup)

Usage:
    python run_sync.py
    python run_sync.py --unit <unit_id>
"""
import sys
import argparse

from staysync.database import SessionLocal, create_tables
from staysync.models.unit import Unit
from staysync.services.cache_scheduler import run_full_sync
from staysync.services.cache_sync_service import CacheSyncService
from staysync.services.errors import SyncAlreadyRunning
from staysync.services.ru_client import get_ru_client
from staysync.utils.logging_config import setup_logging
from staysync.config import settings


def sync_single_unit(db, unit_id: str) -> int:
    unit = db.query(Unit).filter(Unit.id == unit_id).first()
    if not unit or not unit.is_sync_candidate:
        print(f"❌ Unit {unit_id} not found, inactive or has no RU property id")
        return 1

    with get_ru_client() as client:
        outcome = CacheSyncService(db, client).sync_unit(unit)

    print(f"Unit {unit_id}: {outcome.status.value} ({outcome.days_written} days written)")
    if outcome.error:
        print(f"  ❌ {outcome.error.stage}: {outcome.error.message}")
        return 1
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Sync the daily cache from Rentals United")
    parser.add_argument("--unit", help="Sync only this unit id")
    args = parser.parse_args()

    setup_logging(level=settings.log_level, json_format=settings.log_json)

    if not settings.has_ru_credentials:
        print("❌ RU_USERNAME / RU_PASSWORD are not configured")
        return 1

    create_tables()
    db = SessionLocal()

    try:
        if args.unit:
            return sync_single_unit(db, args.unit)

        print("=" * 50)
        print("Syncing property cache from Rentals United...")
        print("=" * 50)

        try:
            result = run_full_sync(db, trigger="script")
        except SyncAlreadyRunning as e:
            print(f"⏭️  {e}")
            return 1

        print("\n" + "=" * 50)
        print("Results:")
        print(f"  ✅ Success: {result.success_count}")
        print(f"  ❌ Failed: {result.error_count}")
        print(f"  ⚠️  Skipped: {result.skipped_count}")
        deleted = result.deleted_count if result.deleted_count is not None else "cleanup failed"
        print(f"  🗑️  Deleted: {deleted}")
        print(f"  ⏱️  Duration: {result.duration_seconds}s")
        print("=" * 50)

        for error in result.errors:
            print(f"  - unit {error.unit_id} (RU {error.ru_property_id}) at {error.stage}: {error.message}")

        return 1 if result.error_count else 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
