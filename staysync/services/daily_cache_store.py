"""
Daily Cache Store

Indexed read/write access to property_daily_cache. No business rules:
callers decide what to write and own the transaction (commit/rollback).
"""

import uuid
import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models.daily_cache import DailyAvailabilityRecord

logger = logging.getLogger(__name__)

# Rows per INSERT statement. Each row binds 9 parameters; SQLite builds
# before 3.32 cap a statement at 999.
UPSERT_CHUNK_SIZE = 100

UPSERT_COLUMNS = ("ru_property_id", "is_available", "price_per_night", "last_synced", "updated_at")


@dataclass(frozen=True)
class CacheDay:
    date: date
    is_available: bool
    price_per_night: Decimal


def _dialect_insert(dialect_name: str):
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
        return insert
    if dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
        return insert
    return None


class DailyCacheStore:
    """
    Key: (unit_id, date). Upserts are atomic per key; the table itself is
    never locked.
    """

    def __init__(self, db: Session):
        self.db = db

    # ==================
    # Writes
    # ==================

    def upsert_days(
        self,
        unit_id: str,
        ru_property_id: str,
        days: Iterable[CacheDay],
        synced_at: Optional[datetime] = None
    ) -> int:
        """
        Insert or overwrite one record per day. Dates not in `days` are
        left untouched. Returns the number of days written.
        """
        synced_at = synced_at or datetime.utcnow()
        rows = [
            {
                "id": str(uuid.uuid4()),
                "unit_id": unit_id,
                "ru_property_id": ru_property_id,
                "date": day.date,
                "is_available": day.is_available,
                "price_per_night": day.price_per_night,
                "last_synced": synced_at,
                "created_at": synced_at,
                "updated_at": synced_at,
            }
            for day in days
        ]
        if not rows:
            return 0

        insert = _dialect_insert(self.db.get_bind().dialect.name)
        if insert is None:
            return self._upsert_one_by_one(rows)

        for start in range(0, len(rows), UPSERT_CHUNK_SIZE):
            stmt = insert(DailyAvailabilityRecord).values(rows[start:start + UPSERT_CHUNK_SIZE])
            stmt = stmt.on_conflict_do_update(
                index_elements=["unit_id", "date"],
                set_={column: stmt.excluded[column] for column in UPSERT_COLUMNS}
            )
            self.db.execute(stmt)

        return len(rows)

    def _upsert_one_by_one(self, rows: List[dict]) -> int:
        """Get-or-create fallback for dialects without ON CONFLICT."""
        for row in rows:
            entry = self.db.query(DailyAvailabilityRecord).filter(
                DailyAvailabilityRecord.unit_id == row["unit_id"],
                DailyAvailabilityRecord.date == row["date"]
            ).first()
            if entry is None:
                self.db.add(DailyAvailabilityRecord(**row))
                continue
            for column in UPSERT_COLUMNS:
                setattr(entry, column, row[column])
        self.db.flush()
        return len(rows)

    def set_availability(
        self,
        unit_id: str,
        date_from: date,
        date_to: date,
        is_available: bool
    ) -> int:
        """
        Flip is_available on existing records in [date_from, date_to).
        Price is never touched. Returns count of records updated.
        """
        now = datetime.utcnow()
        return self.db.query(DailyAvailabilityRecord).filter(
            DailyAvailabilityRecord.unit_id == unit_id,
            DailyAvailabilityRecord.date >= date_from,
            DailyAvailabilityRecord.date < date_to
        ).update({
            "is_available": is_available,
            "last_synced": now,
            "updated_at": now
        }, synchronize_session=False)

    def delete_before(self, cutoff: date) -> int:
        """Delete every record dated strictly before cutoff."""
        return self.db.query(DailyAvailabilityRecord).filter(
            DailyAvailabilityRecord.date < cutoff
        ).delete(synchronize_session=False)

    # ==================
    # Reads
    # ==================

    def get_range(self, unit_id: str, date_from: date, date_to: date) -> List[DailyAvailabilityRecord]:
        """Records in [date_from, date_to), ordered by date."""
        return self.db.query(DailyAvailabilityRecord).filter(
            DailyAvailabilityRecord.unit_id == unit_id,
            DailyAvailabilityRecord.date >= date_from,
            DailyAvailabilityRecord.date < date_to
        ).order_by(DailyAvailabilityRecord.date).all()

    def get_ranges(
        self,
        unit_ids: Sequence[str],
        date_from: date,
        date_to: date
    ) -> Dict[str, List[DailyAvailabilityRecord]]:
        """Same as get_range for many units in one query."""
        result: Dict[str, List[DailyAvailabilityRecord]] = {unit_id: [] for unit_id in unit_ids}
        if not unit_ids:
            return result

        records = self.db.query(DailyAvailabilityRecord).filter(
            DailyAvailabilityRecord.unit_id.in_(list(unit_ids)),
            DailyAvailabilityRecord.date >= date_from,
            DailyAvailabilityRecord.date < date_to
        ).order_by(DailyAvailabilityRecord.unit_id, DailyAvailabilityRecord.date).all()

        for record in records:
            result[record.unit_id].append(record)
        return result

    def count_records(
        self,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
        unit_ids: Optional[Sequence[str]] = None
    ) -> int:
        """Count records, optionally limited to [date_from, date_to] (inclusive) and units."""
        query = self.db.query(func.count(DailyAvailabilityRecord.id))
        if date_from is not None:
            query = query.filter(DailyAvailabilityRecord.date >= date_from)
        if date_to is not None:
            query = query.filter(DailyAvailabilityRecord.date <= date_to)
        if unit_ids is not None:
            if not unit_ids:
                return 0
            query = query.filter(DailyAvailabilityRecord.unit_id.in_(list(unit_ids)))
        return query.scalar() or 0
