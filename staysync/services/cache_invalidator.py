"""
Reservation-Driven Cache Invalidator

Keeps property_daily_cache consistent with local booking events between
daily sync passes. A confirmed booking closes its nights, a cancellation
reopens them. Prices are never touched here.

Cache writes are best effort: a store failure is logged and swallowed so
the booking operation that triggered it never fails because of the cache.
The next sync pass repairs any drift.
"""

import logging
from datetime import date

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..models.booking import Booking
from .daily_cache_store import DailyCacheStore

logger = logging.getLogger(__name__)


class CacheInvalidator:

    def __init__(self, db: Session):
        self.db = db
        self.store = DailyCacheStore(db)

    def _set_availability(self, unit_id: str, date_from: date, date_to: date, is_available: bool) -> int:
        if date_to <= date_from:
            return 0

        try:
            updated = self.store.set_availability(unit_id, date_from, date_to, is_available)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                f"❌ Cache update failed for unit {unit_id} "
                f"({date_from} to {date_to}, available={is_available}): {e}"
            )
            return 0

        state = "available" if is_available else "unavailable"
        logger.info(f"📅 Marked {updated} cached day(s) {state} for unit {unit_id} ({date_from} to {date_to})")
        return updated

    def mark_unavailable(self, unit_id: str, date_from: date, date_to: date) -> int:
        """Close cached nights in [date_from, date_to). Returns records updated."""
        return self._set_availability(unit_id, date_from, date_to, False)

    def mark_available(self, unit_id: str, date_from: date, date_to: date) -> int:
        """Reopen cached nights in [date_from, date_to). Returns records updated."""
        return self._set_availability(unit_id, date_from, date_to, True)

    def on_booking_confirmed(self, booking: Booking) -> int:
        return self.mark_unavailable(booking.unit_id, booking.check_in, booking.check_out)

    def on_booking_cancelled(self, booking: Booking) -> int:
        return self.mark_available(booking.unit_id, booking.check_in, booking.check_out)
