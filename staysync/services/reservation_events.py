"""
Reservation Event Handler

Applies Rentals United push notifications (LNM_* requests) to the local
bookings table and the daily cache:

- LNM_PutConfirmedReservation_RQ: upsert the booking by RU ReservationID,
  then close its nights in the cache
- LNM_CancelReservation_RQ: mark the booking cancelled, then reopen its
  nights
- Unconfirmed / lead reservations are acknowledged and ignored

Unknown properties or reservations are logged and acknowledged; RU would
otherwise keep redelivering a notification we can never apply.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Union

from sqlalchemy.orm import Session

from ..models.booking import Booking, BookingSource, BookingStatus
from ..models.unit import Unit
from .cache_invalidator import CacheInvalidator
from .ru_parser import (
    CANCEL_RESERVATION_METHOD,
    CONFIRMED_RESERVATION_METHOD,
    IGNORED_NOTIFICATION_METHODS,
    CancellationNotice,
    ReservationNotice,
    parse_notification,
)

logger = logging.getLogger(__name__)

HANDLED_METHODS = (CONFIRMED_RESERVATION_METHOD, CANCEL_RESERVATION_METHOD) + IGNORED_NOTIFICATION_METHODS


@dataclass
class ReservationEventResult:
    """Result of applying one notification"""
    action: str  # created, updated, cancelled, ignored, not_found
    booking_id: Optional[str] = None
    cache_records_updated: int = 0
    message: Optional[str] = None


def map_creator_to_source(creator: Optional[str]) -> str:
    """Map the RU reservation Creator to a BookingSource"""
    if not creator:
        return BookingSource.UNKNOWN.value

    creator_lower = creator.lower()
    if "airbnb" in creator_lower:
        return BookingSource.AIRBNB.value
    elif "booking.com" in creator_lower or creator_lower == "booking":
        return BookingSource.BOOKING_COM.value
    elif "expedia" in creator_lower:
        return BookingSource.EXPEDIA.value
    elif "vrbo" in creator_lower or "homeaway" in creator_lower:
        return BookingSource.VRBO.value
    elif "direct" in creator_lower:
        return BookingSource.DIRECT.value
    else:
        return BookingSource.OTHER.value


class ReservationEventHandler:

    def __init__(self, db: Session):
        self.db = db
        self.invalidator = CacheInvalidator(db)

    def dispatch(self, method: str, xml_text: Union[str, bytes]) -> ReservationEventResult:
        """
        Parse and apply a notification.
        Raises UpstreamDataMissing for malformed payloads.
        """
        if method not in HANDLED_METHODS:
            logger.warning(f"⚠️  Unknown RU notification type: {method}")
            return ReservationEventResult(action="ignored", message=f"Unknown type {method}")

        notice = parse_notification(method, xml_text)
        if notice is None:
            logger.info(f"Ignoring RU notification {method}")
            return ReservationEventResult(action="ignored", message=method)

        if isinstance(notice, ReservationNotice):
            return self.handle_confirmed(notice)
        return self.handle_cancelled(notice)

    def handle_confirmed(self, notice: ReservationNotice) -> ReservationEventResult:
        unit = self.db.query(Unit).filter(Unit.ru_property_id == notice.property_id).first()
        if not unit:
            logger.warning(
                f"⚠️  Reservation {notice.reservation_id} for unknown RU property {notice.property_id}"
            )
            return ReservationEventResult(
                action="not_found",
                message=f"Unknown property {notice.property_id}"
            )

        booking = self.db.query(Booking).filter(
            Booking.ru_reservation_id == notice.reservation_id
        ).first()

        if booking:
            action = "updated"
            # A modification may move the stay; reopen the old nights first
            if booking.status == BookingStatus.CONFIRMED.value and (
                booking.unit_id != unit.id
                or booking.check_in != notice.date_from
                or booking.check_out != notice.date_to
            ):
                self.invalidator.on_booking_cancelled(booking)
        else:
            action = "created"
            booking = Booking(ru_reservation_id=notice.reservation_id)
            self.db.add(booking)

        booking.unit_id = unit.id
        booking.check_in = notice.date_from
        booking.check_out = notice.date_to
        booking.status = BookingStatus.CONFIRMED.value
        booking.source = map_creator_to_source(notice.creator)
        booking.guest_name = notice.guest_name
        booking.number_of_guests = notice.number_of_guests
        booking.updated_at = datetime.utcnow()
        self.db.commit()

        updated = self.invalidator.on_booking_confirmed(booking)
        logger.info(
            f"✅ Reservation {notice.reservation_id} {action} for unit {unit.id} "
            f"({notice.date_from} to {notice.date_to})"
        )
        return ReservationEventResult(
            action=action,
            booking_id=booking.id,
            cache_records_updated=updated
        )

    def handle_cancelled(self, notice: CancellationNotice) -> ReservationEventResult:
        booking = self.db.query(Booking).filter(
            Booking.ru_reservation_id == notice.reservation_id
        ).first()

        if not booking:
            logger.warning(f"⚠️  Cancellation for unknown reservation {notice.reservation_id}")
            return ReservationEventResult(
                action="not_found",
                message=f"Unknown reservation {notice.reservation_id}"
            )

        if booking.status == BookingStatus.CANCELLED.value:
            return ReservationEventResult(
                action="ignored",
                booking_id=booking.id,
                message="Already cancelled"
            )

        booking.status = BookingStatus.CANCELLED.value
        booking.updated_at = datetime.utcnow()
        self.db.commit()

        updated = self.invalidator.on_booking_cancelled(booking)
        logger.info(f"🚫 Reservation {notice.reservation_id} cancelled, booking {booking.id}")
        return ReservationEventResult(
            action="cancelled",
            booking_id=booking.id,
            cache_records_updated=updated
        )
