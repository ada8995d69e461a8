"""
Rentals United XML parsing layer

Normalizes upstream XML into typed values at the boundary so nothing
downstream has to deal with optional fields or "one element vs many".

Responses handled:
- Pull_ListPropertyAvailabilityCalendar_RS -> List[AvailabilityDay]
- Pull_ListPropertyPrices_RS               -> List[SeasonPriceInterval]
- Push_PutConfirmedReservationMulti_RS     -> reservation id
- Push_CancelReservation_RS                -> status check only

Push notifications handled (LNM_* requests sent by RU to our webhook):
- LNM_PutConfirmedReservation_RQ -> ReservationNotice
- LNM_CancelReservation_RQ       -> CancellationNotice
"""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import List, Optional, Union

from ..utils.dates import parse_iso_date
from .errors import UpstreamDataMissing, UpstreamUnavailable
from .season_pricing import SeasonPriceInterval

logger = logging.getLogger(__name__)

CONFIRMED_RESERVATION_METHOD = "LNM_PutConfirmedReservation_RQ"
CANCEL_RESERVATION_METHOD = "LNM_CancelReservation_RQ"
IGNORED_NOTIFICATION_METHODS = ("LNM_PutUnconfirmedReservation_RQ", "LNM_PutLeadReservation_RQ")


@dataclass(frozen=True)
class AvailabilityDay:
    date: date
    is_available: bool


@dataclass(frozen=True)
class ReservationNotice:
    """A confirmed reservation pushed by RU (any channel)."""
    reservation_id: str
    property_id: str
    date_from: date
    date_to: date  # exclusive, departure day
    number_of_guests: Optional[int] = None
    guest_name: Optional[str] = None
    creator: Optional[str] = None


@dataclass(frozen=True)
class CancellationNotice:
    reservation_id: str


Notification = Union[ReservationNotice, CancellationNotice]


# ==================
# Helpers
# ==================

def _parse_root(xml_text: Union[str, bytes], expected_root: str) -> ET.Element:
    if isinstance(xml_text, str):
        xml_text = xml_text.encode("utf-8")
    try:
        root = ET.fromstring(xml_text)
    except ET.ParseError as e:
        raise UpstreamDataMissing(f"Malformed XML in {expected_root}: {e}")

    if root.tag != expected_root:
        # RU wraps some errors in a generic <error> element
        if root.tag.lower() == "error":
            raise UpstreamUnavailable(f"Upstream error: {(root.text or '').strip()}")
        raise UpstreamDataMissing(f"Expected <{expected_root}>, got <{root.tag}>")
    return root


def _check_status(root: ET.Element) -> None:
    """Raise when RU reports a non-zero Status ID."""
    status = root.find("Status")
    if status is None:
        return
    status_id = (status.get("ID") or "0").strip()
    if status_id != "0":
        message = (status.text or "").strip() or "unknown error"
        raise UpstreamUnavailable(f"Upstream status {status_id}: {message}")


def _text_or_attr(element: ET.Element, name: str) -> Optional[str]:
    value = element.get(name)
    if value is None:
        value = element.findtext(name)
    return value.strip() if value is not None else None


def _is_true(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("true", "1")


def _required_text(element: ET.Element, path: str, context: str) -> str:
    value = element.findtext(path)
    if value is None or not value.strip():
        raise UpstreamDataMissing(f"Missing {path} in {context}")
    return value.strip()


# ==================
# Pull responses
# ==================

def parse_availability_calendar(xml_text: Union[str, bytes]) -> List[AvailabilityDay]:
    """
    A day is available when it is not blocked and has at least one free unit.
    Days without a usable Date are dropped with a warning.
    """
    root = _parse_root(xml_text, "Pull_ListPropertyAvailabilityCalendar_RS")
    _check_status(root)

    calendar = root.find("PropertyCalendar")
    if calendar is None:
        raise UpstreamDataMissing("No calendar data returned from RU")

    cal_days = calendar.findall("CalDay")
    if not cal_days:
        raise UpstreamDataMissing("No CalDay data in calendar")

    days = []
    for cal_day in cal_days:
        date_str = _text_or_attr(cal_day, "Date")
        if not date_str:
            logger.warning("⚠️  Missing date in CalDay, skipping")
            continue
        try:
            day = parse_iso_date(date_str)
        except ValueError:
            logger.warning(f"⚠️  Invalid date in CalDay: {date_str!r}")
            continue

        try:
            free_units = int(_text_or_attr(cal_day, "Units") or 0)
        except ValueError:
            free_units = 0

        blocked = _is_true(_text_or_attr(cal_day, "IsBlocked"))
        days.append(AvailabilityDay(date=day, is_available=not blocked and free_units > 0))

    if not days:
        raise UpstreamDataMissing("Calendar contained no usable days")
    return days


def parse_seasonal_prices(xml_text: Union[str, bytes]) -> List[SeasonPriceInterval]:
    """
    Returns seasons in upstream order. An empty list means the property
    has no pricing configured upstream.
    """
    root = _parse_root(xml_text, "Pull_ListPropertyPrices_RS")
    _check_status(root)

    prices = root.find("Prices")
    if prices is None:
        logger.info("No pricing data structure returned from RU")
        return []

    seasons = []
    for season in prices.findall("Season"):
        date_from_str = _text_or_attr(season, "DateFrom")
        date_to_str = _text_or_attr(season, "DateTo")
        price_str = season.findtext("Price")
        if price_str is None:
            price_str = season.text

        try:
            price = Decimal((price_str or "").strip())
            if not price.is_finite() or price < 0:
                raise InvalidOperation
            date_from = parse_iso_date(date_from_str or "")
            date_to = parse_iso_date(date_to_str or "")
        except (InvalidOperation, ValueError):
            logger.warning(
                f"⚠️  Invalid season data: from={date_from_str!r} to={date_to_str!r} price={price_str!r}"
            )
            continue

        seasons.append(SeasonPriceInterval(date_from=date_from, date_to=date_to, price=price))

    return seasons


# ==================
# Push responses
# ==================

def parse_push_reservation_response(xml_text: Union[str, bytes]) -> str:
    root = _parse_root(xml_text, "Push_PutConfirmedReservationMulti_RS")
    _check_status(root)
    return _required_text(root, "ReservationID", "Push_PutConfirmedReservationMulti_RS")


def parse_cancel_reservation_response(xml_text: Union[str, bytes]) -> None:
    root = _parse_root(xml_text, "Push_CancelReservation_RS")
    _check_status(root)


# ==================
# Push notifications (webhook)
# ==================

def parse_notification_password(method: str, xml_text: Union[str, bytes]) -> Optional[str]:
    root = _parse_root(xml_text, method)
    return root.findtext("Authentication/Password")


def parse_notification(method: str, xml_text: Union[str, bytes]) -> Optional[Notification]:
    """
    Returns None for notification types we acknowledge but ignore.
    Raises UpstreamDataMissing for malformed or incomplete payloads.
    """
    if method in IGNORED_NOTIFICATION_METHODS:
        return None

    if method == CONFIRMED_RESERVATION_METHOD:
        root = _parse_root(xml_text, method)
        reservation = root.find("Reservation")
        if reservation is None:
            raise UpstreamDataMissing("No Reservation in confirmed reservation notification")

        stay_info = reservation.find("StayInfos/StayInfo")
        if stay_info is None:
            raise UpstreamDataMissing("No StayInfo in confirmed reservation notification")

        context = "StayInfo"
        try:
            date_from = parse_iso_date(_required_text(stay_info, "DateFrom", context))
            date_to = parse_iso_date(_required_text(stay_info, "DateTo", context))
        except ValueError as e:
            raise UpstreamDataMissing(f"Invalid stay dates: {e}")

        guests = stay_info.findtext("NumberOfGuests")
        name = " ".join(
            part.strip() for part in (
                reservation.findtext("CustomerInfo/Name") or "",
                reservation.findtext("CustomerInfo/SurName") or "",
            ) if part.strip()
        )

        return ReservationNotice(
            reservation_id=_required_text(reservation, "ReservationID", "Reservation"),
            property_id=_required_text(stay_info, "PropertyID", context),
            date_from=date_from,
            date_to=date_to,
            number_of_guests=int(guests) if guests and guests.strip().isdigit() else None,
            guest_name=name or None,
            creator=(reservation.findtext("Creator") or "").strip() or None,
        )

    if method == CANCEL_RESERVATION_METHOD:
        root = _parse_root(xml_text, method)
        return CancellationNotice(
            reservation_id=_required_text(root, "ReservationID", method)
        )

    raise UpstreamDataMissing(f"Unknown notification type: {method}")
