"""
Rentals United API Client

Thin wrapper for the Rentals United XML API used by the cache engine:
- Pull_ListPropertyAvailabilityCalendar_RQ (availability calendar)
- Pull_ListPropertyPrices_RQ (seasonal prices)
- Push_PutConfirmedReservationMulti_RQ / Push_CancelReservation_RQ

Every call is a single XML POST with a bounded timeout. There are no
inline retries: a failed unit is retried by the next scheduled pass.
Transport problems surface as UpstreamUnavailable, missing payloads as
UpstreamDataMissing (raised by the parsing layer).

RU API documentation: https://developer.rentalsunited.com/
"""

import re
import time
import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Optional

import httpx

from ..config import settings
from .errors import UpstreamUnavailable
from .ru_parser import (
    AvailabilityDay,
    parse_availability_calendar,
    parse_seasonal_prices,
    parse_push_reservation_response,
    parse_cancel_reservation_response,
)
from .season_pricing import SeasonPriceInterval

logger = logging.getLogger(__name__)

_PASSWORD_RE = re.compile(r"<Password>.*?</Password>", re.DOTALL)


@dataclass
class ReservationRequest:
    """Confirmed reservation to push upstream."""
    property_id: str
    date_from: date
    date_to: date
    number_of_guests: int
    ru_price: Decimal
    client_price: Decimal
    already_paid: Decimal
    customer_name: str
    customer_surname: str
    customer_email: str
    customer_phone: Optional[str] = None
    comments: Optional[str] = None


def _sub(parent: ET.Element, tag: str, text=None) -> ET.Element:
    element = ET.SubElement(parent, tag)
    if text is not None:
        element.text = str(text)
    return element


class RentalsUnitedClient:
    """
    Stateless client for the Rentals United XML API.

    Safe to share between threads (the two fetches of a unit run
    concurrently on one client).
    """

    def __init__(
        self,
        username: str,
        password: str,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.Client] = None
    ):
        self.username = username
        self.password = password
        self.base_url = base_url or settings.ru_base_url
        self.timeout = timeout if timeout is not None else settings.ru_timeout_seconds
        self._http = http_client or httpx.Client(timeout=self.timeout)

    def close(self):
        self._http.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()

    def _get_headers(self) -> dict:
        return {
            "Content-Type": "application/xml",
            "Accept": "application/xml",
            "User-Agent": "StaySync-Backend/1.0",
        }

    def _new_request(self, root_tag: str) -> ET.Element:
        root = ET.Element(root_tag)
        auth = _sub(root, "Authentication")
        _sub(auth, "UserName", self.username)
        _sub(auth, "Password", self.password)
        return root

    def _sanitize(self, body: str) -> str:
        """Remove credentials before logging"""
        return _PASSWORD_RE.sub("<Password>[REDACTED]</Password>", body)

    def _make_request(self, request: ET.Element) -> str:
        """
        POST one XML request and return the raw response body.

        Raises UpstreamUnavailable on timeout, transport error or non-2xx.
        """
        body = ET.tostring(request, encoding="unicode")
        operation = request.tag
        start_time = time.time()

        logger.debug(f"RU request {operation}: {self._sanitize(body)}")

        try:
            response = self._http.post(
                self.base_url,
                content=body.encode("utf-8"),
                headers=self._get_headers(),
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise UpstreamUnavailable(f"{operation} timed out after {self.timeout}s: {e}")
        except httpx.HTTPError as e:
            raise UpstreamUnavailable(f"{operation} failed: {e}")

        duration_ms = int((time.time() - start_time) * 1000)

        if not 200 <= response.status_code < 300:
            logger.warning(
                f"RU {operation} returned HTTP {response.status_code} in {duration_ms}ms"
            )
            raise UpstreamUnavailable(
                f"{operation} returned HTTP {response.status_code}: {response.text[:200]}",
                status_code=response.status_code
            )

        logger.debug(f"RU response {operation} ({duration_ms}ms): {response.text[:2000]}")
        return response.text

    # ==================
    # Pull Operations
    # ==================

    def fetch_availability_calendar(
        self,
        ru_property_id: str,
        date_from: date,
        date_to: date
    ) -> List[AvailabilityDay]:
        """Per-day availability for [date_from, date_to] (inclusive)."""
        request = self._new_request("Pull_ListPropertyAvailabilityCalendar_RQ")
        _sub(request, "PropertyID", ru_property_id)
        _sub(request, "DateFrom", date_from.isoformat())
        _sub(request, "DateTo", date_to.isoformat())
        return parse_availability_calendar(self._make_request(request))

    def fetch_seasonal_prices(
        self,
        ru_property_id: str,
        date_from: date,
        date_to: date,
        pricing_model_mode: int = 0
    ) -> List[SeasonPriceInterval]:
        """Seasons overlapping the range. Empty when no pricing is configured."""
        request = self._new_request("Pull_ListPropertyPrices_RQ")
        _sub(request, "PropertyID", ru_property_id)
        _sub(request, "DateFrom", date_from.isoformat())
        _sub(request, "DateTo", date_to.isoformat())
        _sub(request, "PricingModelMode", pricing_model_mode)
        return parse_seasonal_prices(self._make_request(request))

    # ==================
    # Push Operations
    # ==================

    def push_reservation(self, reservation: ReservationRequest) -> str:
        """Create a confirmed reservation upstream. Returns the RU ReservationID."""
        request = self._new_request("Push_PutConfirmedReservationMulti_RQ")
        res = _sub(request, "Reservation")
        stay = _sub(_sub(res, "StayInfos"), "StayInfo")
        _sub(stay, "PropertyID", reservation.property_id)
        _sub(stay, "DateFrom", reservation.date_from.isoformat())
        _sub(stay, "DateTo", reservation.date_to.isoformat())
        _sub(stay, "NumberOfGuests", reservation.number_of_guests)
        costs = _sub(stay, "Costs")
        _sub(costs, "RUPrice", f"{reservation.ru_price:.2f}")
        _sub(costs, "ClientPrice", f"{reservation.client_price:.2f}")
        _sub(costs, "AlreadyPaid", f"{reservation.already_paid:.2f}")
        customer = _sub(res, "CustomerInfo")
        _sub(customer, "Name", reservation.customer_name)
        _sub(customer, "SurName", reservation.customer_surname)
        _sub(customer, "Email", reservation.customer_email)
        _sub(customer, "Phone", reservation.customer_phone or "")
        if reservation.comments:
            _sub(res, "Comments", reservation.comments)

        reservation_id = parse_push_reservation_response(self._make_request(request))
        logger.info(f"✅ Pushed reservation {reservation_id} for property {reservation.property_id}")
        return reservation_id

    def cancel_reservation(self, reservation_id: str, cancel_type_id: int = 2) -> None:
        request = self._new_request("Push_CancelReservation_RQ")
        _sub(request, "ReservationID", reservation_id)
        _sub(request, "CancelTypeID", cancel_type_id)
        parse_cancel_reservation_response(self._make_request(request))
        logger.info(f"🚫 Cancelled reservation {reservation_id} upstream")


def get_ru_client() -> RentalsUnitedClient:
    """Factory function to create a client from settings"""
    return RentalsUnitedClient(
        username=settings.ru_username,
        password=settings.ru_password,
        base_url=settings.ru_base_url,
        timeout=settings.ru_timeout_seconds
    )
