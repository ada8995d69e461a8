"""
Tests for RentalsUnitedClient

Uses httpx.MockTransport so no request leaves the process.

Tests cover:
- Request body (root element, credentials, property and dates)
- Transport errors, timeouts and HTTP errors -> UpstreamUnavailable
- Password redaction for logs
- Push / cancel reservation
"""

import xml.etree.ElementTree as ET
from datetime import date
from decimal import Decimal

import httpx
import pytest

from staysync.services.errors import UpstreamDataMissing, UpstreamUnavailable
from staysync.services.ru_client import RentalsUnitedClient, ReservationRequest


CALENDAR_RS = """<Pull_ListPropertyAvailabilityCalendar_RS>
  <Status ID="0">Success</Status>
  <PropertyCalendar PropertyID="12345">
    <CalDay Date="2025-06-01"><Units>1</Units><IsBlocked>false</IsBlocked></CalDay>
  </PropertyCalendar>
</Pull_ListPropertyAvailabilityCalendar_RS>"""

PRICES_RS = """<Pull_ListPropertyPrices_RS>
  <Status ID="0">Success</Status>
  <Prices><Season DateFrom="2025-06-01" DateTo="2025-06-30"><Price>100</Price></Season></Prices>
</Pull_ListPropertyPrices_RS>"""


def make_client(handler):
    http = httpx.Client(transport=httpx.MockTransport(handler))
    return RentalsUnitedClient(
        username="user@example.com",
        password="secret-pass",
        base_url="https://ru.test/api/Handler.ashx",
        timeout=5,
        http_client=http,
    )


class TestPullOperations:

    def test_fetch_availability_calendar_sends_xml_request(self):
        captured = {}

        def handler(request):
            captured["body"] = request.content
            captured["url"] = str(request.url)
            return httpx.Response(200, text=CALENDAR_RS)

        client = make_client(handler)
        days = client.fetch_availability_calendar("12345", date(2025, 6, 1), date(2025, 11, 28))

        root = ET.fromstring(captured["body"])
        assert captured["url"] == "https://ru.test/api/Handler.ashx"
        assert root.tag == "Pull_ListPropertyAvailabilityCalendar_RQ"
        assert root.findtext("Authentication/UserName") == "user@example.com"
        assert root.findtext("Authentication/Password") == "secret-pass"
        assert root.findtext("PropertyID") == "12345"
        assert root.findtext("DateFrom") == "2025-06-01"
        assert root.findtext("DateTo") == "2025-11-28"
        assert len(days) == 1
        assert days[0].is_available is True

    def test_fetch_seasonal_prices(self):
        def handler(request):
            root = ET.fromstring(request.content)
            assert root.tag == "Pull_ListPropertyPrices_RQ"
            assert root.findtext("PricingModelMode") == "0"
            return httpx.Response(200, text=PRICES_RS)

        seasons = make_client(handler).fetch_seasonal_prices("12345", date(2025, 6, 1), date(2025, 6, 30))

        assert len(seasons) == 1
        assert seasons[0].price == Decimal("100")

    def test_http_error_status_raises_unavailable(self):
        client = make_client(lambda request: httpx.Response(503, text="Service Unavailable"))

        with pytest.raises(UpstreamUnavailable) as exc_info:
            client.fetch_availability_calendar("12345", date(2025, 6, 1), date(2025, 6, 2))
        assert exc_info.value.status_code == 503

    def test_timeout_raises_unavailable(self):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        with pytest.raises(UpstreamUnavailable):
            make_client(handler).fetch_seasonal_prices("12345", date(2025, 6, 1), date(2025, 6, 2))

    def test_connection_error_raises_unavailable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(UpstreamUnavailable):
            make_client(handler).fetch_availability_calendar("12345", date(2025, 6, 1), date(2025, 6, 2))

    def test_empty_calendar_payload_raises_data_missing(self):
        client = make_client(lambda request: httpx.Response(
            200, text="<Pull_ListPropertyAvailabilityCalendar_RS/>"
        ))

        with pytest.raises(UpstreamDataMissing):
            client.fetch_availability_calendar("12345", date(2025, 6, 1), date(2025, 6, 2))


class TestPushOperations:

    def test_push_reservation_returns_id(self):
        def handler(request):
            root = ET.fromstring(request.content)
            assert root.tag == "Push_PutConfirmedReservationMulti_RQ"
            assert root.findtext("Reservation/StayInfos/StayInfo/PropertyID") == "12345"
            assert root.findtext("Reservation/StayInfos/StayInfo/Costs/RUPrice") == "330.00"
            assert root.findtext("Reservation/CustomerInfo/SurName") == "Doe"
            return httpx.Response(200, text=(
                "<Push_PutConfirmedReservationMulti_RS>"
                "<Status ID=\"0\">Success</Status><ReservationID>777</ReservationID>"
                "</Push_PutConfirmedReservationMulti_RS>"
            ))

        reservation = ReservationRequest(
            property_id="12345",
            date_from=date(2025, 6, 10),
            date_to=date(2025, 6, 13),
            number_of_guests=2,
            ru_price=Decimal("330"),
            client_price=Decimal("330"),
            already_paid=Decimal("0"),
            customer_name="Jane",
            customer_surname="Doe",
            customer_email="jane@example.com",
        )

        assert make_client(handler).push_reservation(reservation) == "777"

    def test_cancel_reservation_error_status(self):
        client = make_client(lambda request: httpx.Response(200, text=(
            "<Push_CancelReservation_RS><Status ID=\"-1\">Reservation not found</Status></Push_CancelReservation_RS>"
        )))

        with pytest.raises(UpstreamUnavailable):
            client.cancel_reservation("777")


class TestSanitize:

    def test_password_is_redacted(self):
        client = make_client(lambda request: httpx.Response(200))
        body = "<Authentication><UserName>u</UserName><Password>secret-pass</Password></Authentication>"

        sanitized = client._sanitize(body)

        assert "secret-pass" not in sanitized
        assert "[REDACTED]" in sanitized
