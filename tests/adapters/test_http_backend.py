"""Tests for the HTTP booking backend adapter."""

from datetime import date
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
import requests

from concierge_booking.adapters.backend import HttpBookingBackend
from concierge_booking.adapters.backend.http_backend import build_session
from concierge_booking.config import BackendConfig
from concierge_booking.domain.errors import BackendError
from concierge_booking.domain.models import Money, PaymentProof, PaymentState


def _response(status_code, body=None, json_error=None):
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    if json_error is not None:
        response.json.side_effect = json_error
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def session():
    return MagicMock()


@pytest.fixture
def http_backend(session):
    return HttpBookingBackend(config=BackendConfig(base_url="https://api.test/api/"), session=session)


class TestCreateBooking:
    """Booking creation request and response mapping."""

    def test_request_shape(self, http_backend, session, offer, travelers):
        session.request.return_value = _response(
            201,
            {"success": True, "data": {"bookingId": "bk_1", "fee": {"amount": 25.0, "currency": "USD"}}},
        )

        intent = http_backend.create_booking(offer, tuple(travelers), "key-1")

        method, url = session.request.call_args.args
        kwargs = session.request.call_args.kwargs
        assert (method, url) == ("POST", "https://api.test/api/bookings/request")
        assert kwargs["headers"] == {"Idempotency-Key": "key-1"}
        body = kwargs["json"]
        assert body["flightOffers"][0]["id"] == "OFFER-1"
        assert body["flightOffers"][0]["price"]["grandTotal"] == "486.30"
        assert body["flightOffers"][0]["travelerPricings"][1]["travelerType"] == "CHILD"
        primary = body["travelers"][0]
        assert primary["firstName"] == "Anna"
        assert primary["dateOfBirth"] == "1974-08-12"
        assert primary["email"] == "anna@example.com"
        assert primary["phone"] == {"countryCode": "1", "number": "5551234"}
        assert primary["documents"] == []

        assert intent.booking_id == "bk_1"
        assert intent.fee == Money(Decimal("25"), "USD")
        assert intent.idempotency_key == "key-1"

    def test_documents_are_sent(self, http_backend, session, offer, travelers):
        travelers = travelers.update(0, "document_number", "L898902C3")
        travelers = travelers.update(0, "document_expiry_date", date(2032, 4, 15))
        session.request.return_value = _response(
            201, {"success": True, "data": {"bookingId": "bk_1", "fee": {"amount": "0", "currency": "usd"}}}
        )

        intent = http_backend.create_booking(offer, tuple(travelers), "key-1")

        document = session.request.call_args.kwargs["json"]["travelers"][0]["documents"][0]
        assert document["documentType"] == "PASSPORT"
        assert document["number"] == "L898902C3"
        assert document["expiryDate"] == "2032-04-15"
        assert intent.fee.is_zero
        assert intent.fee.currency == "USD"

    def test_seats_and_special_requests_are_sent(self, http_backend, session, offer, travelers):
        travelers = travelers.select_seats(0, ["12A", "3F"])
        session.request.return_value = _response(
            201, {"success": True, "data": {"bookingId": "bk_1", "fee": {"amount": 25, "currency": "USD"}}}
        )

        http_backend.create_booking(offer, tuple(travelers), "key-1", special_requests="Window please")

        body = session.request.call_args.kwargs["json"]
        assert body["travelers"][0]["selectedSeats"] == "12A, 3F"
        assert "selectedSeats" not in body["travelers"][1]
        assert body["specialRequests"] == "Window please"


class TestPayments:
    def test_create_intent(self, http_backend, session):
        session.request.return_value = _response(
            200,
            {"success": True, "data": {"clientSecret": "pi_1_secret_x", "paymentIntentId": "pi_1"}},
        )

        handle = http_backend.create_payment_intent("bk_1", Money(Decimal("25.00"), "USD"))

        kwargs = session.request.call_args.kwargs
        assert kwargs["json"] == {"bookingId": "bk_1", "amount": 25.0, "currency": "usd"}
        assert kwargs["headers"]["Idempotency-Key"].startswith("intent-bk_1-")
        assert handle.payment_intent_id == "pi_1"
        assert handle.client_secret == "pi_1_secret_x"

    def test_every_intent_request_is_a_new_attempt(self, http_backend, session):
        session.request.return_value = _response(
            200,
            {"success": True, "data": {"clientSecret": "pi_1_secret_x", "paymentIntentId": "pi_1"}},
        )
        fee = Money(Decimal("25.00"), "USD")

        http_backend.create_payment_intent("bk_1", fee)
        http_backend.create_payment_intent("bk_1", fee)

        first, second = [c.kwargs["headers"]["Idempotency-Key"] for c in session.request.call_args_list]
        assert first != second

    def test_finalize_with_processor_payment(self, http_backend, session):
        session.request.return_value = _response(200, {"success": True, "data": {"reference": "CB1"}})

        reference = http_backend.finalize_booking("bk_1", PaymentProof.processor("pi_1"))

        kwargs = session.request.call_args.kwargs
        assert session.request.call_args.args[1].endswith("/payments/confirm")
        assert kwargs["json"] == {"bookingId": "bk_1", "paymentIntentId": "pi_1"}
        assert kwargs["headers"] == {"Idempotency-Key": "finalize-bk_1-pi_1"}
        assert reference == "CB1"

    def test_finalize_with_fee_waiver(self, http_backend, session):
        session.request.return_value = _response(200, {"success": True, "data": {"reference": "CB2"}})

        http_backend.finalize_booking("bk_1", PaymentProof.waiver())

        assert session.request.call_args.kwargs["json"] == {
            "bookingId": "bk_1",
            "paymentMethod": "FEE_WAIVED",
        }


class TestStatus:
    def test_paid_booking(self, http_backend, session):
        session.request.return_value = _response(
            200,
            {"success": True, "data": {"bookingId": "bk_1", "paymentStatus": "PAID", "reference": "CB1"}},
        )

        status = http_backend.get_booking_status("bk_1")

        assert session.request.call_args.args == ("GET", "https://api.test/api/bookings/bk_1/status")
        assert status.payment_state is PaymentState.SUCCEEDED
        assert status.booking_reference == "CB1"

    @pytest.mark.parametrize(
        "wire, expected",
        [
            ("pending", PaymentState.NOT_STARTED),
            ("requires_payment_method", PaymentState.INTENT_CREATED),
            ("processing", PaymentState.CONFIRMING),
            ("failed", PaymentState.FAILED),
            ("something_new", PaymentState.CONFIRMING),
        ],
    )
    def test_status_mapping(self, http_backend, session, wire, expected):
        session.request.return_value = _response(
            200, {"success": True, "data": {"bookingId": "bk_1", "paymentStatus": wire}}
        )

        assert http_backend.get_booking_status("bk_1").payment_state is expected


class TestFailures:
    def test_unreachable_backend(self, http_backend, session):
        session.request.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(BackendError) as exc_info:
            http_backend.get_booking_status("bk_1")

        assert exc_info.value.status_code is None
        assert exc_info.value.endpoint == "/bookings/bk_1/status"
        assert exc_info.value.message == "The booking service could not be reached"

    def test_rejected_envelope(self, http_backend, session):
        session.request.return_value = _response(
            400, {"success": False, "message": "Offer is no longer available"}
        )

        with pytest.raises(BackendError) as exc_info:
            http_backend.finalize_booking("bk_1", PaymentProof.processor("pi_1"))

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "Offer is no longer available"

    def test_error_field_is_used_without_message(self, http_backend, session):
        session.request.return_value = _response(200, {"success": False, "error": "Booking locked"})

        with pytest.raises(BackendError) as exc_info:
            http_backend.finalize_booking("bk_1", PaymentProof.processor("pi_1"))

        assert exc_info.value.message == "Booking locked"

    def test_non_json_error_page(self, http_backend, session):
        session.request.return_value = _response(502, json_error=ValueError("not json"))

        with pytest.raises(BackendError) as exc_info:
            http_backend.get_booking_status("bk_1")

        assert exc_info.value.message == "The booking service answered with HTTP 502"
        assert exc_info.value.status_code == 502

    def test_malformed_data(self, http_backend, session):
        session.request.return_value = _response(200, {"success": True, "data": {"bookingId": "bk_1"}})

        with pytest.raises(BackendError) as exc_info:
            http_backend.get_booking_status("bk_1")

        assert exc_info.value.message == "The booking service returned an unreadable response"


class TestSession:
    def test_retry_policy(self):
        session = build_session(BackendConfig(max_retries=3))

        retry = session.get_adapter("https://api.test").max_retries
        assert retry.total == 3
        assert 503 in retry.status_forcelist
        assert "POST" in retry.allowed_methods
        assert "Authorization" not in session.headers

    def test_bearer_token(self):
        session = build_session(BackendConfig(api_token="tok"))

        assert session.headers["Authorization"] == "Bearer tok"
        assert session.headers["Content-Type"] == "application/json"
