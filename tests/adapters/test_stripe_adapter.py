"""Tests for the Stripe payment processor adapter."""

from unittest.mock import patch

import pytest
import stripe

from concierge_booking.adapters.payment import StripePaymentProcessor
from concierge_booking.adapters.payment.stripe_adapter import intent_id_from_secret
from concierge_booking.config import PaymentConfig
from concierge_booking.domain.errors import (
    ConfigurationError,
    PaymentError,
    PaymentOutcomeUnknownError,
)
from concierge_booking.domain.models import PaymentDetails

SECRET = "pi_123_secret_abc"
RETURN_URL = "http://localhost:3000/booking/confirmation?booking_id=bk_1"


@pytest.fixture
def stripe_processor():
    return StripePaymentProcessor(PaymentConfig(publishable_key="pk_test_123"))


def test_publishable_key_is_required():
    with pytest.raises(ConfigurationError) as exc_info:
        StripePaymentProcessor(PaymentConfig(publishable_key=""))

    assert exc_info.value.setting_name == "BOOKING_PAYMENT_PUBLISHABLE_KEY"


def test_intent_id_from_secret():
    assert intent_id_from_secret(SECRET) == "pi_123"

    with pytest.raises(PaymentError):
        intent_id_from_secret("not-a-secret")


def test_succeeded(stripe_processor):
    with patch.object(
        stripe.PaymentIntent, "confirm", return_value={"id": "pi_123", "status": "succeeded"}
    ) as confirm:
        result = stripe_processor.confirm_payment(SECRET, PaymentDetails("pm_card_visa"), RETURN_URL)

    assert result.is_success
    assert result.payment_intent_id == "pi_123"
    confirm.assert_called_once_with(
        "pi_123",
        api_key="pk_test_123",
        client_secret=SECRET,
        payment_method="pm_card_visa",
        return_url=RETURN_URL,
    )


def test_requires_action(stripe_processor):
    intent = {
        "id": "pi_123",
        "status": "requires_action",
        "next_action": {"redirect_to_url": {"url": "https://hooks.stripe.test/3ds"}},
    }
    with patch.object(stripe.PaymentIntent, "confirm", return_value=intent):
        result = stripe_processor.confirm_payment(SECRET, PaymentDetails("pm_card_visa"), RETURN_URL)

    assert result.status == "requires_action"
    assert result.redirect_url == "https://hooks.stripe.test/3ds"
    assert not result.is_success


def test_processing(stripe_processor):
    with patch.object(
        stripe.PaymentIntent, "confirm", return_value={"id": "pi_123", "status": "processing"}
    ):
        result = stripe_processor.confirm_payment(SECRET, PaymentDetails("pm_card_visa"), RETURN_URL)

    assert result.status == "processing"
    assert result.redirect_url is None


def test_card_error_message_is_kept(stripe_processor):
    error = stripe.CardError("Your card has insufficient funds.", None, "card_declined")

    with patch.object(stripe.PaymentIntent, "confirm", side_effect=error):
        with pytest.raises(PaymentError) as exc_info:
            stripe_processor.confirm_payment(SECRET, PaymentDetails("pm_card_visa"), RETURN_URL)

    assert exc_info.value.message == "Your card has insufficient funds."
    assert exc_info.value.decline_code == "card_declined"
    assert exc_info.value.cause is error


@pytest.mark.parametrize(
    "error",
    [
        stripe.APIConnectionError("Network down"),
        stripe.APIError("Internal error", http_status=500),
    ],
)
def test_lost_responses_leave_the_outcome_unknown(stripe_processor, error):
    with patch.object(stripe.PaymentIntent, "confirm", side_effect=error):
        with pytest.raises(PaymentOutcomeUnknownError) as exc_info:
            stripe_processor.confirm_payment(SECRET, PaymentDetails("pm_card_visa"), RETURN_URL)

    assert exc_info.value.payment_intent_id == "pi_123"
    assert exc_info.value.cause is error
    assert "You have not been charged" not in exc_info.value.user_message()


def test_rejected_requests_are_generic(stripe_processor):
    error = stripe.InvalidRequestError("No such payment_intent", "intent")

    with patch.object(stripe.PaymentIntent, "confirm", side_effect=error):
        with pytest.raises(PaymentError) as exc_info:
            stripe_processor.confirm_payment(SECRET, PaymentDetails("pm_card_visa"), RETURN_URL)

    assert exc_info.value.message == "The payment could not be processed."
    assert "You have not been charged." in exc_info.value.user_message()


def test_failed_after_confirm(stripe_processor):
    intent = {
        "id": "pi_123",
        "status": "requires_payment_method",
        "last_payment_error": {"message": "Your card was declined.", "decline_code": "generic_decline"},
    }
    with patch.object(stripe.PaymentIntent, "confirm", return_value=intent):
        with pytest.raises(PaymentError) as exc_info:
            stripe_processor.confirm_payment(SECRET, PaymentDetails("pm_card_visa"), RETURN_URL)

    assert exc_info.value.message == "Your card was declined."
    assert exc_info.value.decline_code == "generic_decline"
