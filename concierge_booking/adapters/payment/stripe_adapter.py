"""Stripe payment processor adapter.

Confirms the PaymentIntent the backend created, using the publishable
key and the intent's client secret (the same call Stripe.js makes in a
browser). The secret key never reaches this process.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

import stripe

from ...config import PaymentConfig, get_config
from ...domain.errors import ConfigurationError, PaymentError, PaymentOutcomeUnknownError
from ...domain.models import PaymentDetails, ProcessorConfirmation

_PENDING_STATUSES = {"requires_action", "processing", "requires_confirmation"}


def intent_id_from_secret(client_secret: str) -> str:
    """A client secret has the form '<intent id>_secret_<random>'."""
    intent_id, separator, _ = client_secret.partition("_secret_")
    if not separator or not intent_id:
        raise PaymentError("The payment session is invalid", retryable=True)
    return intent_id


@dataclass
class StripePaymentProcessor:
    """Payment processor backed by Stripe PaymentIntents.

    This adapter implements PaymentProcessorPort.

    Attributes:
        config: Payment configuration (publishable key)
    """

    config: PaymentConfig = field(default_factory=lambda: get_config().payment)

    _logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._logger = logging.getLogger(__name__)
        if not self.config.publishable_key:
            raise ConfigurationError(
                "Stripe publishable key is not configured",
                setting_name="BOOKING_PAYMENT_PUBLISHABLE_KEY",
                expected_type="pk_live_... or pk_test_...",
            )

    def confirm_payment(
        self,
        client_secret: str,
        details: PaymentDetails,
        return_url: str,
    ) -> ProcessorConfirmation:
        """Confirm the intent with the user's payment method.

        Raises:
            PaymentError: If the card is declined or Stripe rejects the request.
            PaymentOutcomeUnknownError: If Stripe could not be reached or
                failed on its side, so the charge state is unknown.
        """
        intent_id = intent_id_from_secret(client_secret)
        params = {
            "client_secret": client_secret,
            "payment_method": details.payment_method,
            "return_url": return_url,
        }
        try:
            intent = stripe.PaymentIntent.confirm(
                intent_id,
                api_key=self.config.publishable_key,
                **params,
            )
        except stripe.CardError as e:
            self._logger.info(
                "Card declined",
                extra={"payment_intent_id": intent_id, "decline_code": _decline_code(e)},
            )
            raise PaymentError(
                e.user_message or "Your card was declined.",
                decline_code=_decline_code(e),
                cause=e,
            )
        except (stripe.APIConnectionError, stripe.APIError) as e:
            # the request may have reached Stripe before the failure
            self._logger.warning(
                "Stripe confirmation outcome unknown",
                extra={"payment_intent_id": intent_id, "error": str(e)},
            )
            raise PaymentOutcomeUnknownError(
                "We could not reach the payment provider.",
                payment_intent_id=intent_id,
                cause=e,
            )
        except stripe.StripeError as e:
            self._logger.error(
                "Stripe confirmation failed",
                extra={"payment_intent_id": intent_id, "error": str(e)},
            )
            raise PaymentError("The payment could not be processed.", cause=e)

        return self._to_confirmation(intent, intent_id)

    def _to_confirmation(self, intent: Any, intent_id: str) -> ProcessorConfirmation:
        status = intent["status"]
        payment_intent_id = intent.get("id") or intent_id

        if status == "succeeded":
            return ProcessorConfirmation(status="succeeded", payment_intent_id=payment_intent_id)

        if status in _PENDING_STATUSES:
            return ProcessorConfirmation(
                status="processing" if status == "processing" else "requires_action",
                payment_intent_id=payment_intent_id,
                redirect_url=_redirect_url(intent),
            )

        # requires_payment_method after a confirm means the attempt failed
        last_error = intent.get("last_payment_error") or {}
        raise PaymentError(
            last_error.get("message") or "Your payment was not accepted.",
            decline_code=last_error.get("decline_code") or last_error.get("code"),
        )


def _redirect_url(intent: Any) -> Optional[str]:
    next_action = intent.get("next_action") or {}
    redirect = next_action.get("redirect_to_url") or {}
    return redirect.get("url")


def _decline_code(error: stripe.StripeError) -> Optional[str]:
    details = getattr(error, "error", None)
    return getattr(details, "decline_code", None) or getattr(error, "code", None)
