"""Deterministic payment processor for development and tests.

The outcome depends only on the payment method token, using the same
names as the processor's test cards.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Tuple
from urllib.parse import urlencode

from ...domain.errors import PaymentError
from ...domain.models import PaymentDetails, ProcessorConfirmation
from .stripe_adapter import intent_id_from_secret

SUCCEEDS = "pm_card_visa"
DECLINED = "pm_card_chargeDeclined"
INSUFFICIENT_FUNDS = "pm_card_chargeDeclinedInsufficientFunds"
REQUIRES_ACTION = "pm_card_threeDSecure2Required"

_DECLINES = {
    DECLINED: ("Your card was declined.", "generic_decline"),
    INSUFFICIENT_FUNDS: ("Your card has insufficient funds.", "insufficient_funds"),
}


@dataclass
class SandboxPaymentProcessor:
    """Processor that never leaves the process.

    This adapter implements PaymentProcessorPort. Unknown tokens are
    treated as successful cards.

    Attributes:
        challenge_url: Redirect URL returned for the challenge card
        confirmations: (client secret, payment method) of every call, in order
    """

    challenge_url: str = "https://sandbox.payments.local/3ds/challenge"
    confirmations: List[Tuple[str, str]] = field(default_factory=list)

    _logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._logger = logging.getLogger(__name__)

    def confirm_payment(
        self,
        client_secret: str,
        details: PaymentDetails,
        return_url: str,
    ) -> ProcessorConfirmation:
        payment_intent_id = intent_id_from_secret(client_secret)
        self.confirmations.append((client_secret, details.payment_method))

        decline = _DECLINES.get(details.payment_method)
        if decline is not None:
            message, code = decline
            self._logger.info(
                "Sandbox decline",
                extra={"payment_intent_id": payment_intent_id, "decline_code": code},
            )
            raise PaymentError(message, decline_code=code)

        if details.payment_method == REQUIRES_ACTION:
            return ProcessorConfirmation(
                status="requires_action",
                payment_intent_id=payment_intent_id,
                redirect_url=f"{self.challenge_url}?{urlencode({'return_url': return_url})}",
            )

        return ProcessorConfirmation(status="succeeded", payment_intent_id=payment_intent_id)
