"""Payment processor port - Abstraction for client-side payment confirmation."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol

if TYPE_CHECKING:
    from ..domain.models import PaymentDetails, ProcessorConfirmation


class PaymentProcessorPort(Protocol):
    """Port for payment processors.

    Implementations:
    - adapters/payment/stripe_adapter.py (StripePaymentProcessor) - Production
    - adapters/payment/sandbox_processor.py (SandboxPaymentProcessor) - Development/testing
    """

    def confirm_payment(
        self,
        client_secret: str,
        details: PaymentDetails,
        return_url: str,
    ) -> ProcessorConfirmation:
        """Confirm a payment intent with the user's payment method.

        A challenge flow (3-D Secure, bank redirect) comes back as a
        'requires_action' confirmation carrying the redirect URL; the user
        returns to return_url when it completes.

        Raises:
            PaymentError: If the processor declined or failed the payment.
            PaymentOutcomeUnknownError: If the result never came back and
                the payment may have been taken.
        """
        ...
