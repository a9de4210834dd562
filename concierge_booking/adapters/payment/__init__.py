"""Payment adapters - Implementations of PaymentProcessorPort.

Available implementations:
- StripePaymentProcessor: Stripe PaymentIntents (production)
- SandboxPaymentProcessor: Deterministic test-card processor
"""

from .sandbox_processor import SandboxPaymentProcessor
from .stripe_adapter import StripePaymentProcessor

__all__ = ["StripePaymentProcessor", "SandboxPaymentProcessor"]
