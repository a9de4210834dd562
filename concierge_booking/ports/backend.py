"""Booking backend port - Abstraction for the booking REST backend.

The backend stores bookings, creates processor payment intents and
issues booking references. Only the contract lives here; the wire
format belongs to the adapters.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, Sequence

if TYPE_CHECKING:
    from ..domain.models import (
        BookingIntent,
        BookingStatus,
        Money,
        Offer,
        PaymentIntentHandle,
        PaymentProof,
        TravelerInfo,
    )


class BookingBackendPort(Protocol):
    """Port for the booking backend.

    Implementations:
    - adapters/backend/http_backend.py (HttpBookingBackend) - Production
    - adapters/backend/sandbox_backend.py (SandboxBookingBackend) - Development/testing

    Every method raises BackendError when the backend rejects the request
    or cannot be reached.
    """

    def create_booking(
        self,
        offer: Offer,
        travelers: Sequence[TravelerInfo],
        idempotency_key: str,
        special_requests: str = "",
    ) -> BookingIntent:
        """Create a pending booking and return the fee to collect now.

        Repeating the call with the same idempotency key and inputs must
        return the same booking instead of creating a second one.
        special_requests is free text passed on to the agency.
        """
        ...

    def create_payment_intent(self, booking_id: str, fee: Money) -> PaymentIntentHandle:
        """Create a single-use processor intent for the booking fee."""
        ...

    def finalize_booking(self, booking_id: str, proof: PaymentProof) -> str:
        """Finalize a paid (or fee-waived) booking.

        Returns:
            The human-readable booking reference.
        """
        ...

    def get_booking_status(self, booking_id: str) -> BookingStatus:
        """Return the backend's view of the booking's payment state."""
        ...
