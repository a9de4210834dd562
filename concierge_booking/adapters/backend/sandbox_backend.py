"""In-process booking backend for development and tests.

Behaves like the real backend where the booking flow depends on it:
idempotent booking creation, single-use payment intents, fee-waiver
finalization and a status endpoint for reconciliation. Failures can be
injected per operation, including failures that happen after the
backend already committed (a lost response).
"""

from __future__ import annotations

import logging
import secrets
import threading
from collections import deque
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Deque, Dict, List, Optional, Sequence, Set

from ...config import BackendConfig, get_config
from ...domain.errors import BackendError
from ...domain.models import (
    BookingIntent,
    BookingStatus,
    Money,
    Offer,
    PaymentIntentHandle,
    PaymentProof,
    PaymentState,
    TravelerInfo,
)
from ...ports.cache import CachePort
from ..cache import InMemoryCache


@dataclass
class _Booking:
    booking_id: str
    fee: Money
    offer_id: str
    traveler_count: int
    payment_intents: Set[str] = field(default_factory=set)
    payment_state: PaymentState = PaymentState.NOT_STARTED
    reference: Optional[str] = None
    proof: Optional[str] = None


@dataclass
class SandboxBookingBackend:
    """Booking backend kept entirely in memory.

    This adapter implements BookingBackendPort.

    Attributes:
        fee: Concierge fee charged for every new booking
        config: Backend configuration (idempotency TTL)
        calls: Names of the operations invoked, in order

    Example:
        backend = SandboxBookingBackend(fee=Money(Decimal("0"), "USD"))
        backend.inject_failure("finalize_booking", after_commit=True)
    """

    fee: Money = field(default_factory=lambda: Money(Decimal("25.00"), "USD"))
    config: BackendConfig = field(default_factory=lambda: get_config().backend)
    calls: List[str] = field(default_factory=list)

    _bookings: Dict[str, _Booking] = field(default_factory=dict, repr=False)
    _failures: Dict[str, Deque[bool]] = field(default_factory=dict, repr=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    _idempotency: CachePort[BookingIntent] = field(init=False, repr=False)
    _logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._logger = logging.getLogger(__name__)
        self._idempotency = InMemoryCache(
            name="idempotency",
            default_ttl_seconds=self.config.idempotency_ttl_seconds,
        )

    def inject_failure(
        self, operation: str, times: int = 1, after_commit: bool = False
    ) -> None:
        """Make the next `times` calls of an operation raise BackendError.

        With after_commit the operation takes effect before the error is
        raised, as when the response is lost on the way back.
        """
        with self._lock:
            queue = self._failures.setdefault(operation, deque())
            queue.extend([after_commit] * times)

    def booking_count(self) -> int:
        with self._lock:
            return len(self._bookings)

    def mark_paid(self, booking_id: str, payment_intent_id: str) -> str:
        """Record a payment the backend learned about out of band."""
        with self._lock:
            booking = self._get(booking_id, "mark_paid")
            return self._finalize(booking, payment_intent_id)

    def create_booking(
        self,
        offer: Offer,
        travelers: Sequence[TravelerInfo],
        idempotency_key: str,
        special_requests: str = "",
    ) -> BookingIntent:
        with self._lock:
            self.calls.append("create_booking")
            after_commit = self._pending_failure("create_booking")
            if after_commit is False:
                self._fail("create_booking")

            intent = self._idempotency.get_or_compute(
                idempotency_key,
                lambda: self._new_booking(offer, len(travelers), idempotency_key),
            )
            if after_commit:
                self._fail("create_booking")
            return intent

    def create_payment_intent(self, booking_id: str, fee: Money) -> PaymentIntentHandle:
        with self._lock:
            self.calls.append("create_payment_intent")
            self._maybe_fail_before("create_payment_intent")
            booking = self._get(booking_id, "create_payment_intent")
            if booking.reference is not None:
                raise BackendError(
                    "Booking is already paid",
                    endpoint="create_payment_intent",
                    status_code=409,
                )

            payment_intent_id = f"pi_sandbox_{secrets.token_hex(8)}"
            booking.payment_intents.add(payment_intent_id)
            booking.payment_state = PaymentState.INTENT_CREATED
            return PaymentIntentHandle(
                client_secret=f"{payment_intent_id}_secret_{secrets.token_hex(8)}",
                payment_intent_id=payment_intent_id,
            )

    def finalize_booking(self, booking_id: str, proof: PaymentProof) -> str:
        with self._lock:
            self.calls.append("finalize_booking")
            after_commit = self._pending_failure("finalize_booking")
            if after_commit is False:
                self._fail("finalize_booking")

            booking = self._get(booking_id, "finalize_booking")
            if proof.is_waiver and not booking.fee.is_zero:
                raise BackendError(
                    "Fee waiver is not allowed for this booking",
                    endpoint="finalize_booking",
                    status_code=402,
                )
            if not proof.is_waiver and proof.reference not in booking.payment_intents:
                raise BackendError(
                    "Unknown payment intent",
                    endpoint="finalize_booking",
                    status_code=404,
                )

            reference = self._finalize(booking, proof.reference)
            if after_commit:
                self._fail("finalize_booking")
            return reference

    def get_booking_status(self, booking_id: str) -> BookingStatus:
        with self._lock:
            self.calls.append("get_booking_status")
            self._maybe_fail_before("get_booking_status")
            booking = self._get(booking_id, "get_booking_status")
            return BookingStatus(
                booking_id=booking.booking_id,
                payment_state=booking.payment_state,
                booking_reference=booking.reference,
            )

    def _new_booking(
        self, offer: Offer, traveler_count: int, idempotency_key: str
    ) -> BookingIntent:
        booking_id = f"bk_{secrets.token_hex(6)}"
        self._bookings[booking_id] = _Booking(
            booking_id=booking_id,
            fee=self.fee,
            offer_id=offer.id,
            traveler_count=traveler_count,
        )
        self._logger.info(
            "Sandbox booking created",
            extra={"booking_id": booking_id, "offer_id": offer.id},
        )
        return BookingIntent(
            booking_id=booking_id,
            fee=self.fee,
            offer_id=offer.id,
            idempotency_key=idempotency_key,
        )

    def _finalize(self, booking: _Booking, proof: str) -> str:
        if booking.reference is not None:
            if booking.proof != proof:
                raise BackendError(
                    "Booking was already finalized with a different payment",
                    endpoint="finalize_booking",
                    status_code=409,
                )
            return booking.reference

        booking.reference = "CB" + secrets.token_hex(3).upper()
        booking.proof = proof
        booking.payment_state = PaymentState.SUCCEEDED
        return booking.reference

    def _get(self, booking_id: str, operation: str) -> _Booking:
        booking = self._bookings.get(booking_id)
        if booking is None:
            raise BackendError(
                f"Booking {booking_id} not found",
                endpoint=operation,
                status_code=404,
            )
        return booking

    def _pending_failure(self, operation: str) -> Optional[bool]:
        queue = self._failures.get(operation)
        if not queue:
            return None
        return queue.popleft()

    def _maybe_fail_before(self, operation: str) -> None:
        if self._pending_failure(operation) is not None:
            self._fail(operation)

    def _fail(self, operation: str) -> None:
        self._logger.warning("Sandbox failure injected", extra={"operation": operation})
        raise BackendError(
            "The booking service is temporarily unavailable",
            endpoint=operation,
            status_code=503,
        )
