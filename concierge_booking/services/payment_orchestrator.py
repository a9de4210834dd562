"""Payment orchestrator - collects the concierge fee for a BookingIntent.

Each BookingIntent has exactly one live PaymentAttempt:

    not-started -> intent-created -> confirming -> succeeded
                                              \\-> failed -> intent-created

A zero fee goes straight from not-started to succeeded (fee waiver)
without reaching the processor. A booking is finalized on the backend
only after its attempt reached succeeded, and only once.

When the processor took the money but finalization fails, the booking
is locked: paying again is refused and the only way forward is
reconcile(), which asks the backend for the booking status.
The same holds while the outcome of a confirmation is unknown because
the processor response was lost: the attempt stays confirming.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field, replace
from typing import Callable, Dict, FrozenSet, Optional, Set
from urllib.parse import parse_qs, urlparse

from ..config import PaymentConfig, get_config
from ..domain.errors import (
    BackendError,
    FatalStateError,
    FinalizationAmbiguousError,
    PaymentError,
    PaymentOutcomeUnknownError,
)
from ..domain.models import (
    BookingIntent,
    BookingStatus,
    ConfirmedBooking,
    PaymentAttempt,
    PaymentDetails,
    PaymentOutcome,
    PaymentProof,
    PaymentState,
)
from ..ports.backend import BookingBackendPort
from ..ports.payment import PaymentProcessorPort

_ALLOWED: Dict[PaymentState, FrozenSet[PaymentState]] = {
    PaymentState.NOT_STARTED: frozenset({PaymentState.INTENT_CREATED}),
    PaymentState.INTENT_CREATED: frozenset({PaymentState.CONFIRMING}),
    PaymentState.CONFIRMING: frozenset({PaymentState.SUCCEEDED, PaymentState.FAILED}),
    PaymentState.FAILED: frozenset({PaymentState.INTENT_CREATED}),
    PaymentState.SUCCEEDED: frozenset(),
}

_FAILED_REDIRECT_STATUSES = {"failed", "requires_payment_method", "canceled"}


def _return_params(url: str) -> Dict[str, str]:
    return {name: values[0] for name, values in parse_qs(urlparse(url).query).items()}


def booking_id_from_return_url(url: str) -> str:
    """The booking_id query parameter of a processor return URL.

    Raises:
        ValueError: If the URL does not name a booking.
    """
    booking_id = _return_params(url).get("booking_id")
    if not booking_id:
        raise ValueError("Return URL does not contain a booking_id")
    return booking_id


@dataclass
class PaymentOrchestrator:
    """Drives the payment state machine of one wizard.

    Attributes:
        backend: Booking backend (payment intents, finalization, status)
        processor: Payment processor that confirms intents
        config: Payment configuration (return URL, waiver delay)
        sleep: Delay function used before a fee waiver completes
    """

    backend: BookingBackendPort
    processor: PaymentProcessorPort
    config: PaymentConfig = field(default_factory=lambda: get_config().payment)
    sleep: Callable[[float], None] = time.sleep

    _attempts: Dict[str, PaymentAttempt] = field(default_factory=dict, repr=False)
    _proofs: Dict[str, PaymentProof] = field(default_factory=dict, repr=False)
    _confirmed: Dict[str, ConfirmedBooking] = field(default_factory=dict, repr=False)
    _unresolved: Set[str] = field(default_factory=set, repr=False)
    _used_secrets: Set[str] = field(default_factory=set, repr=False)
    _used_intent_ids: Set[str] = field(default_factory=set, repr=False)
    _confirming: Optional[str] = field(default=None, repr=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    _logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._logger = logging.getLogger(__name__)

    def attempt_for(self, booking_id: str) -> PaymentAttempt:
        with self._lock:
            return self._attempts.get(booking_id) or PaymentAttempt(booking_id=booking_id)

    def state_of(self, booking_id: str) -> PaymentState:
        return self.attempt_for(booking_id).state

    def is_locked(self, booking_id: str) -> bool:
        """True while a paid booking awaits reconciliation."""
        with self._lock:
            return booking_id in self._unresolved

    @property
    def confirming_booking(self) -> Optional[str]:
        return self._confirming

    def pay(
        self, intent: BookingIntent, details: Optional[PaymentDetails] = None
    ) -> PaymentOutcome:
        """Collect the fee of a BookingIntent and finalize the booking.

        Returns:
            The attempt, plus the ConfirmedBooking when finalized. An
            attempt left confirming carries the challenge redirect URL.

        Raises:
            PaymentError: If the processor declines or the intent cannot
                be created. A new attempt can be made.
            PaymentOutcomeUnknownError: If the processor result was lost.
                Only reconcile() moves the attempt on.
            FinalizationAmbiguousError: If the payment succeeded but the
                backend did not confirm the booking.
            FatalStateError: If the call is not valid in the current state.
        """
        with self._lock:
            booking_id = intent.booking_id
            self._check_unlocked(intent)

            confirmed = self._confirmed.get(booking_id)
            if confirmed is not None:
                return PaymentOutcome(self.attempt_for(booking_id), confirmed)

            if intent.fee.is_zero:
                return self.waive(intent)

            attempt = self.attempt_for(booking_id)
            if attempt.state is PaymentState.SUCCEEDED:
                return PaymentOutcome(attempt, self.finalize(intent))
            if attempt.state is PaymentState.CONFIRMING:
                raise FatalStateError(
                    "This payment is already being confirmed",
                    state=attempt.state.value,
                    event="pay",
                )
            if details is None:
                raise PaymentError("Please enter a payment method", retryable=True)

            if attempt.state in (PaymentState.NOT_STARTED, PaymentState.FAILED):
                self.create_intent(intent)

            attempt = self.confirm(intent, details)
            if attempt.state is PaymentState.SUCCEEDED:
                return PaymentOutcome(attempt, self.finalize(intent))
            return PaymentOutcome(attempt)

    def create_intent(self, intent: BookingIntent) -> PaymentAttempt:
        """Ask the backend for a new processor intent for the fee."""
        with self._lock:
            self._check_unlocked(intent)
            if intent.fee.is_zero:
                raise FatalStateError(
                    "A waived fee never creates a payment intent",
                    state=self.state_of(intent.booking_id).value,
                    event="create_intent",
                )
            attempt = self.attempt_for(intent.booking_id)
            self._check_transition(attempt, PaymentState.INTENT_CREATED, "create_intent")

            try:
                handle = self.backend.create_payment_intent(intent.booking_id, intent.fee)
            except BackendError as e:
                self._logger.error(
                    "Payment intent creation failed",
                    extra={"booking_id": intent.booking_id, "status_code": e.status_code},
                )
                raise PaymentError(
                    "We could not start the payment",
                    retryable=True,
                    cause=e,
                )

            if (
                handle.client_secret in self._used_secrets
                or handle.payment_intent_id in self._used_intent_ids
            ):
                raise FatalStateError(
                    "The backend returned a payment intent that was already used",
                    state=attempt.state.value,
                    event="create_intent",
                )

            attempt = self._store(
                replace(
                    attempt,
                    state=PaymentState.INTENT_CREATED,
                    attempt_number=attempt.attempt_number + 1,
                    payment_intent_id=handle.payment_intent_id,
                    client_secret=handle.client_secret,
                    redirect_url=None,
                    error_message=None,
                )
            )
            self._logger.info(
                "Payment intent created",
                extra={
                    "booking_id": intent.booking_id,
                    "payment_intent_id": handle.payment_intent_id,
                    "attempt_number": attempt.attempt_number,
                },
            )
            return attempt

    def confirm(self, intent: BookingIntent, details: PaymentDetails) -> PaymentAttempt:
        """Confirm the current intent with the processor.

        Raises:
            PaymentError: On decline. The attempt becomes failed and its
                client secret is discarded.
            PaymentOutcomeUnknownError: If the processor result was lost.
                The attempt stays confirming until reconcile() settles it.
        """
        with self._lock:
            booking_id = intent.booking_id
            attempt = self.attempt_for(booking_id)
            self._check_transition(attempt, PaymentState.CONFIRMING, "confirm")
            if self._confirming not in (None, booking_id):
                raise FatalStateError(
                    "Another booking is already confirming a payment",
                    state=attempt.state.value,
                    event="confirm",
                )
            secret = attempt.client_secret
            if not secret or secret in self._used_secrets:
                raise FatalStateError(
                    "Payment intent client secret is missing or already used",
                    state=attempt.state.value,
                    event="confirm",
                )

            self._used_secrets.add(secret)
            self._used_intent_ids.add(attempt.payment_intent_id or "")
            attempt = self._store(replace(attempt, state=PaymentState.CONFIRMING))
            self._confirming = booking_id

            try:
                confirmation = self.processor.confirm_payment(
                    secret, details, self.config.return_url_for(booking_id)
                )
            except PaymentError as e:
                self._fail(attempt, e.message)
                raise
            except PaymentOutcomeUnknownError as e:
                # stays confirming until the backend status settles it
                self._logger.warning(
                    "Payment outcome unknown",
                    extra={
                        "booking_id": booking_id,
                        "payment_intent_id": attempt.payment_intent_id,
                    },
                )
                raise PaymentOutcomeUnknownError(
                    e.message,
                    booking_id=booking_id,
                    payment_intent_id=attempt.payment_intent_id,
                    cause=e.cause,
                )

            if confirmation.payment_intent_id != attempt.payment_intent_id:
                self._logger.warning(
                    "Processor confirmed a different payment intent",
                    extra={
                        "booking_id": booking_id,
                        "expected": attempt.payment_intent_id,
                        "received": confirmation.payment_intent_id,
                    },
                )

            if confirmation.is_success:
                return self._succeed(attempt, PaymentProof.processor(attempt.payment_intent_id))

            self._logger.info(
                "Payment awaiting customer action",
                extra={"booking_id": booking_id, "processor_status": confirmation.status},
            )
            return self._store(replace(attempt, redirect_url=confirmation.redirect_url))

    def finalize(self, intent: BookingIntent) -> ConfirmedBooking:
        """Finalize a booking whose payment succeeded.

        Raises:
            FatalStateError: If the payment has not succeeded.
            FinalizationAmbiguousError: If the backend call fails.
        """
        with self._lock:
            return self._finalize(intent.booking_id)

    def waive(self, intent: BookingIntent) -> PaymentOutcome:
        """Complete a zero-fee booking without the processor.

        The short delay keeps the waiver from looking instantaneous.
        """
        with self._lock:
            attempt = self.attempt_for(intent.booking_id)
            if not intent.fee.is_zero or attempt.state is not PaymentState.NOT_STARTED:
                raise FatalStateError(
                    "Only an unpaid zero-fee booking can be waived",
                    state=attempt.state.value,
                    event="waive",
                )

            self.sleep(self.config.waiver_delay_seconds)
            attempt = self._record_success(attempt, PaymentProof.waiver())
            self._logger.info("Fee waived", extra={"booking_id": intent.booking_id})
            return PaymentOutcome(attempt, self._finalize(intent.booking_id))

    def reconcile(
        self,
        booking_id: str,
        payment_intent_id: Optional[str] = None,
        redirect_status: Optional[str] = None,
    ) -> PaymentOutcome:
        """Settle the attempt of a booking against the backend status.

        Used after a processor redirect, after a finalization failure and
        when a wizard is reopened. Never starts a new payment.

        Raises:
            BackendError: If the booking status cannot be read.
            PaymentError: If the pending payment turned out to have failed.
            FinalizationAmbiguousError: If finalizing again fails.
        """
        with self._lock:
            confirmed = self._confirmed.get(booking_id)
            if confirmed is not None:
                return PaymentOutcome(self.attempt_for(booking_id), confirmed)

            status = self.backend.get_booking_status(booking_id)
            attempt = self.attempt_for(booking_id)
            self._logger.info(
                "Reconciling payment",
                extra={
                    "booking_id": booking_id,
                    "local_state": attempt.state.value,
                    "backend_state": status.payment_state.value,
                    "redirect_status": redirect_status,
                },
            )

            if status.payment_state is PaymentState.SUCCEEDED and status.booking_reference:
                return self._adopt_confirmation(attempt, status)

            if booking_id in self._proofs:
                self._unresolved.discard(booking_id)
                return PaymentOutcome(self.attempt_for(booking_id), self._finalize(booking_id))

            if (
                attempt.state is PaymentState.NOT_STARTED
                and status.payment_state is PaymentState.CONFIRMING
            ):
                attempt = self._restore_confirming(booking_id, payment_intent_id)

            if attempt.state is not PaymentState.CONFIRMING:
                return PaymentOutcome(attempt)

            if payment_intent_id and payment_intent_id != attempt.payment_intent_id:
                self._logger.warning(
                    "Ignoring return for a different payment intent",
                    extra={"booking_id": booking_id, "payment_intent_id": payment_intent_id},
                )
                redirect_status = None

            if redirect_status == "succeeded" or status.payment_state is PaymentState.SUCCEEDED:
                if not attempt.payment_intent_id:
                    return PaymentOutcome(attempt)
                attempt = self._succeed(attempt, PaymentProof.processor(attempt.payment_intent_id))
                return PaymentOutcome(attempt, self._finalize(booking_id))

            if (
                redirect_status in _FAILED_REDIRECT_STATUSES
                or status.payment_state is PaymentState.FAILED
            ):
                message = "The payment was not completed."
                self._fail(attempt, message)
                raise PaymentError(message, retryable=True)

            return PaymentOutcome(attempt)

    def resume_from_return_url(self, url: str) -> PaymentOutcome:
        """Reconcile from the URL the processor redirected back to.

        Raises:
            ValueError: If the URL does not name a booking.
        """
        params = _return_params(url)
        return self.reconcile(
            booking_id_from_return_url(url),
            payment_intent_id=params.get("payment_intent"),
            redirect_status=params.get("redirect_status"),
        )

    def _finalize(self, booking_id: str) -> ConfirmedBooking:
        confirmed = self._confirmed.get(booking_id)
        if confirmed is not None:
            return confirmed

        proof = self._proofs.get(booking_id)
        if proof is None:
            raise FatalStateError(
                "Cannot finalize a booking before its payment succeeded",
                state=self.state_of(booking_id).value,
                event="finalize",
            )

        try:
            reference = self.backend.finalize_booking(booking_id, proof)
        except BackendError as e:
            self._unresolved.add(booking_id)
            self._logger.error(
                "Finalization failed after payment",
                extra={
                    "booking_id": booking_id,
                    "waiver": proof.is_waiver,
                    "status_code": e.status_code,
                },
            )
            raise FinalizationAmbiguousError(
                "We could not confirm your booking",
                money_charged=not proof.is_waiver,
                booking_id=booking_id,
                payment_intent_id=None if proof.is_waiver else proof.reference,
                cause=e,
            )

        confirmed = ConfirmedBooking(
            booking_reference=reference,
            booking_id=booking_id,
            money_charged=not proof.is_waiver,
        )
        self._confirmed[booking_id] = confirmed
        self._logger.info(
            "Booking finalized",
            extra={"booking_id": booking_id, "booking_reference": reference},
        )
        return confirmed

    def _succeed(self, attempt: PaymentAttempt, proof: PaymentProof) -> PaymentAttempt:
        self._check_transition(attempt, PaymentState.SUCCEEDED, "succeed")
        return self._record_success(attempt, proof)

    def _record_success(self, attempt: PaymentAttempt, proof: PaymentProof) -> PaymentAttempt:
        if attempt.booking_id in self._proofs:
            raise FatalStateError(
                "Payment already succeeded for this booking",
                state=attempt.state.value,
                event="succeed",
            )
        self._proofs[attempt.booking_id] = proof
        if self._confirming == attempt.booking_id:
            self._confirming = None
        return self._store(
            replace(
                attempt,
                state=PaymentState.SUCCEEDED,
                client_secret=None,
                redirect_url=None,
                error_message=None,
            )
        )

    def _fail(self, attempt: PaymentAttempt, message: str) -> PaymentAttempt:
        self._check_transition(attempt, PaymentState.FAILED, "fail")
        if self._confirming == attempt.booking_id:
            self._confirming = None
        self._logger.info(
            "Payment failed",
            extra={"booking_id": attempt.booking_id, "attempt_number": attempt.attempt_number},
        )
        return self._store(
            replace(
                attempt,
                state=PaymentState.FAILED,
                client_secret=None,
                redirect_url=None,
                error_message=message,
            )
        )

    def _adopt_confirmation(
        self, attempt: PaymentAttempt, status: BookingStatus
    ) -> PaymentOutcome:
        # The backend holds a booking reference, so its view wins.
        booking_id = attempt.booking_id
        proof = self._proofs.get(booking_id)
        if attempt.state is not PaymentState.SUCCEEDED:
            if self._confirming == booking_id:
                self._confirming = None
            attempt = self._store(
                replace(
                    attempt,
                    state=PaymentState.SUCCEEDED,
                    client_secret=None,
                    redirect_url=None,
                    error_message=None,
                )
            )
        self._unresolved.discard(booking_id)
        confirmed = ConfirmedBooking(
            booking_reference=status.booking_reference or "",
            booking_id=booking_id,
            money_charged=proof is None or not proof.is_waiver,
        )
        self._confirmed[booking_id] = confirmed
        self._logger.info(
            "Booking confirmed by backend status",
            extra={"booking_id": booking_id, "booking_reference": confirmed.booking_reference},
        )
        return PaymentOutcome(attempt, confirmed)

    def _restore_confirming(
        self, booking_id: str, payment_intent_id: Optional[str]
    ) -> PaymentAttempt:
        if self._confirming not in (None, booking_id):
            raise FatalStateError(
                "Another booking is already confirming a payment",
                state=PaymentState.NOT_STARTED.value,
                event="reconcile",
            )
        self._confirming = booking_id
        if payment_intent_id:
            self._used_intent_ids.add(payment_intent_id)
        return self._store(
            PaymentAttempt(
                booking_id=booking_id,
                state=PaymentState.CONFIRMING,
                attempt_number=1,
                payment_intent_id=payment_intent_id,
            )
        )

    def _check_transition(
        self, attempt: PaymentAttempt, target: PaymentState, event: str
    ) -> None:
        if target not in _ALLOWED[attempt.state]:
            raise FatalStateError(
                f"Payment cannot go from {attempt.state.value} to {target.value}",
                state=attempt.state.value,
                event=event,
            )

    def _check_unlocked(self, intent: BookingIntent) -> None:
        if intent.booking_id in self._unresolved:
            proof = self._proofs.get(intent.booking_id)
            raise FinalizationAmbiguousError(
                "This booking is waiting for confirmation",
                money_charged=proof is None or not proof.is_waiver,
                booking_id=intent.booking_id,
                payment_intent_id=None if proof is None or proof.is_waiver else proof.reference,
            )

    def _store(self, attempt: PaymentAttempt) -> PaymentAttempt:
        self._attempts[attempt.booking_id] = attempt
        return attempt
