"""Booking wizard - the state machine behind the booking screens.

    Review -> Travelers -> Payment -> Confirmation
                              \\-> SupportEscalation (paid, not confirmed)
    any open step -> Abandoned

States and events are frozen dataclasses. transition() is pure and
rejects impossible pairs with FatalStateError, so a confirmation can
only ever follow a succeeded payment. BookingWizard performs the side
effects (scans, backend calls, payment) and feeds their results to
transition() as events.

Errors a user can recover from are stored on the state (state.error)
and the wizard stays on the step that produced them. FatalStateError is
logged at CRITICAL and re-raised.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Executor, Future
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, NoReturn, Optional, Sequence, Tuple, Type, Union

from ..domain.errors import (
    BackendError,
    BookingFlowError,
    BookingInitError,
    FatalStateError,
    FinalizationAmbiguousError,
    PaymentError,
    PaymentOutcomeUnknownError,
    ValidationError,
)
from ..domain.models import (
    BookingIntent,
    ConfirmedBooking,
    Money,
    Offer,
    PaymentAttempt,
    PaymentDetails,
    PaymentOutcome,
    PaymentState,
    ScanOutcome,
)
from .booking_initiator import BookingInitiator
from .mrz_extractor import MrzExtractor
from .payment_orchestrator import PaymentOrchestrator, booking_id_from_return_url
from .traveler_store import TravelerRecordStore

# --- States ---


@dataclass(frozen=True, slots=True)
class ReviewState:
    offer: Offer


@dataclass(frozen=True, slots=True)
class TravelersState:
    offer: Offer
    travelers: TravelerRecordStore
    error: Optional[BookingFlowError] = None


@dataclass(frozen=True, slots=True)
class PaymentStepState:
    offer: Offer
    travelers: TravelerRecordStore
    intent: BookingIntent
    attempt: PaymentAttempt
    error: Optional[BookingFlowError] = None


@dataclass(frozen=True, slots=True)
class ConfirmationState:
    offer: Offer
    booking: ConfirmedBooking


@dataclass(frozen=True, slots=True)
class SupportEscalationState:
    """Paid (or waived) but not confirmed by the backend. Only reconcile helps."""

    offer: Offer
    travelers: TravelerRecordStore
    intent: BookingIntent
    error: FinalizationAmbiguousError


@dataclass(frozen=True, slots=True)
class AbandonedState:
    """The user left the wizard.

    requires_status_check is set when a payment may have been in flight;
    reopening must then read the booking status before asking for money.
    """

    offer: Offer
    booking_id: Optional[str] = None
    requires_status_check: bool = False


WizardState = Union[
    ReviewState,
    TravelersState,
    PaymentStepState,
    ConfirmationState,
    SupportEscalationState,
    AbandonedState,
]

# --- Events ---


@dataclass(frozen=True, slots=True)
class TravelersOpened:
    travelers: TravelerRecordStore


@dataclass(frozen=True, slots=True)
class TravelersEdited:
    travelers: TravelerRecordStore


@dataclass(frozen=True, slots=True)
class TravelersRestarted:
    """The traveler list changed size; editing starts over from the offer."""

    travelers: TravelerRecordStore


@dataclass(frozen=True, slots=True)
class TravelersRejected:
    """Validation, scan or booking creation failed on the travelers step."""

    error: BookingFlowError


@dataclass(frozen=True, slots=True)
class BookingInitiated:
    intent: BookingIntent
    attempt: PaymentAttempt


@dataclass(frozen=True, slots=True)
class BackToTravelers:
    pass


@dataclass(frozen=True, slots=True)
class PaymentUpdated:
    attempt: PaymentAttempt
    error: Optional[BookingFlowError] = None


@dataclass(frozen=True, slots=True)
class PaymentConfirmed:
    attempt: PaymentAttempt
    booking: ConfirmedBooking


@dataclass(frozen=True, slots=True)
class FinalizationFailed:
    error: FinalizationAmbiguousError


@dataclass(frozen=True, slots=True)
class Abandoned:
    pass


WizardEvent = Union[
    TravelersOpened,
    TravelersEdited,
    TravelersRestarted,
    TravelersRejected,
    BookingInitiated,
    BackToTravelers,
    PaymentUpdated,
    PaymentConfirmed,
    FinalizationFailed,
    Abandoned,
]


def _open_travelers(state: ReviewState, event: TravelersOpened) -> WizardState:
    return TravelersState(offer=state.offer, travelers=event.travelers)


def _edit_travelers(state: TravelersState, event: TravelersEdited) -> WizardState:
    return TravelersState(offer=state.offer, travelers=event.travelers)


def _restart_travelers(state: TravelersState, event: TravelersRestarted) -> WizardState:
    return TravelersState(offer=state.offer, travelers=event.travelers)


def _reject_travelers(state: TravelersState, event: TravelersRejected) -> WizardState:
    return replace(state, error=event.error)


def _start_payment(state: TravelersState, event: BookingInitiated) -> WizardState:
    return PaymentStepState(
        offer=state.offer,
        travelers=state.travelers,
        intent=event.intent,
        attempt=event.attempt,
    )


def _back_to_travelers(state: PaymentStepState, event: BackToTravelers) -> WizardState:
    if state.attempt.state in (PaymentState.CONFIRMING, PaymentState.SUCCEEDED):
        raise FatalStateError(
            "Cannot leave the payment step while a payment is in flight or taken",
            state=type(state).__name__,
            event=type(event).__name__,
        )
    return TravelersState(offer=state.offer, travelers=state.travelers)


def _update_payment(state: PaymentStepState, event: PaymentUpdated) -> WizardState:
    if event.attempt.booking_id != state.intent.booking_id:
        raise FatalStateError(
            "Payment update for another booking",
            state=type(state).__name__,
            event=type(event).__name__,
        )
    return replace(state, attempt=event.attempt, error=event.error)


def _confirm(
    state: Union[PaymentStepState, SupportEscalationState], event: PaymentConfirmed
) -> WizardState:
    if (
        event.attempt.state is not PaymentState.SUCCEEDED
        or event.booking.booking_id != state.intent.booking_id
    ):
        raise FatalStateError(
            "Confirmation requires a succeeded payment for this booking",
            state=type(state).__name__,
            event=type(event).__name__,
        )
    return ConfirmationState(offer=state.offer, booking=event.booking)


def _escalate(
    state: Union[PaymentStepState, SupportEscalationState], event: FinalizationFailed
) -> WizardState:
    return SupportEscalationState(
        offer=state.offer,
        travelers=state.travelers,
        intent=state.intent,
        error=event.error,
    )


def _abandon(state: Any, event: Abandoned) -> WizardState:
    booking_id = None
    requires_status_check = False
    if isinstance(state, PaymentStepState):
        booking_id = state.intent.booking_id
        requires_status_check = state.attempt.state is PaymentState.CONFIRMING
    elif isinstance(state, SupportEscalationState):
        booking_id = state.intent.booking_id
        requires_status_check = True
    return AbandonedState(
        offer=state.offer,
        booking_id=booking_id,
        requires_status_check=requires_status_check,
    )


_TRANSITIONS: Dict[Tuple[Type[Any], Type[Any]], Callable[[Any, Any], WizardState]] = {
    (ReviewState, TravelersOpened): _open_travelers,
    (TravelersState, TravelersEdited): _edit_travelers,
    (TravelersState, TravelersRestarted): _restart_travelers,
    (TravelersState, TravelersRejected): _reject_travelers,
    (TravelersState, BookingInitiated): _start_payment,
    (PaymentStepState, BackToTravelers): _back_to_travelers,
    (PaymentStepState, PaymentUpdated): _update_payment,
    (PaymentStepState, PaymentConfirmed): _confirm,
    (PaymentStepState, FinalizationFailed): _escalate,
    (SupportEscalationState, PaymentConfirmed): _confirm,
    (SupportEscalationState, FinalizationFailed): _escalate,
    (ReviewState, Abandoned): _abandon,
    (TravelersState, Abandoned): _abandon,
    (PaymentStepState, Abandoned): _abandon,
    (SupportEscalationState, Abandoned): _abandon,
}


def transition(state: WizardState, event: WizardEvent) -> WizardState:
    """Return the state that follows state after event.

    Raises:
        FatalStateError: If event cannot happen in state.
    """
    handler = _TRANSITIONS.get((type(state), type(event)))
    if handler is None:
        raise FatalStateError(
            f"{type(event).__name__} is not possible in {type(state).__name__}",
            state=type(state).__name__,
            event=type(event).__name__,
        )
    return handler(state, event)


@dataclass(frozen=True, slots=True)
class ScanTicket:
    """Captured when a scan starts; the result only applies to this traveler."""

    index: int
    traveler_uid: str


@dataclass
class BookingWizard:
    """Drives one booking from offer review to confirmation.

    Attributes:
        offer: The offer being booked
        initiator: Creates the pending booking
        orchestrator: Collects the fee and finalizes the booking
        extractor: Reads passport and ID card images
        primary_email: Contact email for the primary traveler
        primary_phone: Contact phone for the primary traveler
        special_requests: Free text sent with the booking request
    """

    offer: Offer
    initiator: BookingInitiator
    orchestrator: PaymentOrchestrator
    extractor: MrzExtractor
    primary_email: str = ""
    primary_phone: str = ""
    special_requests: str = ""

    state: WizardState = field(init=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    _logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._logger = logging.getLogger(__name__)
        self.state = ReviewState(offer=self.offer)

    @classmethod
    def reopen(
        cls,
        offer: Offer,
        booking_id: str,
        fee: Money,
        initiator: BookingInitiator,
        orchestrator: PaymentOrchestrator,
        extractor: MrzExtractor,
        travelers: Optional[TravelerRecordStore] = None,
    ) -> BookingWizard:
        """Rebuild a wizard for an existing booking from its backend status.

        The fee is only asked for again if the backend shows no payment.
        If the status cannot be read, the wizard opens on the payment step
        with the error set.
        """
        wizard = cls(
            offer=offer,
            initiator=initiator,
            orchestrator=orchestrator,
            extractor=extractor,
        )
        intent = BookingIntent(booking_id=booking_id, fee=fee, offer_id=offer.id)
        wizard.state = PaymentStepState(
            offer=offer,
            travelers=travelers or TravelerRecordStore.for_offer(offer),
            intent=intent,
            attempt=orchestrator.attempt_for(booking_id),
        )
        wizard._logger.info("Wizard reopened", extra={"booking_id": booking_id})
        wizard.reconcile()
        return wizard

    def proceed_to_travelers(self) -> WizardState:
        with self._lock:
            return self._dispatch(TravelersOpened(self._blank_travelers()))

    def edit_traveler(self, index: int, field_name: str, value: Any) -> WizardState:
        with self._lock:
            state = self._expect(TravelersState, "edit_traveler")
            try:
                travelers = state.travelers.update(index, field_name, value)
            except ValidationError as e:
                return self._dispatch(TravelersRejected(e))
            return self._dispatch(TravelersEdited(travelers))

    def remove_traveler(self, index: int) -> WizardState:
        """Remove a traveler, which restarts the travelers step.

        The offer is priced for a fixed number of travelers, so the step
        starts over with one blank record per priced traveler. Scans
        still running for the old records are dropped.
        """
        with self._lock:
            state = self._expect(TravelersState, "remove_traveler")
            try:
                state.travelers.remove(index)
            except ValidationError as e:
                return self._dispatch(TravelersRejected(e))
            self._logger.info(
                "Travelers step restarted",
                extra={"offer_id": self.offer.id, "traveler_index": index},
            )
            return self._dispatch(TravelersRestarted(self._blank_travelers()))

    def select_seats(self, index: int, seats: Sequence[str]) -> WizardState:
        """Choose seats for traveler index, one per flight segment."""
        with self._lock:
            state = self._expect(TravelersState, "select_seats")
            try:
                travelers = state.travelers.select_seats(index, seats)
            except ValidationError as e:
                return self._dispatch(TravelersRejected(e))
            return self._dispatch(TravelersEdited(travelers))

    def scan_document(self, index: int, image: Any) -> WizardState:
        """Scan synchronously and merge the result into traveler index."""
        try:
            ticket = self._start_scan(index)
        except ValidationError as e:
            return self._reject(e)
        return self.complete_scan(ticket, self.extractor.extract_safe(image))

    def scan_document_async(
        self, index: int, image: Any, executor: Executor
    ) -> Future:
        """Run the scan on executor. The future resolves to the wizard state.

        Editing continues meanwhile; the result is dropped if traveler
        index is no longer the same traveler when the scan completes.
        """
        try:
            ticket = self._start_scan(index)
        except ValidationError as e:
            rejected: Future = Future()
            rejected.set_result(self._reject(e))
            return rejected

        def run() -> WizardState:
            return self.complete_scan(ticket, self.extractor.extract_safe(image))

        return executor.submit(run)

    def complete_scan(self, ticket: ScanTicket, outcome: ScanOutcome) -> WizardState:
        with self._lock:
            state = self.state
            if not isinstance(state, TravelersState) or not self._ticket_valid(
                state.travelers, ticket
            ):
                self._logger.info(
                    "Stale scan result discarded",
                    extra={"traveler_index": ticket.index, "wizard_state": type(state).__name__},
                )
                return state

            if not outcome.is_success:
                return self._dispatch(TravelersRejected(outcome.error))
            travelers = state.travelers.apply_scan(ticket.index, outcome.data)
            return self._dispatch(TravelersEdited(travelers))

    def proceed_to_payment(self) -> WizardState:
        """Validate travelers and create the pending booking."""
        with self._lock:
            state = self._expect(TravelersState, "proceed_to_payment")
            try:
                intent = self.initiator.initiate(
                    self.offer, state.travelers, special_requests=self.special_requests
                )
            except (ValidationError, BookingInitError) as e:
                return self._dispatch(TravelersRejected(e))
            attempt = self.orchestrator.attempt_for(intent.booking_id)
            return self._dispatch(BookingInitiated(intent, attempt))

    def back_to_travelers(self) -> WizardState:
        """Return to the travelers step, discarding the BookingIntent."""
        with self._lock:
            self._expect(PaymentStepState, "back_to_travelers")
            return self._dispatch(BackToTravelers())

    def submit_payment(self, details: Optional[PaymentDetails] = None) -> WizardState:
        """Pay the fee, or settle a confirmation whose outcome is unknown.

        While the attempt is confirming no new payment is made; the
        backend booking status is read instead.
        """
        with self._lock:
            state = self._expect(PaymentStepState, "submit_payment")
            if state.attempt.state is PaymentState.CONFIRMING:
                return self._run_payment(
                    state, lambda: self.orchestrator.reconcile(state.intent.booking_id)
                )
            return self._run_payment(
                state, lambda: self.orchestrator.pay(state.intent, details)
            )

    def resume_from_return_url(self, url: str) -> WizardState:
        """Continue after the processor redirected the user back."""
        with self._lock:
            state = self._expect(PaymentStepState, "resume_from_return_url")
            booking_id = booking_id_from_return_url(url)
            if booking_id != state.intent.booking_id:
                self._fatal(
                    FatalStateError(
                        "Return URL belongs to another booking",
                        state=type(state).__name__,
                        event="resume_from_return_url",
                    )
                )
            return self._run_payment(
                state, lambda: self.orchestrator.resume_from_return_url(url)
            )

    def reconcile(self) -> WizardState:
        """Settle the payment against the backend booking status."""
        with self._lock:
            state = self.state
            if not isinstance(state, (PaymentStepState, SupportEscalationState)):
                return self._expect(PaymentStepState, "reconcile")
            return self._run_payment(
                state, lambda: self.orchestrator.reconcile(state.intent.booking_id)
            )

    def abandon(self) -> WizardState:
        with self._lock:
            return self._dispatch(Abandoned())

    def _run_payment(
        self,
        state: Union[PaymentStepState, SupportEscalationState],
        call: Callable[[], PaymentOutcome],
    ) -> WizardState:
        booking_id = state.intent.booking_id
        try:
            outcome = call()
        except FatalStateError as e:
            self._fatal(e)
        except FinalizationAmbiguousError as e:
            return self._dispatch(FinalizationFailed(e))
        except (PaymentError, PaymentOutcomeUnknownError, BackendError) as e:
            if isinstance(state, SupportEscalationState):
                self._logger.warning(
                    "Reconciliation did not complete",
                    extra={"booking_id": booking_id, "error": e.message},
                )
                return state
            return self._dispatch(
                PaymentUpdated(self.orchestrator.attempt_for(booking_id), error=e)
            )

        if outcome.is_confirmed:
            return self._dispatch(PaymentConfirmed(outcome.attempt, outcome.booking))
        if isinstance(state, SupportEscalationState):
            return state
        return self._dispatch(PaymentUpdated(outcome.attempt))

    def _blank_travelers(self) -> TravelerRecordStore:
        return TravelerRecordStore.for_offer(
            self.offer,
            primary_email=self.primary_email,
            primary_phone=self.primary_phone,
        )

    def _start_scan(self, index: int) -> ScanTicket:
        with self._lock:
            state = self._expect(TravelersState, "scan_document")
            return ScanTicket(index=index, traveler_uid=state.travelers.uid_at(index))

    def _reject(self, error: ValidationError) -> WizardState:
        with self._lock:
            return self._dispatch(TravelersRejected(error))

    @staticmethod
    def _ticket_valid(travelers: TravelerRecordStore, ticket: ScanTicket) -> bool:
        return (
            0 <= ticket.index < len(travelers)
            and travelers.uid_at(ticket.index) == ticket.traveler_uid
        )

    def _expect(self, state_type: Type[Any], operation: str) -> Any:
        if not isinstance(self.state, state_type):
            self._fatal(
                FatalStateError(
                    f"{operation} is not possible in {type(self.state).__name__}",
                    state=type(self.state).__name__,
                    event=operation,
                )
            )
        return self.state

    def _dispatch(self, event: WizardEvent) -> WizardState:
        try:
            new_state = transition(self.state, event)
        except FatalStateError as e:
            self._fatal(e)
        self._logger.debug(
            "Wizard transition",
            extra={
                "from_state": type(self.state).__name__,
                "wizard_event": type(event).__name__,
                "to_state": type(new_state).__name__,
            },
        )
        self.state = new_state
        return new_state

    def _fatal(self, error: FatalStateError) -> NoReturn:
        self._logger.critical(
            "Booking flow invariant violated",
            extra={"wizard_state": error.state, "wizard_event": error.event, "reason": error.message},
        )
        raise error
