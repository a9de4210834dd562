"""Immutable domain models for the concierge booking flow.

All models are frozen dataclasses with slots. Updates go through
dataclasses.replace, so a record handed to an async stage can never be
changed underneath it. These models have no external dependencies.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

FEE_WAIVER_MARKER = "FEE_WAIVED"


class Gender(Enum):
    """Traveler gender as accepted by the booking backend."""

    MALE = "MALE"
    FEMALE = "FEMALE"
    UNSPECIFIED = "UNSPECIFIED"


class TravelerType(Enum):
    ADULT = "ADULT"
    CHILD = "CHILD"
    INFANT = "INFANT"


class DocumentType(Enum):
    PASSPORT = "PASSPORT"
    IDENTITY_CARD = "IDENTITY_CARD"
    VISA = "VISA"


class PaymentState(Enum):
    """Lifecycle of one payment attempt against a BookingIntent."""

    NOT_STARTED = "not-started"
    INTENT_CREATED = "intent-created"
    CONFIRMING = "confirming"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class Money:
    """An amount in a given ISO 4217 currency."""

    amount: Decimal
    currency: str

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            object.__setattr__(self, "amount", Decimal(str(self.amount)))
        object.__setattr__(self, "currency", self.currency.upper())
        if self.amount < 0:
            raise ValueError(f"Amount must not be negative, got {self.amount}")

    @property
    def is_zero(self) -> bool:
        return self.amount == 0


@dataclass(frozen=True, slots=True)
class Segment:
    """One flight leg of an itinerary."""

    origin: str
    destination: str
    departure_at: datetime
    arrival_at: datetime
    carrier_code: str = ""
    flight_number: str = ""


@dataclass(frozen=True, slots=True)
class TravelerPricing:
    """Price components for a single traveler of an offer."""

    traveler_id: str
    traveler_type: TravelerType = TravelerType.ADULT
    base: Decimal = Decimal("0")
    total: Decimal = Decimal("0")


@dataclass(frozen=True, slots=True)
class Offer:
    """Immutable priced itinerary snapshot selected by the search step.

    Attributes:
        id: Offer identifier from the search provider
        currency: ISO 4217 currency of every amount in the offer
        base: Base fare total for all travelers
        total: Grand total including taxes and fees
        segments: Ordered flight segments
        traveler_pricings: One entry per traveler expected on the booking
    """

    id: str
    currency: str
    base: Decimal
    total: Decimal
    segments: tuple[Segment, ...] = field(default_factory=tuple)
    traveler_pricings: tuple[TravelerPricing, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        if self.total < self.base:
            raise ValueError(
                f"Offer total {self.total} is lower than its base fare {self.base}"
            )

    @property
    def expected_travelers(self) -> int:
        """Number of traveler records the booking needs (at least one)."""
        return max(1, len(self.traveler_pricings))


@dataclass(frozen=True, slots=True)
class TravelDocument:
    """A travel document attached to a traveler."""

    document_type: DocumentType
    number: str
    expiry_date: Optional[date] = None
    issuing_country: str = ""
    nationality: str = ""
    holder: bool = True


@dataclass(frozen=True, slots=True)
class TravelerInfo:
    """Identity, contact and document data for one traveler.

    The uid is stable across edits and identifies the logical traveler,
    so a late scan result can be matched against the record it was
    started for. seats holds the chosen seat per flight segment, in
    segment order (empty when no seat was chosen).
    """

    traveler_id: str = "1"
    traveler_type: TravelerType = TravelerType.ADULT
    first_name: str = ""
    last_name: str = ""
    date_of_birth: Optional[date] = None
    gender: Gender = Gender.UNSPECIFIED
    nationality: str = ""
    email: str = ""
    phone_country_code: str = ""
    phone: str = ""
    document: Optional[TravelDocument] = None
    seats: tuple[str, ...] = ()
    uid: str = field(default_factory=lambda: uuid.uuid4().hex, compare=False)


@dataclass(frozen=True, slots=True)
class ScannedDocumentData:
    """Identity data decoded from one successful document scan.

    Transient: merged into a TravelerInfo and then discarded.
    """

    document_type: DocumentType
    issuing_state: str
    last_name: str
    first_name: str
    document_number: str
    nationality: str
    birth_date: Optional[date]
    expiry_date: Optional[date]
    gender: Gender
    personal_number: str = ""


@dataclass(frozen=True, slots=True)
class ScanOutcome:
    """Result of a scan that does not raise.

    Attributes:
        data: Decoded document data when the scan succeeded
        error: The typed scan failure otherwise
    """

    data: Optional[ScannedDocumentData] = None
    error: Optional[Exception] = None

    @property
    def is_success(self) -> bool:
        return self.error is None and self.data is not None


@dataclass(frozen=True, slots=True)
class BookingIntent:
    """Pending booking created on the backend, plus the fee to collect now.

    Attributes:
        booking_id: Backend-assigned identifier
        fee: Concierge/hold fee to charge today (not the ticket price)
        offer_id: Offer the booking was created for
        traveler_fingerprint: Hash of the traveler identities at creation
        idempotency_key: Key the booking was created with
    """

    booking_id: str
    fee: Money
    offer_id: str = ""
    traveler_fingerprint: str = ""
    idempotency_key: str = ""


@dataclass(frozen=True, slots=True)
class PaymentIntentHandle:
    """Processor intent created by the backend for one payment attempt."""

    client_secret: str = field(repr=False)
    payment_intent_id: str


@dataclass(frozen=True, slots=True)
class PaymentDetails:
    """Payment method entered by the user (a processor token, never a card number)."""

    payment_method: str
    billing_email: str = ""


@dataclass(frozen=True, slots=True)
class ProcessorConfirmation:
    """What the processor reported for a confirmation call.

    Attributes:
        status: 'succeeded', 'requires_action' or 'processing'
        payment_intent_id: Processor intent identifier
        redirect_url: Where to send the user for a challenge flow
    """

    status: str
    payment_intent_id: str
    redirect_url: Optional[str] = None

    @property
    def is_success(self) -> bool:
        return self.status == "succeeded"


@dataclass(frozen=True, slots=True)
class PaymentProof:
    """What the backend finalizes a booking with.

    Either the processor intent that succeeded, or the fee-waiver marker.
    """

    reference: str

    @classmethod
    def processor(cls, payment_intent_id: str) -> PaymentProof:
        if not payment_intent_id or payment_intent_id == FEE_WAIVER_MARKER:
            raise ValueError("A processor payment needs a real payment intent id")
        return cls(reference=payment_intent_id)

    @classmethod
    def waiver(cls) -> PaymentProof:
        return cls(reference=FEE_WAIVER_MARKER)

    @property
    def is_waiver(self) -> bool:
        return self.reference == FEE_WAIVER_MARKER


@dataclass(frozen=True, slots=True)
class PaymentAttempt:
    """The live payment state of one BookingIntent.

    Attributes:
        booking_id: BookingIntent the attempt belongs to
        state: Current PaymentState
        attempt_number: 1 for the first intent, incremented on each retry
        payment_intent_id: Processor intent of this attempt
        client_secret: Single-use processor secret (never in repr)
        redirect_url: Challenge URL while confirming
        error_message: Processor message of a failed attempt, verbatim
    """

    booking_id: str
    state: PaymentState = PaymentState.NOT_STARTED
    attempt_number: int = 0
    payment_intent_id: Optional[str] = None
    client_secret: Optional[str] = field(default=None, repr=False)
    redirect_url: Optional[str] = None
    error_message: Optional[str] = None


@dataclass(frozen=True, slots=True)
class BookingStatus:
    """Backend view of a booking, used for reconciliation."""

    booking_id: str
    payment_state: PaymentState
    booking_reference: Optional[str] = None


@dataclass(frozen=True, slots=True)
class ConfirmedBooking:
    """Terminal artifact of a successful wizard run."""

    booking_reference: str
    booking_id: str
    money_charged: bool = True


@dataclass(frozen=True, slots=True)
class PaymentOutcome:
    """Where a payment attempt ended up.

    booking is only set once the backend acknowledged finalization.
    """

    attempt: PaymentAttempt
    booking: Optional[ConfirmedBooking] = None

    @property
    def is_confirmed(self) -> bool:
        return self.booking is not None

    @property
    def requires_redirect(self) -> bool:
        return (
            self.attempt.state is PaymentState.CONFIRMING
            and self.attempt.redirect_url is not None
        )


@dataclass(frozen=True, slots=True)
class PriceBreakdown:
    """Ticket price breakdown for display. Unrelated to the concierge fee."""

    base: Decimal
    taxes_and_fees: Decimal
    total: Decimal
    currency: str
    formatted_base: str = ""
    formatted_taxes_and_fees: str = ""
    formatted_total: str = ""
