"""Typed domain errors for the concierge booking flow.

Every failure the wizard can surface is one of these types, so each
layer can decide how far it propagates: validation and scan errors stay
on the travelers step, booking and payment errors offer a retry scoped
to their own step, and a finalization ambiguity escalates to support.

All errors inherit from BookingFlowError and can optionally wrap a root
cause exception for debugging. Each one states whether money was
charged, which is the first thing a user needs to know after a failure.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import ClassVar, Dict, Optional, Tuple


@dataclass
class BookingFlowError(Exception):
    """Base error for the booking domain.

    Attributes:
        message: Human-readable error description
        cause: Optional underlying exception that caused this error
        money_charged: Whether a payment was captured before the failure
    """

    message: str
    cause: Optional[Exception] = field(default=None, repr=False)
    money_charged: bool = False

    remediation: ClassVar[str] = ""

    def __str__(self) -> str:
        if self.cause:
            return f"{self.message}: {self.cause}"
        return self.message

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def user_message(self) -> str:
        """Message safe to show to the traveler.

        Always ends with an explicit statement about the charge.
        """
        parts = [self.message]
        if self.remediation:
            parts.append(self.remediation)
        if self.money_charged:
            parts.append("Your payment was taken.")
        else:
            parts.append("You have not been charged.")
        return " ".join(parts)


@dataclass
class ValidationError(BookingFlowError):
    """Traveler data is missing or malformed. Raised before any network call.

    Attributes:
        field_errors: Mapping of field path (e.g. 'travelers[0].last_name')
            to a short description of the problem
    """

    field_errors: Dict[str, str] = field(default_factory=dict)

    remediation: ClassVar[str] = "Please complete the highlighted fields."


@dataclass
class ScanFailure(BookingFlowError):
    """Base class for document scanning failures."""

    remediation: ClassVar[str] = "You can also enter the details manually."


@dataclass
class DetectionFailure(ScanFailure):
    """OCR produced no usable MRZ lines.

    Attributes:
        candidate_lines: Number of MRZ-looking lines that survived filtering
    """

    candidate_lines: int = 0

    remediation: ClassVar[str] = (
        "Retake the photo so the two lines at the bottom of the page are "
        "sharp and well lit, or enter the details manually."
    )


@dataclass
class ParseFailure(ScanFailure):
    """The MRZ block was found but could not be decoded.

    Attributes:
        field_name: The MRZ field that failed (layout or check digit)
    """

    field_name: str = ""

    remediation: ClassVar[str] = (
        "Make sure the image is clear and evenly lit, then try again, or "
        "enter the details manually."
    )


@dataclass
class IncompleteDataFailure(ScanFailure):
    """The MRZ decoded but required fields are empty.

    Attributes:
        missing_fields: Names of the empty required fields
    """

    missing_fields: Tuple[str, ...] = ()

    remediation: ClassVar[str] = "Please try again or enter the details manually."


@dataclass
class OCREngineError(ScanFailure):
    """The OCR engine itself failed (not installed, crashed, bad image).

    Attributes:
        engine: Name of the OCR engine
    """

    engine: str = ""


@dataclass
class BackendError(BookingFlowError):
    """The booking backend rejected a request or could not be reached.

    Attributes:
        endpoint: Backend path that failed
        status_code: HTTP status if a response was received
    """

    endpoint: str = ""
    status_code: Optional[int] = None


@dataclass
class BookingInitError(BookingFlowError):
    """Creating the pending booking failed.

    Retrying is safe: the same idempotency key is reused so the backend
    collapses repeated submissions into one pending booking.

    Attributes:
        idempotency_key: Key of the logical submission that failed
        retryable: Whether retrying can succeed
    """

    idempotency_key: str = ""
    retryable: bool = True

    remediation: ClassVar[str] = "Your details are saved, please try again."


@dataclass
class PaymentError(BookingFlowError):
    """The payment processor declined or failed the payment.

    The message is the processor's own wording, shown verbatim.

    Attributes:
        decline_code: Processor decline code if one was given
        retryable: Whether a new payment attempt can be made
    """

    decline_code: Optional[str] = None
    retryable: bool = True

    remediation: ClassVar[str] = "Please check your payment details and try again."


@dataclass
class PaymentOutcomeUnknownError(BookingFlowError):
    """The processor could not be reached while confirming a payment.

    The charge may or may not have gone through, so the attempt stays
    confirming and is settled from the backend booking status. Never
    answered with a new payment.

    Attributes:
        booking_id: The pending booking being paid for
        payment_intent_id: Processor intent whose outcome is unknown
    """

    booking_id: str = ""
    payment_intent_id: Optional[str] = None

    remediation: ClassVar[str] = (
        "Please do not pay again. We are checking the payment status with "
        "the payment provider."
    )

    def user_message(self) -> str:
        return (
            f"{self.message} {self.remediation} We cannot tell yet whether "
            "you have been charged."
        )


@dataclass
class FinalizationAmbiguousError(BookingFlowError):
    """The processor took the payment but the backend did not confirm the booking.

    Must not be retried as a fresh payment. Recovery goes through the
    backend booking status only.

    Attributes:
        booking_id: The pending booking that was paid for
        payment_intent_id: Processor intent that succeeded (None for a waiver)
    """

    money_charged: bool = True
    booking_id: str = ""
    payment_intent_id: Optional[str] = None

    remediation: ClassVar[str] = (
        "Please do not pay again. Contact our support team with your booking "
        "ID so we can complete the booking."
    )

    def user_message(self) -> str:
        message = super().user_message()
        if self.booking_id:
            message = f"{message} Booking ID: {self.booking_id}."
        return message


@dataclass
class FatalStateError(BookingFlowError):
    """An invariant of the booking flow was violated. Indicates a defect.

    Attributes:
        state: Name of the state the flow was in
        event: Name of the event or operation that was rejected
    """

    state: str = ""
    event: str = ""


@dataclass
class ConfigurationError(BookingFlowError):
    """Invalid or missing configuration.

    Attributes:
        setting_name: Name of the problematic setting
        expected_type: Expected type or format
    """

    setting_name: str = ""
    expected_type: Optional[str] = None
