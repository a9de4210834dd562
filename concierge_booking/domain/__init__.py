"""Domain layer - Core booking models and errors.

This module contains immutable domain models and typed errors
used throughout the application. No external dependencies.
"""

from .errors import (
    BackendError,
    BookingFlowError,
    BookingInitError,
    ConfigurationError,
    DetectionFailure,
    FatalStateError,
    FinalizationAmbiguousError,
    IncompleteDataFailure,
    OCREngineError,
    ParseFailure,
    PaymentError,
    PaymentOutcomeUnknownError,
    ScanFailure,
    ValidationError,
)
from .models import (
    FEE_WAIVER_MARKER,
    BookingIntent,
    BookingStatus,
    ConfirmedBooking,
    DocumentType,
    Gender,
    Money,
    Offer,
    PaymentAttempt,
    PaymentDetails,
    PaymentIntentHandle,
    PaymentOutcome,
    PaymentProof,
    PaymentState,
    PriceBreakdown,
    ProcessorConfirmation,
    ScannedDocumentData,
    ScanOutcome,
    Segment,
    TravelDocument,
    TravelerInfo,
    TravelerPricing,
    TravelerType,
)

__all__ = [
    # Models
    "FEE_WAIVER_MARKER",
    "Money",
    "Segment",
    "TravelerPricing",
    "Offer",
    "TravelDocument",
    "TravelerInfo",
    "ScannedDocumentData",
    "ScanOutcome",
    "BookingIntent",
    "PaymentIntentHandle",
    "PaymentDetails",
    "ProcessorConfirmation",
    "PaymentProof",
    "PaymentAttempt",
    "PaymentOutcome",
    "BookingStatus",
    "ConfirmedBooking",
    "PriceBreakdown",
    "Gender",
    "TravelerType",
    "DocumentType",
    "PaymentState",
    # Errors
    "BookingFlowError",
    "ValidationError",
    "ScanFailure",
    "DetectionFailure",
    "ParseFailure",
    "IncompleteDataFailure",
    "OCREngineError",
    "BackendError",
    "BookingInitError",
    "PaymentError",
    "PaymentOutcomeUnknownError",
    "FinalizationAmbiguousError",
    "FatalStateError",
    "ConfigurationError",
]
