"""Services layer - Application orchestration.

This module contains the application services that drive the booking
flow through the ports.

Available services:
- MrzExtractor: Passport / ID card image to identity data
- TravelerRecordStore: Immutable traveler records of one booking
- BookingInitiator: Validation gate and idempotent booking creation
- PaymentOrchestrator: Fee payment state machine and finalization
- BookingWizard: Step-by-step controller tying the services together
"""

from .booking_initiator import BookingInitiator
from .mrz_extractor import MrzExtractor
from .payment_orchestrator import PaymentOrchestrator
from .pricing import compute_breakdown, format_money
from .traveler_store import TravelerRecordStore
from .wizard import BookingWizard

__all__ = [
    "MrzExtractor",
    "TravelerRecordStore",
    "BookingInitiator",
    "PaymentOrchestrator",
    "BookingWizard",
    "compute_breakdown",
    "format_money",
]
