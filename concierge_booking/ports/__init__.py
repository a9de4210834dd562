"""Ports layer - Abstract interfaces (Protocols) for the application.

Ports define the contracts between the booking core and the external
systems it depends on. They enable dependency injection and make the
system testable.

This module follows the Hexagonal Architecture pattern:
- Input ports: How the application is driven (services)
- Output ports: How the application drives external systems (adapters)
"""

from .backend import BookingBackendPort
from .cache import CachePort
from .ocr import OCREnginePort
from .payment import PaymentProcessorPort

__all__ = [
    # Backend
    "BookingBackendPort",
    # Payment
    "PaymentProcessorPort",
    # OCR
    "OCREnginePort",
    # Cache
    "CachePort",
]
