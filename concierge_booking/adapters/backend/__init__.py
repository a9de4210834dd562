"""Booking backend adapters - Implementations of BookingBackendPort.

Available implementations:
- HttpBookingBackend: REST backend over requests (production)
- SandboxBookingBackend: In-memory backend (development/testing)
"""

from .http_backend import HttpBookingBackend
from .sandbox_backend import SandboxBookingBackend

__all__ = ["HttpBookingBackend", "SandboxBookingBackend"]
