"""Booking initiator - turns validated travelers into a pending booking.

The idempotency key is derived from the offer and the traveler
identities, so resubmitting the same booking (double click, retry after
a timeout) reaches the backend with the same key and is collapsed into
the booking created the first time.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field, replace
from typing import Iterable

from ..domain.errors import BackendError, BookingInitError
from ..domain.models import BookingIntent, Offer, TravelerInfo
from ..ports.backend import BookingBackendPort
from .traveler_store import TravelerRecordStore


def _normalize(value: str) -> str:
    return " ".join(value.split()).upper()


def traveler_fingerprint(travelers: Iterable[TravelerInfo]) -> str:
    """Hash of the ordered traveler identities.

    Identity is name, date of birth and document number; contact details
    and traveler uids do not take part.
    """
    digest = hashlib.sha256()
    for traveler in travelers:
        parts = (
            _normalize(traveler.first_name),
            _normalize(traveler.last_name),
            traveler.date_of_birth.isoformat() if traveler.date_of_birth else "",
            _normalize(traveler.document.number) if traveler.document else "",
        )
        digest.update("|".join(parts).encode("utf-8"))
        digest.update(b"\x1e")
    return digest.hexdigest()


def idempotency_key_for(offer: Offer, travelers: Iterable[TravelerInfo]) -> str:
    """sha256 of the offer id and the traveler fingerprint."""
    fingerprint = traveler_fingerprint(travelers)
    return hashlib.sha256(f"{offer.id}:{fingerprint}".encode("utf-8")).hexdigest()


@dataclass
class BookingInitiator:
    """Creates the pending booking for a validated set of travelers.

    Attributes:
        backend: Booking backend
    """

    backend: BookingBackendPort

    _logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._logger = logging.getLogger(__name__)

    def initiate(
        self,
        offer: Offer,
        travelers: TravelerRecordStore,
        special_requests: str = "",
    ) -> BookingIntent:
        """Validate the travelers and create the pending booking.

        Special requests are free text for the agency and do not take
        part in the idempotency key.

        Raises:
            ValidationError: If traveler data is incomplete or the number
                of travelers does not match the offer. No request is sent
                in that case.
            BookingInitError: If the backend call fails. Retrying with
                the same inputs reuses the same idempotency key.
        """
        travelers.validate(offer)

        fingerprint = traveler_fingerprint(travelers)
        key = idempotency_key_for(offer, travelers)
        self._logger.info(
            "Creating booking",
            extra={
                "offer_id": offer.id,
                "travelers": len(travelers),
                "idempotency_key": key,
            },
        )

        try:
            intent = self.backend.create_booking(
                offer, tuple(travelers), key, special_requests=special_requests.strip()
            )
        except BackendError as e:
            self._logger.error(
                "Booking creation failed",
                extra={
                    "offer_id": offer.id,
                    "idempotency_key": key,
                    "endpoint": e.endpoint,
                    "status_code": e.status_code,
                },
            )
            raise BookingInitError(
                "We could not create your booking",
                idempotency_key=key,
                retryable=e.status_code is None or e.status_code >= 500 or e.status_code == 429,
                cause=e,
            )

        self._logger.info(
            "Booking created",
            extra={"booking_id": intent.booking_id, "fee": str(intent.fee.amount)},
        )
        return replace(
            intent,
            offer_id=offer.id,
            traveler_fingerprint=fingerprint,
            idempotency_key=key,
        )
