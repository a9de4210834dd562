"""Wire format of the booking backend.

Requests are plain dicts in the backend's camelCase JSON shape.
Responses arrive in a {success, data, message} envelope and are
validated with pydantic models before they reach the domain.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Dict, Generic, Optional, Sequence, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from ...domain.models import (
    BookingStatus,
    Money,
    Offer,
    PaymentState,
    Segment,
    TravelerInfo,
)

DataT = TypeVar("DataT")


class _WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class Envelope(_WireModel, Generic[DataT]):
    """Standard backend response: {success, data, message}."""

    success: bool
    data: Optional[DataT] = None
    message: Optional[str] = None
    error: Optional[str] = None

    def failure_message(self) -> str:
        return self.message or self.error or "The booking service rejected the request"


class FeePayload(_WireModel):
    amount: Decimal
    currency: str


class BookingPayload(_WireModel):
    booking_id: str = Field(alias="bookingId")
    fee: FeePayload


class PaymentIntentPayload(_WireModel):
    client_secret: str = Field(alias="clientSecret")
    payment_intent_id: str = Field(alias="paymentIntentId")


class FinalizePayload(_WireModel):
    reference: str


class StatusPayload(_WireModel):
    booking_id: str = Field(alias="bookingId")
    payment_status: str = Field(alias="paymentStatus")
    reference: Optional[str] = None


_PAYMENT_STATUS = {
    "pending": PaymentState.NOT_STARTED,
    "unpaid": PaymentState.NOT_STARTED,
    "requires_payment_method": PaymentState.INTENT_CREATED,
    "processing": PaymentState.CONFIRMING,
    "requires_action": PaymentState.CONFIRMING,
    "paid": PaymentState.SUCCEEDED,
    "succeeded": PaymentState.SUCCEEDED,
    "waived": PaymentState.SUCCEEDED,
    "failed": PaymentState.FAILED,
}


def _iso(value: Any) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _amount(value: Decimal) -> str:
    return f"{value:.2f}"


def segment_payload(segment: Segment) -> Dict[str, Any]:
    return {
        "departure": {"iataCode": segment.origin, "at": _iso(segment.departure_at)},
        "arrival": {"iataCode": segment.destination, "at": _iso(segment.arrival_at)},
        "carrierCode": segment.carrier_code,
        "number": segment.flight_number,
    }


def offer_payload(offer: Offer) -> Dict[str, Any]:
    """Serialize an offer the way the search step delivered it."""
    return {
        "id": offer.id,
        "itineraries": [{"segments": [segment_payload(s) for s in offer.segments]}],
        "price": {
            "currency": offer.currency,
            "base": _amount(offer.base),
            "total": _amount(offer.total),
            "grandTotal": _amount(offer.total),
        },
        "travelerPricings": [
            {
                "travelerId": tp.traveler_id,
                "travelerType": tp.traveler_type.value,
                "price": {
                    "currency": offer.currency,
                    "base": _amount(tp.base),
                    "total": _amount(tp.total),
                },
            }
            for tp in offer.traveler_pricings
        ],
    }


def traveler_payload(traveler: TravelerInfo) -> Dict[str, Any]:
    payload: Dict[str, Any] = {
        "id": traveler.traveler_id,
        "travelerType": traveler.traveler_type.value,
        "firstName": traveler.first_name,
        "lastName": traveler.last_name,
        "dateOfBirth": _iso(traveler.date_of_birth),
        "gender": traveler.gender.value,
        "email": traveler.email,
        "phone": {
            "countryCode": traveler.phone_country_code,
            "number": traveler.phone,
        },
        "documents": [],
    }
    if traveler.nationality:
        payload["nationality"] = traveler.nationality
    if traveler.seats:
        payload["selectedSeats"] = ", ".join(traveler.seats)

    document = traveler.document
    if document is not None:
        payload["documents"].append(
            {
                "documentType": document.document_type.value,
                "number": document.number,
                "expiryDate": _iso(document.expiry_date),
                "issuanceCountry": document.issuing_country,
                "nationality": document.nationality,
                "holder": document.holder,
            }
        )
    return payload


def booking_request(
    offer: Offer, travelers: Sequence[TravelerInfo], special_requests: str = ""
) -> Dict[str, Any]:
    return {
        "flightOffers": [offer_payload(offer)],
        "travelers": [traveler_payload(t) for t in travelers],
        "specialRequests": special_requests,
    }


def fee_from(payload: BookingPayload) -> Money:
    return Money(payload.fee.amount, payload.fee.currency)


def status_from(payload: StatusPayload) -> BookingStatus:
    """Map the backend's payment status string onto PaymentState.

    Unknown statuses are treated as still confirming, so reconciliation
    never assumes a payment failed or succeeded without evidence.
    """
    state = _PAYMENT_STATUS.get(payload.payment_status.lower(), PaymentState.CONFIRMING)
    return BookingStatus(
        booking_id=payload.booking_id,
        payment_state=state,
        booking_reference=payload.reference,
    )
