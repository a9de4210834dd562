"""HTTP booking backend adapter.

This adapter talks to the booking REST backend with requests:
- One pooled Session with urllib3 Retry for transient failures
- Every POST carries an Idempotency-Key, so a retried request is
  collapsed by the server instead of creating a second record
- Responses are validated against the {success, data, message} envelope
"""

from __future__ import annotations

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence, Type, TypeVar

import requests
from pydantic import BaseModel
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ...config import BackendConfig, get_config
from ...domain.errors import BackendError
from ...domain.models import (
    FEE_WAIVER_MARKER,
    BookingIntent,
    BookingStatus,
    Money,
    Offer,
    PaymentIntentHandle,
    PaymentProof,
    TravelerInfo,
)
from . import payloads

ModelT = TypeVar("ModelT", bound=BaseModel)

RETRY_STATUSES = (429, 502, 503, 504)


def build_session(config: BackendConfig) -> requests.Session:
    """Create a Session that retries transient failures of GET and POST."""
    retry = Retry(
        total=config.max_retries,
        backoff_factor=config.backoff_factor,
        status_forcelist=RETRY_STATUSES,
        allowed_methods=frozenset({"GET", "POST"}),
        raise_on_status=False,
    )
    adapter = HTTPAdapter(max_retries=retry)

    session = requests.Session()
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.headers.update(
        {"Content-Type": "application/json", "Accept": "application/json"}
    )
    if config.api_token:
        session.headers["Authorization"] = f"Bearer {config.api_token}"
    return session


@dataclass
class HttpBookingBackend:
    """Booking backend reached over HTTP.

    This adapter implements BookingBackendPort.

    Attributes:
        config: Backend configuration
        session: Optional pre-built Session (built from config otherwise)
    """

    config: BackendConfig = field(default_factory=lambda: get_config().backend)
    session: Optional[requests.Session] = None

    _logger: logging.Logger = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._logger = logging.getLogger(__name__)
        if self.session is None:
            self.session = build_session(self.config)

    def create_booking(
        self,
        offer: Offer,
        travelers: Sequence[TravelerInfo],
        idempotency_key: str,
        special_requests: str = "",
    ) -> BookingIntent:
        data = self._post(
            "/bookings/request",
            payloads.booking_request(offer, travelers, special_requests),
            payloads.BookingPayload,
            idempotency_key=idempotency_key,
        )
        return BookingIntent(
            booking_id=data.booking_id,
            fee=payloads.fee_from(data),
            offer_id=offer.id,
            idempotency_key=idempotency_key,
        )

    def create_payment_intent(self, booking_id: str, fee: Money) -> PaymentIntentHandle:
        # Each call is a new attempt; only transport retries share the key.
        data = self._post(
            "/payments/create-intent",
            {
                "bookingId": booking_id,
                "amount": float(fee.amount),
                "currency": fee.currency.lower(),
            },
            payloads.PaymentIntentPayload,
            idempotency_key=f"intent-{booking_id}-{uuid.uuid4().hex}",
        )
        return PaymentIntentHandle(
            client_secret=data.client_secret,
            payment_intent_id=data.payment_intent_id,
        )

    def finalize_booking(self, booking_id: str, proof: PaymentProof) -> str:
        body: Dict[str, Any] = {"bookingId": booking_id}
        if proof.is_waiver:
            body["paymentMethod"] = FEE_WAIVER_MARKER
        else:
            body["paymentIntentId"] = proof.reference

        data = self._post(
            "/payments/confirm",
            body,
            payloads.FinalizePayload,
            idempotency_key=f"finalize-{booking_id}-{proof.reference}",
        )
        return data.reference

    def get_booking_status(self, booking_id: str) -> BookingStatus:
        data = self._request(
            "GET", f"/bookings/{booking_id}/status", payloads.StatusPayload
        )
        return payloads.status_from(data)

    def _post(
        self,
        path: str,
        body: Dict[str, Any],
        model: Type[ModelT],
        idempotency_key: str,
    ) -> ModelT:
        return self._request(
            "POST",
            path,
            model,
            json=body,
            headers={"Idempotency-Key": idempotency_key},
        )

    def _request(
        self,
        method: str,
        path: str,
        model: Type[ModelT],
        json: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> ModelT:
        """Send one request and unwrap the response envelope.

        Raises:
            BackendError: On transport failure, HTTP error or a response
                that is not a successful envelope.
        """
        url = f"{self.config.base_url.rstrip('/')}{path}"
        start_time = time.time()

        try:
            response = self.session.request(
                method,
                url,
                json=json,
                headers=headers,
                timeout=self.config.timeout_seconds,
            )
        except requests.RequestException as e:
            self._logger.error(
                "Backend request failed",
                extra={"method": method, "endpoint": path, "error": str(e)},
            )
            raise BackendError(
                "The booking service could not be reached",
                endpoint=path,
                cause=e,
            )

        self._logger.debug(
            "Backend response",
            extra={
                "method": method,
                "endpoint": path,
                "status_code": response.status_code,
                "elapsed_seconds": round(time.time() - start_time, 2),
            },
        )

        try:
            envelope = payloads.Envelope[model].model_validate(response.json())
        except ValueError as e:
            if response.ok:
                message = "The booking service returned an unreadable response"
            else:
                message = f"The booking service answered with HTTP {response.status_code}"
            raise BackendError(
                message,
                endpoint=path,
                status_code=response.status_code,
                cause=e,
            )

        if not response.ok or not envelope.success or envelope.data is None:
            self._logger.warning(
                "Backend rejected request",
                extra={
                    "endpoint": path,
                    "status_code": response.status_code,
                    "reason": envelope.failure_message(),
                },
            )
            raise BackendError(
                envelope.failure_message(),
                endpoint=path,
                status_code=response.status_code,
            )
        return envelope.data
