"""Shared fixtures for the concierge booking test suite."""

import os
import sys
from concurrent.futures import Executor, Future
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Optional

import pytest

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from concierge_booking.adapters.backend import SandboxBookingBackend
from concierge_booking.adapters.payment import SandboxPaymentProcessor
from concierge_booking.config import BackendConfig, OCRConfig, PaymentConfig, reset_config
from concierge_booking.domain.models import (
    Money,
    Offer,
    Segment,
    TravelerPricing,
    TravelerType,
)
from concierge_booking.services import (
    BookingInitiator,
    MrzExtractor,
    PaymentOrchestrator,
    TravelerRecordStore,
)

# ICAO 9303 specimen passport (Anna Maria Eriksson, Utopia)
TD3_LINE_1 = "P<UTOERIKSSON<<ANNA<MARIA".ljust(44, "<")
TD3_LINE_2 = "L898902C36UTO7408122F1204159ZE184226B<<<<<10"

TD1_LINES = (
    "I<UTOD231458907<<<<<<<<<<<<<<<",
    "7408122F1204159UTO<<<<<<<<<<<6",
    "ERIKSSON<<ANNA<MARIA<<<<<<<<<<",
)

TD2_LINES = (
    "I<UTOERIKSSON<<ANNA<MARIA<<<<<<<<<<<",
    "D231458907UTO7408122F1204159<<<<<<<6",
)

PASSPORT_OCR_TEXT = "\n".join(
    [
        "PASSPORT PASSEPORT",
        "Utopia",
        "ERIKSSON ANNA MARIA",
        "",
        TD3_LINE_1,
        TD3_LINE_2,
    ]
)


@dataclass
class FakeOCR:
    """OCR engine returning canned text."""

    text: str = PASSPORT_OCR_TEXT
    error: Optional[Exception] = None
    calls: List[Any] = field(default_factory=list)

    @property
    def engine_name(self) -> str:
        return "fake"

    def recognize_text(self, image: Any, char_whitelist: str) -> str:
        self.calls.append((image, char_whitelist))
        if self.error is not None:
            raise self.error
        return self.text


class DeferredExecutor(Executor):
    """Executor that runs submitted work only when asked to."""

    def __init__(self) -> None:
        self.pending: List[Any] = []

    def submit(self, fn, /, *args, **kwargs):
        future: Future = Future()
        self.pending.append((future, fn, args, kwargs))
        return future

    def run_all(self) -> None:
        pending, self.pending = self.pending, []
        for future, fn, args, kwargs in pending:
            future.set_result(fn(*args, **kwargs))


@pytest.fixture(autouse=True)
def fresh_config():
    reset_config()
    yield
    reset_config()


@pytest.fixture
def offer() -> Offer:
    """Two-traveler round trip, 400.00 base and 486.30 total."""
    return Offer(
        id="OFFER-1",
        currency="USD",
        base=Decimal("400.00"),
        total=Decimal("486.30"),
        segments=(
            Segment(
                origin="JFK",
                destination="CDG",
                departure_at=datetime(2026, 11, 2, 18, 30),
                arrival_at=datetime(2026, 11, 3, 7, 45),
                carrier_code="AF",
                flight_number="23",
            ),
        ),
        traveler_pricings=(
            TravelerPricing("1", TravelerType.ADULT, Decimal("250.00"), Decimal("300.00")),
            TravelerPricing("2", TravelerType.CHILD, Decimal("150.00"), Decimal("186.30")),
        ),
    )


@pytest.fixture
def single_offer() -> Offer:
    return Offer(
        id="OFFER-SOLO",
        currency="USD",
        base=Decimal("120.00"),
        total=Decimal("150.00"),
        traveler_pricings=(TravelerPricing("1"),),
    )


@pytest.fixture
def travelers(offer) -> TravelerRecordStore:
    """Both travelers of the offer, complete enough to book."""
    store = TravelerRecordStore.for_offer(offer, primary_email="anna@example.com", primary_phone="5551234")
    store = store.update(0, "first_name", "Anna")
    store = store.update(0, "last_name", "Eriksson")
    store = store.update(0, "date_of_birth", date(1974, 8, 12))
    store = store.update(1, "first_name", "Lars")
    store = store.update(1, "last_name", "Eriksson")
    store = store.update(1, "date_of_birth", "2015-03-02")
    return store


@pytest.fixture
def backend() -> SandboxBookingBackend:
    return SandboxBookingBackend(config=BackendConfig())


@pytest.fixture
def free_backend() -> SandboxBookingBackend:
    return SandboxBookingBackend(fee=Money(Decimal("0"), "USD"), config=BackendConfig())


@pytest.fixture
def processor() -> SandboxPaymentProcessor:
    return SandboxPaymentProcessor()


@pytest.fixture
def payment_config() -> PaymentConfig:
    return PaymentConfig(processor="sandbox", waiver_delay_seconds=1.5)


@pytest.fixture
def fake_ocr() -> FakeOCR:
    return FakeOCR()


@pytest.fixture
def extractor(fake_ocr) -> MrzExtractor:
    return MrzExtractor(fake_ocr, OCRConfig())


def make_orchestrator(backend, processor, payment_config) -> PaymentOrchestrator:
    return PaymentOrchestrator(
        backend=backend,
        processor=processor,
        config=payment_config,
        sleep=lambda seconds: None,
    )


@pytest.fixture
def initiator(backend) -> BookingInitiator:
    return BookingInitiator(backend)
