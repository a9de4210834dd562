"""Tests for price breakdown and money formatting."""

from decimal import Decimal

from concierge_booking.domain.models import Money, Offer
from concierge_booking.services import compute_breakdown, format_money
from concierge_booking.services.pricing import format_fee


def test_breakdown(offer):
    breakdown = compute_breakdown(offer, locale="en_US")

    assert breakdown.base == Decimal("400.00")
    assert breakdown.taxes_and_fees == Decimal("86.30")
    assert breakdown.total == Decimal("486.30")
    assert breakdown.currency == "USD"
    assert breakdown.formatted_base == "$400.00"
    assert breakdown.formatted_taxes_and_fees == "$86.30"
    assert breakdown.formatted_total == "$486.30"


def test_breakdown_without_taxes():
    offer = Offer(id="O", currency="USD", base=Decimal("99"), total=Decimal("99"))

    breakdown = compute_breakdown(offer, locale="en_US")

    assert breakdown.taxes_and_fees == Decimal("0.00")
    assert breakdown.formatted_taxes_and_fees == "$0.00"


def test_two_decimals_with_grouping():
    assert format_money(Decimal("1234.5"), "usd", "en_US") == "$1,234.50"


def test_half_up_rounding():
    assert format_money(Decimal("0.125"), "USD", "en_US") == "$0.13"


def test_two_decimals_for_currencies_without_minor_units():
    formatted = format_money(Decimal("1234.5"), "JPY", "en_US")

    assert formatted == "¥1,234.50"


def test_locale_conventions():
    formatted = format_money(Decimal("1234.5"), "EUR", "de_DE")

    assert "1.234,50" in formatted
    assert "€" in formatted


def test_default_locale_comes_from_config(monkeypatch):
    monkeypatch.setenv("BOOKING_PRICING_LOCALE", "de_DE")

    assert "1.234,50" in format_money(Decimal("1234.5"), "EUR")


def test_format_fee():
    assert format_fee(Money(Decimal("25"), "USD"), "en_US") == "$25.00"
