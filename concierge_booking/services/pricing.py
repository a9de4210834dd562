"""Ticket price breakdown for display.

The breakdown describes the offer's ticket price only. The concierge
fee charged today comes from the backend with the BookingIntent and is
never derived from these numbers.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from babel.numbers import format_currency

from ..config import get_config
from ..domain.models import Money, Offer, PriceBreakdown

_CENT = Decimal("0.01")


def format_money(amount: Decimal, currency: str, locale: Optional[str] = None) -> str:
    """Render an amount with two decimals and the currency symbol.

    Two decimals are kept for every currency, including those Babel
    would show without minor units (JPY, KRW).

    >>> format_money(Decimal("1234.5"), "USD", "en_US")
    '$1,234.50'
    """
    locale = locale or get_config().pricing.locale
    quantized = Decimal(amount).quantize(_CENT, rounding=ROUND_HALF_UP)
    return format_currency(
        quantized, currency.upper(), locale=locale, currency_digits=False
    )


def format_fee(fee: Money, locale: Optional[str] = None) -> str:
    return format_money(fee.amount, fee.currency, locale)


def compute_breakdown(offer: Offer, locale: Optional[str] = None) -> PriceBreakdown:
    """Split the offer total into base fare and taxes and fees."""
    base = offer.base.quantize(_CENT, rounding=ROUND_HALF_UP)
    total = offer.total.quantize(_CENT, rounding=ROUND_HALF_UP)
    taxes_and_fees = total - base

    return PriceBreakdown(
        base=base,
        taxes_and_fees=taxes_and_fees,
        total=total,
        currency=offer.currency,
        formatted_base=format_money(base, offer.currency, locale),
        formatted_taxes_and_fees=format_money(taxes_and_fees, offer.currency, locale),
        formatted_total=format_money(total, offer.currency, locale),
    )
