# dates.py
from __future__ import annotations

from datetime import date, datetime
from typing import Optional

import dateparser

YEAR_PIVOT = 50


def expand_two_digit_year(yy: str) -> int:
    """'99' -> 1999, '05' -> 2005, '49' -> 2049, '50' -> 1950."""
    value = int(yy)
    if not 0 <= value <= 99 or len(yy) != 2:
        raise ValueError(f"Expected a two-digit year, got {yy!r}")
    return 2000 + value if value < YEAR_PIVOT else 1900 + value


def parse_mrz_date(yymmdd: str) -> date:
    """Decode a YYMMDD MRZ date with the common century pivot."""
    if len(yymmdd) != 6 or not yymmdd.isdigit():
        raise ValueError(f"Expected YYMMDD, got {yymmdd!r}")
    return date(
        expand_two_digit_year(yymmdd[:2]), int(yymmdd[2:4]), int(yymmdd[4:6])
    )


def parse_mrz_birth_date(
    yymmdd: str, *, today: Optional[date] = None, correct_future: bool = True
) -> date:
    """Birth date from the MRZ. A birth date cannot be in the future,
    so one that lands there after the pivot is moved back a century."""
    result = parse_mrz_date(yymmdd)
    today = today or date.today()
    if correct_future and result > today:
        result = result.replace(year=result.year - 100)
    return result


def parse_mrz_expiry_date(yymmdd: str) -> date:
    """Expiry date from the MRZ. Always in the 2000s."""
    if len(yymmdd) != 6 or not yymmdd.isdigit():
        raise ValueError(f"Expected YYMMDD, got {yymmdd!r}")
    return date(2000 + int(yymmdd[:2]), int(yymmdd[2:4]), int(yymmdd[4:6]))


def parse_date_input(value: object) -> Optional[date]:
    """Normalize a manually entered date (ISO string, free text or date)."""
    if isinstance(value, datetime):
        return value.date()
    if value is None or isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    dt = dateparser.parse(
        text,
        settings={"PREFER_DATES_FROM": "past", "DATE_ORDER": "DMY"},
    )
    if dt is None:
        raise ValueError(f"Unrecognised date: {text!r}")
    return dt.date()
