"""Tests for MRZ and manually entered date handling."""

from datetime import date, datetime

import pytest

from concierge_booking.dates import (
    expand_two_digit_year,
    parse_date_input,
    parse_mrz_birth_date,
    parse_mrz_date,
    parse_mrz_expiry_date,
)


@pytest.mark.parametrize(
    "yy, expected",
    [("00", 2000), ("05", 2005), ("49", 2049), ("50", 1950), ("99", 1999)],
)
def test_century_pivot(yy, expected):
    assert expand_two_digit_year(yy) == expected


def test_two_digit_year_rejects_other_lengths():
    with pytest.raises(ValueError):
        expand_two_digit_year("1999")


def test_mrz_date():
    assert parse_mrz_date("740812") == date(1974, 8, 12)


def test_mrz_date_rejects_non_digits():
    with pytest.raises(ValueError):
        parse_mrz_date("74O812")


def test_impossible_month_is_rejected():
    with pytest.raises(ValueError):
        parse_mrz_date("741312")


def test_future_birth_date_moves_back_a_century():
    assert parse_mrz_birth_date("300101", today=date(2026, 1, 1)) == date(1930, 1, 1)
    assert parse_mrz_birth_date("250101", today=date(2026, 1, 1)) == date(2025, 1, 1)


def test_future_birth_date_correction_can_be_disabled():
    result = parse_mrz_birth_date("300101", today=date(2026, 1, 1), correct_future=False)
    assert result == date(2030, 1, 1)


def test_expiry_dates_are_always_in_the_2000s():
    assert parse_mrz_expiry_date("990101") == date(2099, 1, 1)
    assert parse_mrz_expiry_date("120415") == date(2012, 4, 15)


class TestParseDateInput:
    def test_iso_string(self):
        assert parse_date_input("1990-05-17") == date(1990, 5, 17)

    def test_day_first_free_text(self):
        assert parse_date_input("17/05/1990") == date(1990, 5, 17)

    def test_date_and_datetime_pass_through(self):
        assert parse_date_input(date(1990, 5, 17)) == date(1990, 5, 17)
        assert parse_date_input(datetime(1990, 5, 17, 8, 0)) == date(1990, 5, 17)

    def test_blank_is_none(self):
        assert parse_date_input("") is None
        assert parse_date_input("   ") is None
        assert parse_date_input(None) is None

    def test_garbage_raises(self):
        with pytest.raises(ValueError):
            parse_date_input("xyzzy")
