"""Tests for debtledger.ledger.dates."""

from datetime import date, datetime

import pytest

from debtledger.ledger.dates import (
    add_months,
    add_years,
    days_until,
    format_date,
    parse_date,
)


class TestParseDate:
    def test_iso_string(self):
        assert parse_date("2026-03-15") == date(2026, 3, 15)

    def test_iso_timestamp_drops_time(self):
        assert parse_date("2026-03-15T23:59:59.123456+00:00") == date(2026, 3, 15)

    def test_surrounding_whitespace(self):
        assert parse_date("  2026-03-15 ") == date(2026, 3, 15)

    def test_date_passthrough(self):
        d = date(2026, 1, 2)
        assert parse_date(d) is d

    def test_datetime_to_date(self):
        assert parse_date(datetime(2026, 1, 2, 18, 30)) == date(2026, 1, 2)

    @pytest.mark.parametrize("value", [
        None, "", "2026-3-5", "15/03/2026", "2026-02-30", "tomorrow", 20260315,
    ])
    def test_absent_or_malformed(self, value):
        assert parse_date(value) is None


class TestFormatAndDiff:
    def test_format_date(self):
        assert format_date(date(2026, 3, 5)) == "2026-03-05"

    def test_days_until(self):
        assert days_until(date(2026, 3, 20), date(2026, 3, 15)) == 5
        assert days_until(date(2026, 3, 10), date(2026, 3, 15)) == -5
        assert days_until(date(2026, 3, 15), date(2026, 3, 15)) == 0

    def test_days_until_across_year(self):
        assert days_until(date(2027, 1, 1), date(2026, 12, 31)) == 1


class TestAddMonths:
    def test_plain(self):
        assert add_months(date(2026, 3, 15), 1) == date(2026, 4, 15)

    def test_december_wraps_year(self):
        assert add_months(date(2026, 12, 15), 1) == date(2027, 1, 15)

    def test_multi_year_span(self):
        assert add_months(date(2026, 5, 1), 30) == date(2028, 11, 1)

    def test_overflow_leap_year(self):
        assert add_months(date(2024, 1, 31), 1) == date(2024, 3, 2)

    def test_overflow_common_year(self):
        assert add_months(date(2023, 1, 31), 1) == date(2023, 3, 3)

    def test_overflow_thirty_day_month(self):
        assert add_months(date(2026, 3, 31), 1) == date(2026, 5, 1)


class TestAddYears:
    def test_plain(self):
        assert add_years(date(2026, 6, 1), 1) == date(2027, 6, 1)

    def test_leap_day_rolls_to_march(self):
        assert add_years(date(2024, 2, 29), 1) == date(2025, 3, 1)

    def test_leap_day_to_leap_year(self):
        assert add_years(date(2024, 2, 29), 4) == date(2028, 2, 29)
