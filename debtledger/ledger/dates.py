"""Calendar-day helpers shared by the urgency and recurring modules.

All comparisons happen on whole local calendar days; time-of-day is
discarded before any subtraction.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta

DATE_FORMAT = "%Y-%m-%d"


def today() -> date:
    return date.today()


def parse_date(value: date | datetime | str | None) -> date | None:
    """Coerce a date-like value to a date, returning None when absent or malformed.

    Accepts date, datetime (time is dropped), and strings in YYYY-MM-DD
    form, optionally followed by a time part (ISO timestamps).
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None
    text = value.strip()
    if len(text) < 10:
        return None
    try:
        return datetime.strptime(text[:10], DATE_FORMAT).date()
    except ValueError:
        return None


def format_date(d: date) -> str:
    return d.strftime(DATE_FORMAT)


def days_until(due: date, ref: date) -> int:
    """Whole calendar days from ref to due (negative when due is in the past)."""
    return (due - ref).days


def add_months(d: date, months: int) -> date:
    """Add calendar months keeping the day-of-month, spilling overflow forward.

    A day that does not exist in the target month rolls into the next one:
    2024-01-31 + 1 month is 2024-03-02, 2023-01-31 + 1 month is 2023-03-03.
    """
    month_index = d.month - 1 + months
    year = d.year + month_index // 12
    month = month_index % 12 + 1
    return date(year, month, 1) + timedelta(days=d.day - 1)


def add_years(d: date, years: int) -> date:
    """Add calendar years with the same overflow rule (Feb 29 -> Mar 1)."""
    return date(d.year + years, d.month, 1) + timedelta(days=d.day - 1)
