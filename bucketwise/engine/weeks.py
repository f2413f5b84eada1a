"""
Week anchoring.

A week is identified by its start date, which falls on the user's payday.
Days of week use 0 = Sunday ... 6 = Saturday.
"""

from datetime import date, timedelta
from typing import Optional

WEEK_LENGTH_DAYS = 7


def day_of_week(d: date) -> int:
    """Sunday-based day of week (date.weekday() is Monday-based)."""
    return (d.weekday() + 1) % 7


def week_end(week_start: date) -> date:
    return week_start + timedelta(days=WEEK_LENGTH_DAYS - 1)


def is_in_week(d: date, week_start: date) -> bool:
    return week_start <= d <= week_end(week_start)


def most_recent_dow(d: date, dow: int) -> date:
    """Latest date on or before d that falls on dow."""
    return d - timedelta(days=(day_of_week(d) - dow) % 7)


def next_dow(d: date, dow: int) -> date:
    """Earliest date on or after d that falls on dow."""
    return d + timedelta(days=(dow - day_of_week(d)) % 7)


def week_start_for_income_entry(
    entry_date: date,
    payday_dow: int,
    notice_dow: Optional[int],
) -> date:
    """
    Week an income entry belongs to.

    Income entered on the notice day is for the coming payday's week;
    any other day belongs to the week of the most recent payday.
    """
    if notice_dow is not None and day_of_week(entry_date) == notice_dow:
        return next_dow(entry_date, payday_dow)
    return most_recent_dow(entry_date, payday_dow)
