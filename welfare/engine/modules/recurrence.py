"""
Recurrence-aware occurrence dates for special dates.

Every "how many days until" question in the registry goes through this module,
so the leap-day policy lives in a single place: a recurring February 29 falls
on February 28 in non-leap years.
"""

# Internal
import typing as T
from datetime import date, datetime

HOURS_PER_DAY = 24


def _as_date(value: T.Union[date, datetime]) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def replace_year(day: date, year: int) -> date:
    try:
        return day.replace(year=year)
    except ValueError:
        # February 29 outside a leap year
        return day.replace(year=year, day=28)


def next_occurrence(
        event_date: T.Union[date, datetime],
        is_recurring: bool,
        reference_date: T.Union[date, datetime]
) -> date:
    """
    Return the occurrence of an event relative to reference_date.

    Recurring events take the reference year, moving to the following year when
    that date has already passed. One-time events keep their own date, which may
    be in the past.
    """
    event_date = _as_date(event_date)
    reference_date = _as_date(reference_date)

    if not is_recurring:
        return event_date

    occurrence = replace_year(event_date, reference_date.year)
    if occurrence < reference_date:
        occurrence = replace_year(event_date, reference_date.year + 1)

    return occurrence


def days_until(
        event_date: T.Union[date, datetime],
        is_recurring: bool,
        reference_date: T.Union[date, datetime]
) -> int:
    """Whole days from reference_date to the occurrence. Callers pass today from their DatetimeManager."""
    occurrence = next_occurrence(event_date, is_recurring, reference_date)

    return (occurrence - _as_date(reference_date)).days


def hours_until(days: int) -> int:
    return days * HOURS_PER_DAY


def is_within_reminder_window(days: int, reminder_hours_before: int) -> bool:
    return 0 <= hours_until(days) <= reminder_hours_before
