# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""DateTime utilities for the analytics engine.

Design Decisions:
-----------------
1. All timestamps are handled in UTC
2. All Python datetimes are timezone-aware (with timezone.utc)
3. Plain calendar dates are promoted to midnight UTC when compared
   against timestamps

Usage:
------
    from hifz_analytics.utils.datetime import utc_now, as_utc_datetime

    now = utc_now()
    enrolled = as_utc_datetime(student.enrollment_date)
"""

from datetime import date, datetime, time, timedelta, timezone


def utc_now() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Returns:
        Timezone-aware datetime representing current UTC time.
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Ensure a datetime is timezone-aware UTC.

    Args:
        dt: A datetime object (naive or aware) or None.

    Returns:
        Timezone-aware UTC datetime or None.

    Note:
        - If dt is None, returns None
        - If dt is naive, assumes UTC and adds tzinfo
        - If dt is aware, converts to UTC
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def as_utc_datetime(value: date | datetime | None) -> datetime | None:
    """Promote a date or datetime to a timezone-aware UTC datetime.

    Args:
        value: A calendar date, a datetime, or None.

    Returns:
        Midnight UTC for plain dates, the UTC-normalized datetime otherwise.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return ensure_utc(value)
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def start_of_day(dt: datetime) -> datetime:
    """Truncate a datetime to midnight of the same UTC day."""
    return ensure_utc(dt).replace(hour=0, minute=0, second=0, microsecond=0)  # type: ignore[union-attr]


def end_of_day(dt: datetime) -> datetime:
    """Last representable instant of the UTC day containing dt."""
    return datetime.combine(start_of_day(dt).date(), time.max, tzinfo=timezone.utc)


def start_of_week(dt: datetime) -> datetime:
    """Get midnight of the Monday starting the week containing dt."""
    day = start_of_day(dt)
    return day - timedelta(days=day.weekday())


def start_of_month(dt: datetime) -> datetime:
    """Get midnight of the first day of the month containing dt."""
    return start_of_day(dt).replace(day=1)


def subtract_months(dt: datetime, months: int) -> datetime:
    """Move a datetime back by whole calendar months.

    The day of month is clamped to the length of the target month,
    so March 31 minus one month is the last day of February.

    Args:
        dt: Reference datetime.
        months: Number of months to go back.

    Returns:
        Datetime with the same time of day in the target month.
    """
    month_index = dt.year * 12 + (dt.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    next_month = date(year + (month // 12), month % 12 + 1, 1)
    last_day = (next_month - timedelta(days=1)).day
    return dt.replace(year=year, month=month, day=min(dt.day, last_day))
