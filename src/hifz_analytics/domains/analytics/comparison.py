# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Week-over-week and month-over-month comparison helpers."""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Literal

from hifz_analytics.domains.analytics.context import TimeRange
from hifz_analytics.utils.datetime import start_of_month, start_of_week, subtract_months, utc_now

ComparisonPeriod = Literal["week", "month"]


@dataclass(frozen=True)
class TrendData:
    """A metric value next to its value in the previous period."""

    current: float
    previous: float
    change: float
    is_positive: bool


def calculate_percentage_change(current: float, previous: float) -> float:
    """Relative change from previous to current, in percent.

    Growth from zero counts as 100, no change from zero as 0.
    """
    if previous == 0:
        return 100.0 if current > 0 else 0.0
    return round((current - previous) / previous * 100, 2)


def calculate_trend(current: float, previous: float) -> TrendData:
    """Build trend data for a metric.

    Args:
        current: Value in the current period.
        previous: Value in the previous period.

    Returns:
        TrendData with the percentage change. A zero change counts as positive.
    """
    change = calculate_percentage_change(current, previous)
    if previous == 0:
        return TrendData(current=current, previous=0.0, change=change, is_positive=current > 0)
    return TrendData(current=current, previous=previous, change=change, is_positive=change >= 0)


def get_previous_period_range(
    period: ComparisonPeriod,
    reference: datetime | None = None,
) -> TimeRange:
    """Full previous calendar week (Monday-Sunday) or month.

    The end is midnight of the last day of the previous period.

    Raises:
        ValueError: If period is neither "week" nor "month".
    """
    reference = reference or utc_now()

    if period == "week":
        this_start = start_of_week(reference)
        previous_start = start_of_week(reference - timedelta(weeks=1))
    elif period == "month":
        this_start = start_of_month(reference)
        previous_start = start_of_month(subtract_months(reference, 1))
    else:
        raise ValueError(f"Unsupported comparison period: {period}")

    return TimeRange(start=previous_start, end=this_start - timedelta(days=1))
