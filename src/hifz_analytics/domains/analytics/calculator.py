# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Calculation primitives shared by every metrics calculator.

All functions are pure. Functions that depend on the current time take
an explicit ``now`` argument, defaulting to the wall clock, so a whole
run can be evaluated against one reference instant.

Qualitative ratings are matched case-insensitively and ignore separators,
so "needsWork", "needs_work" and "Needs work" are the same rating.
"""

import math
import re
from collections.abc import Callable, Iterable, Sequence
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Protocol, TypeVar

from hifz_analytics.domains.analytics.context import AttendanceRecord, TimeRange
from hifz_analytics.domains.analytics.models import JuzCompletion, StagnationResult
from hifz_analytics.utils.datetime import (
    as_utc_datetime,
    start_of_month,
    start_of_week,
    subtract_months,
    utc_now,
)

TOTAL_JUZ = 30
NO_PROGRESS_DAYS = 999
LIFETIME_START = datetime(2000, 1, 1, tzinfo=timezone.utc)

QUALITY_SCORES: dict[str, int] = {
    "excellent": 5,
    "good": 4,
    "average": 3,
    "needswork": 2,
    "horrible": 1,
}

MISTAKE_ESTIMATES: dict[str, int] = {
    "excellent": 0,
    "good": 2,
    "average": 5,
    "needswork": 10,
    "horrible": 15,
}

RISK_WEIGHTS: dict[str, float] = {
    "attendance": 0.25,
    "pace": 0.25,
    "accuracy": 0.20,
    "consistency": 0.15,
    "stagnation": 0.15,
}

_EXCUSED_PATTERN = re.compile(r"\bexcused\b", re.IGNORECASE)


class TimePeriod(str, Enum):
    """Named reporting periods."""

    WEEKLY = "weekly"
    MONTHLY = "monthly"
    LIFETIME = "lifetime"


class _Timestamped(Protocol):
    @property
    def occurred_at(self) -> datetime | None: ...


class _Revision(Protocol):
    revision_date: date
    memorization_quality: str | None


T = TypeVar("T", bound=_Timestamped)


def normalize_quality(label: str | None) -> str | None:
    """Reduce a qualitative rating to its lookup key."""
    if not label:
        return None
    return re.sub(r"[\s_\-]", "", label).lower()


def percentage(part: float, whole: float) -> float:
    """Return part as a percentage of whole, rounded to 2 decimals.

    Returns 0 when whole is 0.
    """
    if whole == 0:
        return 0.0
    return round(part / whole * 100, 2)


def average_per_day(total: float, days: float) -> float:
    """Average per day, 0 for a non-positive day count."""
    if days <= 0:
        return 0.0
    return round(total / days, 2)


def average_per_week(total: float, weeks: float) -> float:
    """Average per week, 0 for a non-positive week count."""
    if weeks <= 0:
        return 0.0
    return round(total / weeks, 2)


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean, 0 for an empty sequence."""
    if not values:
        return 0.0
    return sum(values) / len(values)


def days_between(start: date | datetime, end: date | datetime) -> int:
    """Whole days from start to end, truncated toward zero.

    Plain dates are treated as midnight UTC.
    """
    delta = as_utc_datetime(end) - as_utc_datetime(start)  # type: ignore[operator]
    return int(delta / timedelta(days=1))


def weeks_between(start: date | datetime, end: date | datetime) -> int:
    """Whole weeks from start to end, at least 1."""
    return int(days_between(start, end) / 7) or 1


def window_weeks(time_range: TimeRange) -> int:
    """Number of started weeks covered by a window (ceiling)."""
    return math.ceil((time_range.end - time_range.start) / timedelta(weeks=1))


def variance(values: Sequence[float]) -> float:
    """Population variance, 0 for empty input."""
    if not values:
        return 0.0
    avg = mean(values)
    return sum((v - avg) ** 2 for v in values) / len(values)


def standard_deviation(values: Sequence[float]) -> float:
    """Population standard deviation rounded to 2 decimals, 0 for empty input."""
    if not values:
        return 0.0
    return round(math.sqrt(variance(values)), 2)


def consecutive_streak(
    dates: Iterable[date | datetime],
    is_present: Callable[[datetime], bool],
    reverse: bool = False,
) -> int:
    """Longest run of consecutive dates satisfying a predicate.

    Args:
        dates: Dates to walk, in any order.
        is_present: Predicate deciding whether a date extends the run.
        reverse: Walk newest first instead of oldest first.

    Returns:
        Length of the longest run; 0 for empty input.
    """
    ordered = sorted(
        (as_utc_datetime(d) for d in dates),  # type: ignore[type-var]
        reverse=reverse,
    )

    max_streak = 0
    current = 0
    for moment in ordered:
        if is_present(moment):
            current += 1
            max_streak = max(max_streak, current)
        else:
            current = 0

    return max_streak


def retention_score(
    revisions: Iterable[_Revision],
    recent_days: int = 30,
    now: datetime | None = None,
) -> int:
    """Score 0-100 from the quality of revisions in the trailing window.

    Unrated or unrecognised revisions count as "average".

    Returns:
        round(mean quality / 5 * 100), or 0 if no revision is recent.
    """
    cutoff = (now or utc_now()) - timedelta(days=recent_days)
    scores = [
        QUALITY_SCORES.get(normalize_quality(r.memorization_quality) or "average", 3)
        for r in revisions
        if as_utc_datetime(r.revision_date) >= cutoff  # type: ignore[operator]
    ]
    if not scores:
        return 0
    return round(mean(scores) / 5 * 100)


def consistency_score(
    dates: Iterable[date | datetime],
    expected_frequency_per_week: float = 5,
    period_days: int = 30,
) -> int:
    """Regularity score 0-100 from distinct practice days.

    The expected number of days is floor(frequency / 7 * period_days).
    The score is capped at 100.
    """
    distinct_days = {as_utc_datetime(d).date() for d in dates}  # type: ignore[union-attr]
    if not distinct_days:
        return 0

    expected_total = math.floor(expected_frequency_per_week / 7 * period_days)
    if expected_total == 0:
        return 0
    return min(100, round(len(distinct_days) / expected_total * 100))


def composite_risk_score(
    *,
    attendance_rate: float | None = None,
    pace: float | None = None,
    accuracy: float | None = None,
    consistency: float | None = None,
    stagnation_days: float | None = None,
) -> int:
    """Blend five risk factors into a 0-100 score.

    Missing factors contribute nothing. Pace is weekly pages scaled by
    10, and stagnation saturates at 30 days.
    """
    risk = 0.0
    if attendance_rate is not None:
        risk += (100 - attendance_rate) * RISK_WEIGHTS["attendance"]
    if pace is not None:
        risk += (100 - min(100, pace * 10)) * RISK_WEIGHTS["pace"]
    if accuracy is not None:
        risk += (100 - accuracy) * RISK_WEIGHTS["accuracy"]
    if consistency is not None:
        risk += (100 - consistency) * RISK_WEIGHTS["consistency"]
    if stagnation_days is not None:
        risk += min(100, stagnation_days / 30 * 100) * RISK_WEIGHTS["stagnation"]

    return max(0, min(100, round(risk)))


def drop_off_probability(
    risk_score: float,
    *,
    consecutive_absences: int = 0,
    recent_decline: bool = False,
    low_engagement: bool = False,
) -> int:
    """Adjust a risk score into a 0-100 drop-off probability."""
    probability = risk_score
    if consecutive_absences >= 5:
        probability += 20
    if recent_decline:
        probability += 15
    if low_engagement:
        probability += 10
    return max(0, min(100, round(probability)))


def check_stagnation(
    last_progress: date | datetime | None,
    threshold_days: int = 7,
    now: datetime | None = None,
) -> StagnationResult:
    """Check whether a student has gone threshold_days without progress.

    A student with no progress at all is stagnant with 999 days.
    """
    if last_progress is None:
        return StagnationResult(True, NO_PROGRESS_DAYS, threshold_days)

    days = days_between(last_progress, now or utc_now())
    return StagnationResult(days >= threshold_days, days, threshold_days)


def juz_completion(current_juz: int | None, completed_juz: Sequence[int]) -> JuzCompletion:
    """Completion percentages for the current Juz and the whole Quran.

    The current Juz percentage is a fixed 50 whenever a valid Juz (1-30)
    is set; sub-Juz progress is not tracked.
    """
    current = 50.0 if current_juz is not None and 0 < current_juz <= TOTAL_JUZ else 0.0
    return JuzCompletion(
        current_juz=current,
        total_hifz_goal=percentage(len(completed_juz), TOTAL_JUZ),
    )


def classify_absence_excused(record: AttendanceRecord) -> bool:
    """Decide whether an absence was excused.

    There is no structured field for this yet, so the free-text notes and
    late reason are searched for the word "excused".
    """
    text = " ".join(filter(None, (record.notes, record.late_reason)))
    return _EXCUSED_PATTERN.search(text) is not None


def get_time_range(period: TimePeriod | str, now: datetime | None = None) -> TimeRange:
    """Window for a named period ending at now.

    - weekly: from the Monday of the previous week
    - monthly: from the first day of the previous month
    - lifetime: from 2000-01-01
    """
    now = now or utc_now()
    period = TimePeriod(period)

    if period is TimePeriod.MONTHLY:
        start = start_of_month(subtract_months(now, 1))
    elif period is TimePeriod.LIFETIME:
        start = LIFETIME_START
    else:
        start = start_of_week(now - timedelta(weeks=1))

    return TimeRange(start=start, end=now)


def filter_by_date_range(records: Iterable[T], time_range: TimeRange) -> list[T]:
    """Keep records whose timestamp falls inside the window."""
    return [r for r in records if time_range.contains(r.occurred_at)]
