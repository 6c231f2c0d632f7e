# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Student metrics calculator.

Derives the per-student indicators from one snapshot. Teacher and class
calculators aggregate these, so a run computes each student once and
passes the results down through collect_student_metrics().
"""

import logging
import math
from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta

from hifz_analytics.core.config.settings import AnalyticsSettings
from hifz_analytics.domains.analytics.calculator import (
    MISTAKE_ESTIMATES,
    TimePeriod,
    average_per_day,
    average_per_week,
    check_stagnation,
    classify_absence_excused,
    composite_risk_score,
    consecutive_streak,
    consistency_score,
    days_between,
    drop_off_probability,
    filter_by_date_range,
    get_time_range,
    juz_completion,
    normalize_quality,
    percentage,
    retention_score,
)
from hifz_analytics.domains.analytics.context import (
    AnalyticsDataContext,
    ProgressRecord,
    TimeRange,
)
from hifz_analytics.domains.analytics.exceptions import AnalyticsError, EntityNotFoundError
from hifz_analytics.domains.analytics.models import (
    AbsenceBreakdown,
    MemorizationPace,
    PagesMemorized,
    StudentMetrics,
)
from hifz_analytics.utils.datetime import subtract_months, utc_now

logger = logging.getLogger(__name__)

EXPECTED_SESSIONS_PER_WEEK = 5
ACTIVE_REVISION_DAYS = 90
RETENTION_WINDOW_DAYS = 30
CONSISTENCY_PERIOD_DAYS = 30
BURNOUT_CONSISTENCY_FLOOR = 50
LOW_ENGAGEMENT_CONSISTENCY = 40

# Per-entity failures that a batch calculation isolates
ISOLATED_ERRORS = (AnalyticsError, ValueError, TypeError, ArithmeticError)


def _pages(entries: Iterable[ProgressRecord]) -> float:
    return sum(p.pages_memorized for p in entries)


def _accuracy_rate(entries: Iterable[ProgressRecord]) -> float:
    """Accuracy from explicit mistake counts, else estimated from quality."""
    total_mistakes = 0.0
    rated = 0
    for entry in entries:
        if entry.mistake_count is not None:
            total_mistakes += entry.mistake_count
            rated += 1
        elif entry.memorization_quality:
            total_mistakes += MISTAKE_ESTIMATES.get(
                normalize_quality(entry.memorization_quality) or "", 5
            )
            rated += 1

    mean_mistakes = total_mistakes / rated if rated else 0.0
    return max(0.0, 100 - min(100.0, mean_mistakes * 5))


def _pace_declining(
    entries: list[ProgressRecord],
    now: datetime,
    drop_threshold: float,
) -> bool:
    """Compare the trailing 7 days against the 7 days before them."""
    week_ago = now - timedelta(days=7)
    fortnight_ago = now - timedelta(days=14)

    recent = _pages(p for p in entries if p.occurred_at and week_ago <= p.occurred_at <= now)
    prior = _pages(
        p for p in entries if p.occurred_at and fortnight_ago <= p.occurred_at < week_ago
    )
    return prior > 0 and recent <= prior * (1 - drop_threshold / 100)


def calculate_student_metrics(
    student_id: str,
    context: AnalyticsDataContext,
    time_range: TimeRange | None = None,
    *,
    now: datetime | None = None,
    settings: AnalyticsSettings | None = None,
) -> StudentMetrics:
    """Calculate every indicator for one student.

    Args:
        student_id: Student to evaluate.
        context: Snapshot for the run.
        time_range: Window used for the enrollment fallback and the
            teacher effort rating. Defaults to the trailing 12 months.
        now: Reference instant. Defaults to the wall clock.
        settings: Thresholds. Defaults to AnalyticsSettings().

    Returns:
        StudentMetrics for the student.

    Raises:
        EntityNotFoundError: If the student is not in the snapshot.
    """
    student = context.get_student(student_id)
    if student is None:
        raise EntityNotFoundError("student", student_id)

    now = now or utc_now()
    settings = settings or AnalyticsSettings()
    time_range = time_range or TimeRange(start=subtract_months(now, 12), end=now)

    progress = [p for p in context.progress if p.student_id == student_id]
    attendance = [a for a in context.attendance if a.student_id == student_id]
    assignments = [a for a in context.assignments if student_id in a.student_ids]
    submissions = [s for s in context.submissions if s.student_id == student_id]
    revisions = [r for r in context.juz_revisions if r.student_id == student_id]

    pages = PagesMemorized(
        lifetime=_pages(progress),
        weekly=_pages(filter_by_date_range(progress, get_time_range(TimePeriod.WEEKLY, now))),
        monthly=_pages(filter_by_date_range(progress, get_time_range(TimePeriod.MONTHLY, now))),
    )

    enrolled = student.enrollment_date or time_range.start
    days_enrolled = max(1, days_between(enrolled, now))
    weeks_enrolled = max(1, days_enrolled // 7)
    pace = MemorizationPace(
        pages_per_day=average_per_day(pages.lifetime, days_enrolled),
        pages_per_week=average_per_week(pages.lifetime, weeks_enrolled),
    )

    active_revision_load = sum(
        1 for r in revisions if days_between(r.revision_date, now) <= ACTIVE_REVISION_DAYS
    )
    revision_retention = retention_score(revisions, RETENTION_WINDOW_DAYS, now)
    accuracy = _accuracy_rate(progress)
    completion = juz_completion(student.current_juz, student.completed_juz)

    last_progress = max((p.occurred_at for p in progress if p.occurred_at), default=None)
    stagnation = check_stagnation(last_progress, settings.stagnation_threshold_days, now)

    present = sum(1 for a in attendance if a.status == "present")
    late = sum(1 for a in attendance if a.status == "late")
    absent = [a for a in attendance if a.status == "absent"]
    excused = sum(1 for a in absent if classify_absence_excused(a))
    absences = AbsenceBreakdown(excused=excused, unexcused=len(absent) - excused, total=len(absent))
    attendance_rate = percentage(present, len(attendance))

    # Every date in the list is an absence
    absence_streak = consecutive_streak(
        (a.occurred_at for a in absent if a.occurred_at),
        lambda _: True,
    )

    submitted = sum(1 for s in submissions if s.status in ("submitted", "graded"))
    homework_rate = percentage(submitted, len(assignments))

    consistency_since = now - timedelta(days=CONSISTENCY_PERIOD_DAYS)
    consistency = consistency_score(
        [p.occurred_at for p in progress if p.occurred_at and p.occurred_at >= consistency_since],
        EXPECTED_SESSIONS_PER_WEEK,
        CONSISTENCY_PERIOD_DAYS,
    )

    interactions = len(progress) + len(attendance)
    expected_interactions = math.floor(
        days_between(time_range.start, time_range.end) / 7 * EXPECTED_SESSIONS_PER_WEEK
    )
    teacher_effort = min(100.0, percentage(interactions, expected_interactions))

    at_risk = composite_risk_score(
        attendance_rate=attendance_rate,
        pace=pace.pages_per_week,
        accuracy=accuracy,
        consistency=consistency,
        stagnation_days=stagnation.days_since_last_progress,
    )

    declining = _pace_declining(progress, now, settings.pace_drop_threshold)
    burnout = stagnation.is_stagnant or consistency < BURNOUT_CONSISTENCY_FLOOR or declining

    drop_off = drop_off_probability(
        at_risk,
        consecutive_absences=absence_streak,
        recent_decline=declining,
        low_engagement=consistency < LOW_ENGAGEMENT_CONSISTENCY,
    )

    return StudentMetrics(
        student_id=student.id,
        student_name=student.name,
        section=student.section,
        pages=pages,
        pace=pace,
        active_revision_load=active_revision_load,
        revision_retention_score=revision_retention,
        accuracy_rate=accuracy,
        completion=completion,
        stagnation=stagnation,
        attendance_rate=attendance_rate,
        late_arrivals_count=late,
        absences=absences,
        consecutive_absence_streak=absence_streak,
        homework_completion_rate=homework_rate,
        practice_consistency_score=consistency,
        teacher_effort_rating=teacher_effort,
        at_risk_score=at_risk,
        burnout_warning=burnout,
        drop_off_probability=drop_off,
    )


def calculate_all_student_metrics(
    context: AnalyticsDataContext,
    time_range: TimeRange | None = None,
    *,
    now: datetime | None = None,
    settings: AnalyticsSettings | None = None,
) -> list[StudentMetrics]:
    """Calculate metrics for every active student.

    A student whose calculation fails is logged and skipped.
    """
    now = now or utc_now()
    settings = settings or AnalyticsSettings()

    results: list[StudentMetrics] = []
    for student in context.students:
        if not student.is_active:
            continue
        try:
            results.append(
                calculate_student_metrics(
                    student.id, context, time_range, now=now, settings=settings
                )
            )
        except ISOLATED_ERRORS as e:
            logger.warning("Skipping metrics for student %s: %s", student.id, e)

    logger.debug("Calculated metrics for %d students", len(results))
    return results


def collect_student_metrics(
    student_ids: Iterable[str],
    context: AnalyticsDataContext,
    time_range: TimeRange | None,
    *,
    now: datetime,
    settings: AnalyticsSettings,
    precomputed: Mapping[str, StudentMetrics] | None = None,
) -> list[StudentMetrics]:
    """Metrics for a set of students, reusing precomputed results.

    With precomputed results, students missing from the mapping (for
    example inactive ones) are left out. Without them, each student is
    calculated here and failures are skipped silently at debug level.
    """
    if precomputed is not None:
        return [precomputed[sid] for sid in student_ids if sid in precomputed]

    results: list[StudentMetrics] = []
    for sid in student_ids:
        try:
            results.append(
                calculate_student_metrics(sid, context, time_range, now=now, settings=settings)
            )
        except ISOLATED_ERRORS as e:
            logger.debug("No metrics for student %s: %s", sid, e)
    return results
