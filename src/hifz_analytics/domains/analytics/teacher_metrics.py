# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Teacher metrics calculator.

Session figures are proxies. There is no session log, so:
- scheduled sessions come from the weekly slot geometry of the
  teacher's classes, multiplied by the weeks in the window
- conducted sessions are the progress entries and attendance marks
  the teacher recorded inside the window

Missed sessions, the sessions ratio and the cancellation frequency
all derive from those two counts.
"""

import logging
from collections.abc import Mapping
from datetime import datetime, timedelta

from hifz_analytics.core.config.settings import AnalyticsSettings
from hifz_analytics.domains.analytics.calculator import mean, percentage, window_weeks
from hifz_analytics.domains.analytics.context import (
    AnalyticsDataContext,
    ClassRecord,
    TimeRange,
)
from hifz_analytics.domains.analytics.exceptions import EntityNotFoundError
from hifz_analytics.domains.analytics.models import SessionCounts, StudentMetrics, TeacherMetrics
from hifz_analytics.domains.analytics.student_metrics import (
    ISOLATED_ERRORS,
    collect_student_metrics,
)
from hifz_analytics.utils.datetime import as_utc_datetime, utc_now

logger = logging.getLogger(__name__)

FALLBACK_HOURS_PER_DAY = 1.5
GRADING_GRACE_HOURS = 24
GRADING_DECAY_PER_HOUR = 2
ADMIN_EVALUATION_DEFAULT = 75.0


def _time_to_hours(value: str) -> float:
    hours, _, minutes = value.partition(":")
    return int(hours) + (int(minutes[:2]) if minutes else 0) / 60


def hours_between(start_time: str, end_time: str) -> float:
    """Length of a slot given "HH:MM" bounds, never negative.

    Raises:
        ValueError: If a bound is not a valid time string.
    """
    return max(0.0, _time_to_hours(end_time) - _time_to_hours(start_time))


def teaches_class(teacher_id: str, class_record: ClassRecord) -> bool:
    """Check class-level and slot-level teacher assignments."""
    if teacher_id in class_record.teacher_ids:
        return True
    return any(teacher_id in slot.teacher_ids for slot in class_record.time_slots or ())


def _weekly_schedule(teacher_id: str, classes: list[ClassRecord]) -> tuple[float, int]:
    """Weekly teaching hours and weekly session count for a teacher."""
    hours = 0.0
    sessions = 0
    for class_record in classes:
        if class_record.time_slots is None:
            if class_record.days_of_week:
                hours += len(class_record.days_of_week) * FALLBACK_HOURS_PER_DAY
            continue

        for slot in class_record.time_slots:
            if teacher_id not in slot.teacher_ids:
                continue
            days = slot.days if slot.days is not None else class_record.days_of_week or []
            sessions += len(days)
            if slot.start_time and slot.end_time:
                hours += hours_between(slot.start_time, slot.end_time) * len(days)

    return round(hours, 2), sessions


def _grading_timeliness(
    teacher_id: str,
    context: AnalyticsDataContext,
) -> int:
    assignment_ids = {a.id for a in context.assignments if a.teacher_id == teacher_id}
    turnaround = [
        (s.graded_at - s.submitted_at) / timedelta(hours=1)
        for s in context.submissions
        if s.assignment_id in assignment_ids and s.graded_at and s.submitted_at
    ]
    if not turnaround:
        return 100

    overdue = max(0.0, mean(turnaround) - GRADING_GRACE_HOURS)
    return round(max(0.0, 100 - min(100.0, overdue * GRADING_DECAY_PER_HOUR)))


def calculate_teacher_metrics(
    teacher_id: str,
    context: AnalyticsDataContext,
    time_range: TimeRange | None = None,
    *,
    now: datetime | None = None,
    settings: AnalyticsSettings | None = None,
    student_metrics: Mapping[str, StudentMetrics] | None = None,
) -> TeacherMetrics:
    """Calculate every indicator for one teacher.

    Args:
        teacher_id: Teacher to evaluate.
        context: Snapshot for the run.
        time_range: Window for session counts and retention.
            Defaults to the trailing 4 weeks.
        now: Reference instant.
        settings: Thresholds.
        student_metrics: Precomputed student metrics by student id.

    Returns:
        TeacherMetrics for the teacher.

    Raises:
        EntityNotFoundError: If the teacher is not in the snapshot.
        ValueError: If a slot carries a malformed time.
    """
    teacher = context.get_teacher(teacher_id)
    if teacher is None:
        raise EntityNotFoundError("teacher", teacher_id)

    now = now or utc_now()
    settings = settings or AnalyticsSettings()
    time_range = time_range or TimeRange(start=now - timedelta(weeks=4), end=now)

    classes = [c for c in context.classes if teaches_class(teacher_id, c)]
    student_ids = list(dict.fromkeys(sid for c in classes for sid in c.current_students))

    weekly_hours, weekly_sessions = _weekly_schedule(teacher_id, classes)
    weeks = window_weeks(time_range)
    scheduled = weekly_sessions * weeks

    conducted = sum(
        1
        for p in context.progress
        if teacher_id in (p.contributor_id, p.teacher_id) and time_range.contains(p.occurred_at)
    ) + sum(
        1
        for a in context.attendance
        if a.teacher_id == teacher_id and time_range.contains(a.occurred_at)
    )
    sessions = SessionCounts(
        conducted=conducted,
        scheduled=scheduled,
        ratio=percentage(conducted, scheduled or 1),
    )

    metrics = collect_student_metrics(
        student_ids,
        context,
        time_range,
        now=now,
        settings=settings,
        precomputed=student_metrics,
    )

    cohort = [
        s
        for sid in student_ids
        if (s := context.get_student(sid)) is not None
        and s.enrollment_date is not None
        and as_utc_datetime(s.enrollment_date) <= time_range.start  # type: ignore[operator]
    ]
    retained = sum(1 for s in cohort if s.is_active)
    retention = percentage(retained, len(cohort)) if cohort else 100.0

    meeting_target = sum(1 for m in metrics if m.pages.weekly >= settings.weekly_pace_target)
    at_risk = sum(1 for m in metrics if m.at_risk_score >= settings.at_risk_threshold)

    missed = max(0, scheduled - conducted)
    cancellation_frequency = round(missed / weeks, 2) if weeks > 0 else 0.0

    return TeacherMetrics(
        teacher_id=teacher.id,
        teacher_name=teacher.name,
        section=teacher.section,
        student_count=len(student_ids),
        active_teaching_hours_per_week=weekly_hours,
        student_to_teacher_ratio=float(len(student_ids)),
        sessions=sessions,
        average_student_pace=round(mean([m.pace.pages_per_week for m in metrics]), 2),
        average_student_accuracy=round(mean([m.accuracy_rate for m in metrics]), 2),
        student_retention_rate=retention,
        students_meeting_weekly_target=percentage(meeting_target, len(metrics) or 1),
        at_risk_students_count=at_risk,
        teacher_attendance_rate=sessions.ratio,
        missed_or_late_sessions=missed,
        cancellation_frequency=cancellation_frequency,
        grading_timeliness=_grading_timeliness(teacher_id, context),
        admin_evaluation_score=ADMIN_EVALUATION_DEFAULT,
        parent_satisfaction_score=None,
    )


def calculate_all_teacher_metrics(
    context: AnalyticsDataContext,
    time_range: TimeRange | None = None,
    *,
    now: datetime | None = None,
    settings: AnalyticsSettings | None = None,
    student_metrics: Mapping[str, StudentMetrics] | None = None,
) -> list[TeacherMetrics]:
    """Calculate metrics for every profile with role "teacher".

    A teacher whose calculation fails is logged and skipped.
    """
    now = now or utc_now()
    settings = settings or AnalyticsSettings()

    results: list[TeacherMetrics] = []
    for teacher in context.teachers:
        if teacher.role != "teacher":
            continue
        try:
            results.append(
                calculate_teacher_metrics(
                    teacher.id,
                    context,
                    time_range,
                    now=now,
                    settings=settings,
                    student_metrics=student_metrics,
                )
            )
        except ISOLATED_ERRORS as e:
            logger.warning("Skipping metrics for teacher %s: %s", teacher.id, e)

    logger.debug("Calculated metrics for %d teachers", len(results))
    return results
