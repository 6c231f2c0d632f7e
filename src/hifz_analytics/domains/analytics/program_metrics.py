# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Program (institution-wide) metrics calculator."""

from collections.abc import Sequence
from datetime import datetime, timedelta

from hifz_analytics.core.config.settings import AnalyticsSettings
from hifz_analytics.domains.analytics.calculator import (
    average_per_week,
    mean,
    percentage,
    window_weeks,
)
from hifz_analytics.domains.analytics.context import AnalyticsDataContext, TimeRange
from hifz_analytics.domains.analytics.models import (
    EnrollmentChange,
    OnTrackSplit,
    ProgramMetrics,
    SessionCounts,
    StudentMetrics,
    TeacherMetrics,
)
from hifz_analytics.domains.analytics.student_metrics import calculate_all_student_metrics
from hifz_analytics.domains.analytics.teacher_metrics import calculate_all_teacher_metrics
from hifz_analytics.utils.datetime import as_utc_datetime, start_of_month, subtract_months, utc_now

TEACHER_AVAILABLE_HOURS_PER_WEEK = 40


def _enrollment_change(context: AnalyticsDataContext, now: datetime) -> EnrollmentChange:
    window = TimeRange(start=subtract_months(now, 1), end=now)
    enrollments = sum(
        1 for s in context.students if window.contains(as_utc_datetime(s.enrollment_date))
    )
    withdrawals = sum(
        1
        for s in context.students
        if s.status == "inactive" and window.contains(as_utc_datetime(s.status_start_date))
    )
    return EnrollmentChange(enrollments=enrollments, withdrawals=withdrawals)


def _average_lifetime_days(context: AnalyticsDataContext, now: datetime) -> float:
    lifetimes = []
    for student in context.students:
        enrolled = as_utc_datetime(student.enrollment_date)
        if enrolled is None:
            continue
        end = now
        if student.status == "inactive" and student.status_start_date is not None:
            end = as_utc_datetime(student.status_start_date)  # type: ignore[assignment]
        lifetimes.append(max(0.0, (end - enrolled) / timedelta(days=1)))
    return round(mean(lifetimes), 2)


def calculate_program_metrics(
    context: AnalyticsDataContext,
    time_range: TimeRange | None = None,
    *,
    now: datetime | None = None,
    settings: AnalyticsSettings | None = None,
    student_metrics: Sequence[StudentMetrics] | None = None,
    teacher_metrics: Sequence[TeacherMetrics] | None = None,
) -> ProgramMetrics:
    """Calculate institution-wide indicators.

    Args:
        context: Snapshot for the run.
        time_range: Window for the velocity. Defaults to the trailing 12 months.
        now: Reference instant.
        settings: Thresholds.
        student_metrics: Precomputed metrics for all active students.
        teacher_metrics: Precomputed metrics for all teachers.

    Returns:
        ProgramMetrics for the institution scope of the snapshot.
    """
    now = now or utc_now()
    settings = settings or AnalyticsSettings()
    time_range = time_range or TimeRange(start=subtract_months(now, 12), end=now)

    if student_metrics is None:
        student_metrics = calculate_all_student_metrics(
            context, time_range, now=now, settings=settings
        )
    if teacher_metrics is None:
        teacher_metrics = calculate_all_teacher_metrics(
            context,
            time_range,
            now=now,
            settings=settings,
            student_metrics={m.student_id: m for m in student_metrics},
        )

    student_count = len(student_metrics)
    weeks = window_weeks(time_range) or 1
    velocity = average_per_week(sum(m.pages.lifetime for m in student_metrics), weeks)

    on_track = sum(
        1 for m in student_metrics if m.pace.pages_per_week >= settings.weekly_pace_target
    )
    split = OnTrackSplit(
        on_track=percentage(on_track, student_count or 1),
        behind=percentage(student_count - on_track, student_count or 1),
    )

    month_start = start_of_month(subtract_months(now, 1))
    enrolled_before = sum(
        1
        for s in context.students
        if s.enrollment_date is not None
        and as_utc_datetime(s.enrollment_date) <= month_start  # type: ignore[operator]
    )
    active_now = sum(1 for s in context.students if s.is_active)

    teachers = [t for t in context.teachers if t.role == "teacher"]
    active_teachers = sum(1 for m in teacher_metrics if m.sessions.conducted > 0)
    teaching_hours = sum(m.active_teaching_hours_per_week for m in teacher_metrics)
    delivered = sum(m.sessions.conducted for m in teacher_metrics)
    planned = sum(m.sessions.scheduled for m in teacher_metrics)

    return ProgramMetrics(
        overall_velocity=velocity,
        on_track=split,
        average_accuracy=round(mean([m.accuracy_rate for m in student_metrics]), 2),
        monthly_retention=percentage(active_now, enrolled_before or 1),
        enrollment=_enrollment_change(context, now),
        average_student_lifetime_days=_average_lifetime_days(context, now),
        teacher_turnover_rate=percentage(len(teachers) - active_teachers, len(teachers) or 1),
        teacher_utilization_rate=percentage(
            teaching_hours, len(teachers) * TEACHER_AVAILABLE_HOURS_PER_WEEK or 1
        ),
        sessions=SessionCounts(
            conducted=delivered,
            scheduled=planned,
            ratio=percentage(delivered, planned or 1),
        ),
    )
