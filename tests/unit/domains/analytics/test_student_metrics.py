# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the student metrics calculator."""

from datetime import date, datetime, timedelta

import pytest
from pydantic import ValidationError

from hifz_analytics.domains.analytics.context import (
    AssignmentRecord,
    AttendanceRecord,
    JuzRevisionRecord,
    ProgressRecord,
    StudentRecord,
    SubmissionRecord,
    TimeRange,
)
from hifz_analytics.domains.analytics.exceptions import EntityNotFoundError
from hifz_analytics.domains.analytics.student_metrics import (
    calculate_all_student_metrics,
    calculate_student_metrics,
)


@pytest.fixture
def context(make_context, now: datetime):
    """One student enrolled 70 days ago with 35 pages memorized."""
    student = StudentRecord(
        id="s1",
        name="Ahmad",
        enrollment_date=date(2025, 1, 1),
        current_juz=3,
        completed_juz=[1, 2],
    )
    first = datetime(2025, 1, 8, 9, 0, tzinfo=now.tzinfo)
    progress = [
        ProgressRecord(
            id=f"p{k}",
            student_id="s1",
            teacher_id="t1",
            pages_memorized=5,
            mistake_count=2,
            created_at=first + timedelta(weeks=k),
        )
        for k in range(7)
    ]
    attendance = [
        AttendanceRecord(id="a1", student_id="s1", status="present", date=date(2025, 3, 3)),
        AttendanceRecord(id="a2", student_id="s1", status="present", date=date(2025, 3, 4)),
        AttendanceRecord(id="a3", student_id="s1", status="late", date=date(2025, 3, 5)),
        AttendanceRecord(
            id="a4",
            student_id="s1",
            status="absent",
            notes="Excused: travel",
            date=date(2025, 3, 6),
        ),
    ]
    assignments = [
        AssignmentRecord(id="h1", teacher_id="t1", student_ids=["s1"]),
        AssignmentRecord(id="h2", teacher_id="t1", student_ids=["s1"]),
    ]
    submissions = [
        SubmissionRecord(id="sub1", assignment_id="h1", student_id="s1", status="graded"),
    ]
    revisions = [
        JuzRevisionRecord(
            id="r1", student_id="s1", revision_date=date(2025, 3, 1), memorization_quality="good"
        ),
        JuzRevisionRecord(id="r2", student_id="s1", revision_date=date(2024, 10, 1)),
    ]
    return make_context(
        students=[student],
        progress=progress,
        attendance=attendance,
        assignments=assignments,
        submissions=submissions,
        juz_revisions=revisions,
    )


class TestProgressMetrics:
    """Tests for pages, pace and accuracy."""

    def test_pace_since_enrollment(self, context, now, settings):
        metrics = calculate_student_metrics("s1", context, now=now, settings=settings)

        assert metrics.pages.lifetime == 35
        assert metrics.pace.pages_per_day == 0.5
        assert metrics.pace.pages_per_week == 3.5
        assert metrics.pace.pages_per_week < settings.weekly_pace_target

    def test_pages_by_period(self, context, now, settings):
        metrics = calculate_student_metrics("s1", context, now=now, settings=settings)

        assert metrics.pages.weekly == 0
        assert metrics.pages.monthly == 15

    def test_accuracy_from_mistake_counts(self, context, now, settings):
        metrics = calculate_student_metrics("s1", context, now=now, settings=settings)
        assert metrics.accuracy_rate == 90.0

    def test_accuracy_estimated_from_quality(self, make_context, now, settings):
        context = make_context(
            students=[StudentRecord(id="s1", enrollment_date=date(2025, 1, 1))],
            progress=[
                ProgressRecord(
                    id="p1",
                    student_id="s1",
                    memorization_quality="Needs Work",
                    created_at=now - timedelta(days=1),
                ),
            ],
        )
        metrics = calculate_student_metrics("s1", context, now=now, settings=settings)
        # 10 estimated mistakes
        assert metrics.accuracy_rate == 50.0

    @pytest.mark.parametrize(
        "values",
        [{"mistake_count": -4}, {"pages_memorized": -2.5}],
    )
    def test_negative_progress_values_rejected(self, values):
        with pytest.raises(ValidationError):
            ProgressRecord(id="p1", student_id="s1", **values)

    def test_accuracy_stays_within_bounds(self, make_context, now, settings):
        context = make_context(
            students=[StudentRecord(id="s1", enrollment_date=date(2025, 1, 1))],
            progress=[
                ProgressRecord(
                    id="p1",
                    student_id="s1",
                    pages_memorized=None,
                    mistake_count=0,
                    created_at=now - timedelta(days=1),
                ),
                ProgressRecord(
                    id="p2",
                    student_id="s1",
                    mistake_count=40,
                    created_at=now - timedelta(days=2),
                ),
            ],
        )
        metrics = calculate_student_metrics("s1", context, now=now, settings=settings)
        # 20 mistakes on average floor the rate at zero
        assert metrics.accuracy_rate == 0.0
        assert context.progress[0].pages_memorized == 0.0

    def test_completion_and_revisions(self, context, now, settings):
        metrics = calculate_student_metrics("s1", context, now=now, settings=settings)

        assert metrics.completion.current_juz == 50.0
        assert metrics.completion.total_hifz_goal == 6.67
        assert metrics.active_revision_load == 1
        assert metrics.revision_retention_score == 80

    def test_stagnation(self, context, now, settings):
        metrics = calculate_student_metrics("s1", context, now=now, settings=settings)

        assert metrics.stagnation.is_stagnant is True
        assert metrics.stagnation.days_since_last_progress == 21

    def test_enrollment_falls_back_to_window_start(self, make_context, now, settings):
        context = make_context(
            students=[StudentRecord(id="s1")],
            progress=[
                ProgressRecord(
                    id="p1", student_id="s1", pages_memorized=4, created_at=now - timedelta(days=3)
                ),
            ],
        )
        time_range = TimeRange(now - timedelta(days=14), now)

        metrics = calculate_student_metrics("s1", context, time_range, now=now, settings=settings)

        assert metrics.pace.pages_per_day == 0.29
        assert metrics.pace.pages_per_week == 2.0


class TestEngagementMetrics:
    """Tests for attendance, homework and effort."""

    def test_attendance_breakdown(self, context, now, settings):
        metrics = calculate_student_metrics("s1", context, now=now, settings=settings)

        assert metrics.attendance_rate == 50.0
        assert metrics.late_arrivals_count == 1
        assert metrics.absences.excused == 1
        assert metrics.absences.unexcused == 0
        assert metrics.absences.total == 1
        assert metrics.consecutive_absence_streak == 1

    def test_homework_completion(self, context, now, settings):
        metrics = calculate_student_metrics("s1", context, now=now, settings=settings)
        assert metrics.homework_completion_rate == 50.0

    def test_consistency_only_counts_recent_progress(self, context, now, settings):
        metrics = calculate_student_metrics("s1", context, now=now, settings=settings)
        # Feb 12 and Feb 19 out of 21 expected days
        assert metrics.practice_consistency_score == 10

    def test_teacher_effort_rating(self, context, now, settings):
        metrics = calculate_student_metrics("s1", context, now=now, settings=settings)
        # 11 interactions over floor(365 / 7 * 5) expected
        assert metrics.teacher_effort_rating == 4.23


class TestRiskMetrics:
    """Tests for risk, burnout and drop-off."""

    def test_stagnant_student_is_at_risk(self, context, now, settings):
        metrics = calculate_student_metrics("s1", context, now=now, settings=settings)

        assert metrics.at_risk_score >= settings.at_risk_threshold
        assert metrics.burnout_warning is True
        # Low engagement only, pace was flat over the last two weeks
        assert metrics.drop_off_probability == metrics.at_risk_score + 10

    def test_declining_pace_raises_drop_off(self, make_context, now, settings):
        context = make_context(
            students=[StudentRecord(id="s1", enrollment_date=date(2025, 2, 12))],
            progress=[
                ProgressRecord(
                    id="p1",
                    student_id="s1",
                    pages_memorized=10,
                    created_at=now - timedelta(days=10),
                ),
                ProgressRecord(
                    id="p2",
                    student_id="s1",
                    pages_memorized=2,
                    created_at=now - timedelta(days=2),
                ),
            ],
        )

        metrics = calculate_student_metrics("s1", context, now=now, settings=settings)

        assert metrics.stagnation.is_stagnant is False
        assert metrics.burnout_warning is True
        assert metrics.at_risk_score == 57
        assert metrics.drop_off_probability == metrics.at_risk_score + 25

    def test_summary_row(self, context, now, settings):
        metrics = calculate_student_metrics("s1", context, now=now, settings=settings)
        row = metrics.to_summary_row(now.date())

        assert row["date"] == now.date()
        assert row["student_id"] == "s1"
        assert row["student_name"] == "Ahmad"
        assert row["memorization_pace"] == 3.5
        assert row["is_stagnant"] is True
        assert row["days_since_progress"] == 21


class TestBatch:
    """Tests for batch calculation."""

    def test_unknown_student_raises(self, context, now, settings):
        with pytest.raises(EntityNotFoundError) as exc_info:
            calculate_student_metrics("missing", context, now=now, settings=settings)
        assert "missing" in str(exc_info.value)

    def test_only_active_students(self, make_context, now, settings):
        context = make_context(
            students=[
                StudentRecord(id="s1", status="Active"),
                StudentRecord(id="s2", status="inactive"),
                StudentRecord(id="s3", status=None),
            ]
        )

        results = calculate_all_student_metrics(context, now=now, settings=settings)

        assert [m.student_id for m in results] == ["s1"]
