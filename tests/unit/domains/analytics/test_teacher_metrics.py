# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the teacher metrics calculator."""

from datetime import date, datetime, timedelta

import pytest

from hifz_analytics.domains.analytics.context import (
    AssignmentRecord,
    AttendanceRecord,
    ClassRecord,
    ProgressRecord,
    StudentRecord,
    SubmissionRecord,
    TeacherRecord,
    TimeRange,
    TimeSlot,
)
from hifz_analytics.domains.analytics.exceptions import EntityNotFoundError
from hifz_analytics.domains.analytics.teacher_metrics import (
    calculate_all_teacher_metrics,
    calculate_teacher_metrics,
    hours_between,
    teaches_class,
)


@pytest.fixture
def week(now: datetime) -> TimeRange:
    return TimeRange(now - timedelta(days=7), now)


@pytest.fixture
def context(make_context, now: datetime):
    """A teacher with three two-hour slots a week and two students."""
    morning = TimeSlot(
        start_time="08:00",
        end_time="10:00",
        days=["monday", "wednesday", "friday"],
        teacher_ids=["t1"],
    )
    submitted = now - timedelta(days=5)
    return make_context(
        students=[
            StudentRecord(id="s1", enrollment_date=date(2024, 9, 1)),
            StudentRecord(id="s2", status="inactive", enrollment_date=date(2024, 9, 1)),
        ],
        teachers=[
            TeacherRecord(id="t1", name="Ustadh Bilal"),
            TeacherRecord(id="t2", name="Office", role="admin"),
        ],
        classes=[
            ClassRecord(
                id="c1",
                name="Halaqa A",
                teacher_ids=["t1"],
                current_students=["s1", "s2"],
                time_slots=[morning],
            ),
        ],
        progress=[
            ProgressRecord(
                id="p1",
                student_id="s1",
                teacher_id="t1",
                pages_memorized=5,
                created_at=now - timedelta(days=2),
            ),
            ProgressRecord(
                id="p2",
                student_id="s1",
                teacher_id="t1",
                pages_memorized=5,
                created_at=now - timedelta(days=20),
            ),
        ],
        attendance=[
            AttendanceRecord(
                id="a1",
                student_id="s1",
                teacher_id="t1",
                status="present",
                date=(now - timedelta(days=1)).date(),
            ),
        ],
        assignments=[AssignmentRecord(id="h1", teacher_id="t1", student_ids=["s1"])],
        submissions=[
            SubmissionRecord(
                id="sub1",
                assignment_id="h1",
                student_id="s1",
                status="graded",
                submitted_at=submitted,
                graded_at=submitted + timedelta(hours=48),
            ),
        ],
    )


class TestHelpers:
    """Tests for slot helpers."""

    def test_hours_between(self):
        assert hours_between("08:00", "09:30") == 1.5
        assert hours_between("10:00", "09:00") == 0.0

    def test_hours_between_rejects_malformed_time(self):
        with pytest.raises(ValueError):
            hours_between("eight", "09:00")

    def test_teaches_class_through_slot(self):
        slot = TimeSlot(start_time="08:00", end_time="09:00", teacher_ids=["t9"])
        class_record = ClassRecord(id="c1", time_slots=[slot])

        assert teaches_class("t9", class_record) is True
        assert teaches_class("t1", class_record) is False


class TestSessions:
    """Tests for scheduled and conducted session counts."""

    def test_sessions_inside_window(self, context, now, settings, week):
        metrics = calculate_teacher_metrics("t1", context, week, now=now, settings=settings)

        assert metrics.sessions.scheduled == 3
        assert metrics.sessions.conducted == 2
        assert metrics.sessions.ratio == 66.67
        assert metrics.teacher_attendance_rate == 66.67
        assert metrics.missed_or_late_sessions == 1
        assert metrics.cancellation_frequency == 1.0

    def test_teaching_hours(self, context, now, settings, week):
        metrics = calculate_teacher_metrics("t1", context, week, now=now, settings=settings)
        assert metrics.active_teaching_hours_per_week == 6.0

    def test_fallback_hours_without_slots(self, make_context, now, settings, week):
        context = make_context(
            teachers=[TeacherRecord(id="t1")],
            classes=[ClassRecord(id="c1", teacher_ids=["t1"], days_of_week=["mon", "tue"])],
        )

        metrics = calculate_teacher_metrics("t1", context, week, now=now, settings=settings)

        assert metrics.active_teaching_hours_per_week == 3.0
        assert metrics.sessions.scheduled == 0
        assert metrics.missed_or_late_sessions == 0


class TestStudentOutcomes:
    """Tests for roster-derived indicators."""

    def test_roster_and_retention(self, context, now, settings, week):
        metrics = calculate_teacher_metrics("t1", context, week, now=now, settings=settings)

        assert metrics.student_count == 2
        assert metrics.student_to_teacher_ratio == 2.0
        assert metrics.student_retention_rate == 50.0

    def test_precomputed_metrics_limit_the_roster(self, context, now, settings, week):
        metrics = calculate_teacher_metrics(
            "t1", context, week, now=now, settings=settings, student_metrics={}
        )

        assert metrics.average_student_pace == 0.0
        assert metrics.students_meeting_weekly_target == 0.0
        assert metrics.at_risk_students_count == 0

    def test_grading_timeliness(self, context, now, settings, week):
        metrics = calculate_teacher_metrics("t1", context, week, now=now, settings=settings)
        # 48h turnaround, 24h over the grace period
        assert metrics.grading_timeliness == 52

    def test_placeholders(self, context, now, settings, week):
        metrics = calculate_teacher_metrics("t1", context, week, now=now, settings=settings)

        assert metrics.admin_evaluation_score == 75.0
        assert metrics.parent_satisfaction_score is None

    def test_summary_row(self, context, now, settings, week):
        metrics = calculate_teacher_metrics("t1", context, week, now=now, settings=settings)
        row = metrics.to_summary_row(date(2025, 3, 10))

        assert row["week_start"] == date(2025, 3, 10)
        assert row["teacher_name"] == "Ustadh Bilal"
        assert row["session_reliability"] == 66.67


class TestBatch:
    """Tests for batch calculation."""

    def test_unknown_teacher_raises(self, context, now, settings):
        with pytest.raises(EntityNotFoundError):
            calculate_teacher_metrics("missing", context, now=now, settings=settings)

    def test_only_teachers_are_included(self, context, now, settings, week):
        results = calculate_all_teacher_metrics(context, week, now=now, settings=settings)
        assert [m.teacher_id for m in results] == ["t1"]

    def test_malformed_slot_is_skipped(self, make_context, now, settings, week):
        broken = TimeSlot(start_time="soon", end_time="10:00", days=["mon"], teacher_ids=["t1"])
        context = make_context(
            teachers=[TeacherRecord(id="t1"), TeacherRecord(id="t2")],
            classes=[ClassRecord(id="c1", teacher_ids=["t1"], time_slots=[broken])],
        )

        results = calculate_all_teacher_metrics(context, week, now=now, settings=settings)

        assert [m.teacher_id for m in results] == ["t2"]
