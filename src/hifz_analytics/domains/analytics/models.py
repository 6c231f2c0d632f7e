# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Computed metric types.

Metrics are recomputed from the snapshot on every run and are never
persisted as live objects. Only the fields returned by to_summary_row()
reach the summary tables.
"""

from dataclasses import dataclass
from datetime import date
from typing import Any


@dataclass(frozen=True)
class PagesMemorized:
    """Pages memorized over three horizons."""

    lifetime: float
    weekly: float
    monthly: float


@dataclass(frozen=True)
class MemorizationPace:
    """Average pace since enrollment."""

    pages_per_day: float
    pages_per_week: float


@dataclass(frozen=True)
class JuzCompletion:
    """Completion percentages for the current Juz and the whole Hifz goal.

    current_juz is a coarse placeholder: 50 whenever a valid Juz is set.
    """

    current_juz: float
    total_hifz_goal: float


@dataclass(frozen=True)
class StagnationResult:
    """Outcome of a stagnation check."""

    is_stagnant: bool
    days_since_last_progress: int
    threshold_days: int = 7


@dataclass(frozen=True)
class AbsenceBreakdown:
    """Absences split by the excused heuristic."""

    excused: int
    unexcused: int
    total: int


@dataclass(frozen=True)
class SessionCounts:
    """Conducted against scheduled sessions.

    Both counts are proxies: conducted sessions are progress entries plus
    attendance marks, scheduled sessions come from the slot geometry.
    """

    conducted: int
    scheduled: int
    ratio: float


@dataclass(frozen=True)
class OnTrackSplit:
    """Share of students at or above the weekly target, and below it."""

    on_track: float
    behind: float


@dataclass(frozen=True)
class EnrollmentChange:
    """Enrollments and withdrawals over the trailing month."""

    enrollments: int
    withdrawals: int

    @property
    def net_change(self) -> int:
        """Enrollments minus withdrawals."""
        return self.enrollments - self.withdrawals


@dataclass(frozen=True)
class StudentMetrics:
    """Per-student indicators for one run.

    Attributes:
        student_id: Student identifier.
        student_name: Display name.
        section: Section label, if any.
        pages: Pages memorized (lifetime, weekly, monthly).
        pace: Pages per day and per week since enrollment.
        active_revision_load: Juz revisions within the trailing 90 days.
        revision_retention_score: 0-100 score from recent revision quality.
        accuracy_rate: 0-100, inverse of mistake density during tasmi.
        completion: Juz completion percentages.
        stagnation: Stagnation flag and days since last progress.
        attendance_rate: Present marks as a percentage of all marks.
        late_arrivals_count: Attendance marks with status late.
        absences: Excused and unexcused absences.
        consecutive_absence_streak: Longest run of absences.
        homework_completion_rate: Submitted or graded over assigned.
        practice_consistency_score: 0-100 regularity of progress entries.
        teacher_effort_rating: Teacher interactions over the expected count.
        at_risk_score: 0-100 composite risk.
        burnout_warning: Stagnant, inconsistent or declining pace.
        drop_off_probability: 0-100 likelihood of leaving.
    """

    student_id: str
    student_name: str
    section: str | None
    pages: PagesMemorized
    pace: MemorizationPace
    active_revision_load: int
    revision_retention_score: int
    accuracy_rate: float
    completion: JuzCompletion
    stagnation: StagnationResult
    attendance_rate: float
    late_arrivals_count: int
    absences: AbsenceBreakdown
    consecutive_absence_streak: int
    homework_completion_rate: float
    practice_consistency_score: int
    teacher_effort_rating: float
    at_risk_score: int
    burnout_warning: bool
    drop_off_probability: int

    def to_summary_row(self, run_date: date) -> dict[str, Any]:
        """Build the student_metrics_summary payload keyed by (date, student_id)."""
        return {
            "date": run_date,
            "student_id": self.student_id,
            "student_name": self.student_name,
            "at_risk_score": round(float(self.at_risk_score), 2),
            "memorization_pace": round(self.pace.pages_per_week, 2),
            "attendance_rate": round(self.attendance_rate, 2),
            "is_stagnant": self.stagnation.is_stagnant,
            "days_since_progress": self.stagnation.days_since_last_progress,
        }


@dataclass(frozen=True)
class TeacherMetrics:
    """Per-teacher indicators for one run.

    admin_evaluation_score and parent_satisfaction_score are placeholders
    until an external source exists.
    """

    teacher_id: str
    teacher_name: str
    section: str | None
    student_count: int
    active_teaching_hours_per_week: float
    student_to_teacher_ratio: float
    sessions: SessionCounts
    average_student_pace: float
    average_student_accuracy: float
    student_retention_rate: float
    students_meeting_weekly_target: float
    at_risk_students_count: int
    teacher_attendance_rate: float
    missed_or_late_sessions: int
    cancellation_frequency: float
    grading_timeliness: int
    admin_evaluation_score: float = 75.0
    parent_satisfaction_score: float | None = None

    def to_summary_row(self, week_start: date) -> dict[str, Any]:
        """Build the teacher_metrics_summary payload keyed by (week_start, teacher_id)."""
        return {
            "week_start": week_start,
            "teacher_id": self.teacher_id,
            "teacher_name": self.teacher_name,
            "student_count": self.student_count,
            "avg_student_pace": round(self.average_student_pace, 2),
            "at_risk_students_count": self.at_risk_students_count,
            "session_reliability": round(self.sessions.ratio, 2),
        }


@dataclass(frozen=True)
class ClassMetrics:
    """Per-class indicators for one run."""

    class_id: str
    class_name: str
    student_count: int
    capacity: int
    average_progress: float
    attendance_rate: float
    pace_variance: float
    capacity_utilization: float
    drop_off_rate: float

    def to_summary_row(self, week_start: date) -> dict[str, Any]:
        """Build the class_metrics_summary payload keyed by (week_start, class_id)."""
        return {
            "week_start": week_start,
            "class_id": self.class_id,
            "class_name": self.class_name,
            "student_count": self.student_count,
            "capacity": self.capacity,
            "capacity_utilization": round(self.capacity_utilization, 2),
            "avg_progress": round(self.average_progress, 2),
            "attendance_rate": round(self.attendance_rate, 2),
            "dropoff_rate": round(self.drop_off_rate, 2),
        }


@dataclass(frozen=True)
class ProgramMetrics:
    """Institution-wide indicators, computed once per run."""

    overall_velocity: float
    on_track: OnTrackSplit
    average_accuracy: float
    monthly_retention: float
    enrollment: EnrollmentChange
    average_student_lifetime_days: float
    teacher_turnover_rate: float
    teacher_utilization_rate: float
    sessions: SessionCounts

    def to_summary_row(self) -> dict[str, Any]:
        """Program columns folded into the daily analytics_summary row."""
        return {
            "program_velocity": self.overall_velocity,
            "program_on_track_percentage": self.on_track.on_track,
            "program_behind_percentage": self.on_track.behind,
            "program_average_accuracy": self.average_accuracy,
            "program_monthly_retention": self.monthly_retention,
            "enrollments": self.enrollment.enrollments,
            "withdrawals": self.enrollment.withdrawals,
            "net_enrollment_change": self.enrollment.net_change,
            "average_student_lifetime_days": self.average_student_lifetime_days,
            "teacher_turnover_rate": self.teacher_turnover_rate,
            "teacher_utilization_rate": self.teacher_utilization_rate,
            "sessions_delivered": self.sessions.conducted,
            "sessions_planned": self.sessions.scheduled,
            "sessions_delivered_ratio": self.sessions.ratio,
        }
