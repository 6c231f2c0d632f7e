# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Summary and alert tables written by the daily aggregation.

Each summary table carries a unique constraint on its period and
entity key so the store can upsert with ON CONFLICT.
"""

import datetime as dt
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from hifz_analytics.infrastructure.database.models.base import Base, TimestampMixin


class AnalyticsSummaryRow(Base, TimestampMixin):
    """Daily institution-wide dashboard metrics.

    institution_id is stored as an empty string for runs over all
    institutions so the unique key never contains NULL.
    """

    __tablename__ = "analytics_summary"
    __table_args__ = (
        UniqueConstraint("date", "institution_id", name="uq_analytics_summary_date_institution"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    institution_id: Mapped[str] = mapped_column(String(64), nullable=False, default="")

    total_active_students: Mapped[int] = mapped_column(Integer, default=0)
    students_on_track_count: Mapped[int] = mapped_column(Integer, default=0)
    students_on_track_percentage: Mapped[float] = mapped_column(Float, default=0.0)
    at_risk_students_count: Mapped[int] = mapped_column(Integer, default=0)
    at_risk_students_percentage: Mapped[float] = mapped_column(Float, default=0.0)
    overall_attendance_rate: Mapped[float] = mapped_column(Float, default=0.0)
    overall_memorization_velocity: Mapped[float] = mapped_column(Float, default=0.0)
    total_active_teachers: Mapped[int] = mapped_column(Integer, default=0)
    teachers_with_at_risk_count: Mapped[int] = mapped_column(Integer, default=0)
    teachers_with_at_risk_percentage: Mapped[float] = mapped_column(Float, default=0.0)
    avg_session_reliability: Mapped[float] = mapped_column(Float, default=0.0)
    student_retention_30day: Mapped[float] = mapped_column(Float, default=0.0)

    program_velocity: Mapped[float | None] = mapped_column(Float)
    program_on_track_percentage: Mapped[float | None] = mapped_column(Float)
    program_behind_percentage: Mapped[float | None] = mapped_column(Float)
    program_average_accuracy: Mapped[float | None] = mapped_column(Float)
    program_monthly_retention: Mapped[float | None] = mapped_column(Float)
    enrollments: Mapped[int | None] = mapped_column(Integer)
    withdrawals: Mapped[int | None] = mapped_column(Integer)
    net_enrollment_change: Mapped[int | None] = mapped_column(Integer)
    average_student_lifetime_days: Mapped[float | None] = mapped_column(Float)
    teacher_turnover_rate: Mapped[float | None] = mapped_column(Float)
    teacher_utilization_rate: Mapped[float | None] = mapped_column(Float)
    sessions_delivered: Mapped[int | None] = mapped_column(Integer)
    sessions_planned: Mapped[int | None] = mapped_column(Integer)
    sessions_delivered_ratio: Mapped[float | None] = mapped_column(Float)


class StudentMetricsSummaryRow(Base, TimestampMixin):
    """Daily per-student metrics."""

    __tablename__ = "student_metrics_summary"
    __table_args__ = (
        UniqueConstraint("date", "student_id", name="uq_student_metrics_summary_date_student"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    student_id: Mapped[str] = mapped_column(String(64), nullable=False)
    student_name: Mapped[str | None] = mapped_column(String(255))
    at_risk_score: Mapped[float] = mapped_column(Float, default=0.0)
    memorization_pace: Mapped[float] = mapped_column(Float, default=0.0)
    attendance_rate: Mapped[float] = mapped_column(Float, default=0.0)
    is_stagnant: Mapped[bool] = mapped_column(Boolean, default=False)
    days_since_progress: Mapped[int] = mapped_column(Integer, default=0)


class TeacherMetricsSummaryRow(Base, TimestampMixin):
    """Weekly per-teacher metrics."""

    __tablename__ = "teacher_metrics_summary"
    __table_args__ = (
        UniqueConstraint(
            "week_start", "teacher_id", name="uq_teacher_metrics_summary_week_teacher"
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    week_start: Mapped[dt.date] = mapped_column(Date, nullable=False)
    teacher_id: Mapped[str] = mapped_column(String(64), nullable=False)
    teacher_name: Mapped[str | None] = mapped_column(String(255))
    student_count: Mapped[int] = mapped_column(Integer, default=0)
    avg_student_pace: Mapped[float] = mapped_column(Float, default=0.0)
    at_risk_students_count: Mapped[int] = mapped_column(Integer, default=0)
    session_reliability: Mapped[float] = mapped_column(Float, default=0.0)


class ClassMetricsSummaryRow(Base, TimestampMixin):
    """Weekly per-class metrics."""

    __tablename__ = "class_metrics_summary"
    __table_args__ = (
        UniqueConstraint("week_start", "class_id", name="uq_class_metrics_summary_week_class"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    week_start: Mapped[dt.date] = mapped_column(Date, nullable=False)
    class_id: Mapped[str] = mapped_column(String(64), nullable=False)
    class_name: Mapped[str | None] = mapped_column(String(255))
    student_count: Mapped[int] = mapped_column(Integer, default=0)
    capacity: Mapped[int] = mapped_column(Integer, default=0)
    capacity_utilization: Mapped[float] = mapped_column(Float, default=0.0)
    avg_progress: Mapped[float] = mapped_column(Float, default=0.0)
    attendance_rate: Mapped[float] = mapped_column(Float, default=0.0)
    dropoff_rate: Mapped[float] = mapped_column(Float, default=0.0)


class AnalyticsAlertRow(Base):
    """A threshold alert raised by the daily run.

    created_at is the instant the alert was first raised and is kept
    across refreshes.
    """

    __tablename__ = "analytics_alerts"
    __table_args__ = (Index("ix_analytics_alerts_type_entity", "type", "entity_id"),)

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    date: Mapped[dt.date] = mapped_column(Date, nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="active", index=True)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_name: Mapped[str | None] = mapped_column(String(255))
    entity_type: Mapped[str] = mapped_column(String(20), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    threshold: Mapped[float] = mapped_column(Float, nullable=False)
    current_value: Mapped[float] = mapped_column(Float, nullable=False)
    action_recommendation: Mapped[str | None] = mapped_column(Text)
    alert_metadata: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
    acknowledged_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True))
    resolved_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True))
