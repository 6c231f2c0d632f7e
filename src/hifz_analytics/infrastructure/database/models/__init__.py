# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""ORM models for the operational and summary tables."""

from hifz_analytics.infrastructure.database.models.base import Base, TimestampMixin
from hifz_analytics.infrastructure.database.models.source import (
    AssignmentRow,
    AttendanceRow,
    ClassRow,
    JuzRevisionRow,
    ProfileRow,
    ProgressRow,
    SabaqParaRow,
    StudentRow,
    SubmissionRow,
)
from hifz_analytics.infrastructure.database.models.summary import (
    AnalyticsAlertRow,
    AnalyticsSummaryRow,
    ClassMetricsSummaryRow,
    StudentMetricsSummaryRow,
    TeacherMetricsSummaryRow,
)

__all__ = [
    "Base",
    "TimestampMixin",
    # Source tables
    "StudentRow",
    "ProfileRow",
    "ClassRow",
    "ProgressRow",
    "AttendanceRow",
    "AssignmentRow",
    "SubmissionRow",
    "JuzRevisionRow",
    "SabaqParaRow",
    # Summary tables
    "AnalyticsSummaryRow",
    "StudentMetricsSummaryRow",
    "TeacherMetricsSummaryRow",
    "ClassMetricsSummaryRow",
    "AnalyticsAlertRow",
]
