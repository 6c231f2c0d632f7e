# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Operational tables read by the context loader.

These tables are owned by the institution management application. The
analytics engine only reads them; create_all_tables() creates them for
local runs and tests.
"""

import datetime as dt
from typing import Any

from sqlalchemy import JSON, Date, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from hifz_analytics.infrastructure.database.models.base import Base


class StudentRow(Base):
    """A student enrolled in the institution."""

    __tablename__ = "students"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(255))
    section: Mapped[str | None] = mapped_column(String(100))
    status: Mapped[str | None] = mapped_column(String(50), default="active")
    enrollment_date: Mapped[dt.date | None] = mapped_column(Date)
    status_start_date: Mapped[dt.date | None] = mapped_column(Date)
    current_juz: Mapped[int | None] = mapped_column(Integer)
    completed_juz: Mapped[list[int] | None] = mapped_column(JSON)
    institution_id: Mapped[str | None] = mapped_column(String(64), index=True)


class ProfileRow(Base):
    """A staff profile. Rows with role 'teacher' are analysed."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(255))
    section: Mapped[str | None] = mapped_column(String(100))
    role: Mapped[str | None] = mapped_column(String(50))
    institution_id: Mapped[str | None] = mapped_column(String(64), index=True)


class ClassRow(Base):
    """A class with its roster and weekly schedule."""

    __tablename__ = "classes"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    name: Mapped[str | None] = mapped_column(String(255))
    capacity: Mapped[int | None] = mapped_column(Integer)
    current_students: Mapped[list[str] | None] = mapped_column(JSON)
    teacher_ids: Mapped[list[str] | None] = mapped_column(JSON)
    time_slots: Mapped[list[dict[str, Any]] | None] = mapped_column(JSON)
    days_of_week: Mapped[list[str] | None] = mapped_column(JSON)
    status: Mapped[str | None] = mapped_column(String(50))
    institution_id: Mapped[str | None] = mapped_column(String(64), index=True)


class ProgressRow(Base):
    """A memorization progress entry."""

    __tablename__ = "progress"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    student_id: Mapped[str] = mapped_column(String(64), index=True)
    teacher_id: Mapped[str | None] = mapped_column(String(64))
    contributor_id: Mapped[str | None] = mapped_column(String(64))
    pages_memorized: Mapped[float | None] = mapped_column(Float)
    mistake_count: Mapped[int | None] = mapped_column(Integer)
    memorization_quality: Mapped[str | None] = mapped_column(String(50))
    created_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True))
    date: Mapped[dt.date | None] = mapped_column(Date)


class AttendanceRow(Base):
    """An attendance mark for one student on one day."""

    __tablename__ = "attendance"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    student_id: Mapped[str] = mapped_column(String(64), index=True)
    teacher_id: Mapped[str | None] = mapped_column(String(64))
    class_id: Mapped[str | None] = mapped_column(String(64))
    status: Mapped[str | None] = mapped_column(String(50))
    notes: Mapped[str | None] = mapped_column(Text)
    late_reason: Mapped[str | None] = mapped_column(Text)
    date: Mapped[dt.date | None] = mapped_column(Date, index=True)
    created_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True))


class AssignmentRow(Base):
    """A homework assignment."""

    __tablename__ = "teacher_assignments"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    teacher_id: Mapped[str | None] = mapped_column(String(64), index=True)
    student_ids: Mapped[list[str] | None] = mapped_column(JSON)
    created_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True))


class SubmissionRow(Base):
    """A student's submission for an assignment."""

    __tablename__ = "teacher_assignment_submissions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    assignment_id: Mapped[str] = mapped_column(String(64), index=True)
    student_id: Mapped[str] = mapped_column(String(64))
    status: Mapped[str | None] = mapped_column(String(50))
    submitted_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True))
    graded_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[dt.datetime | None] = mapped_column(DateTime(timezone=True))


class JuzRevisionRow(Base):
    """A long-cycle Juz revision (dhor)."""

    __tablename__ = "juz_revisions"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    student_id: Mapped[str] = mapped_column(String(64), index=True)
    juz_number: Mapped[int | None] = mapped_column(Integer)
    revision_date: Mapped[dt.date] = mapped_column(Date)
    memorization_quality: Mapped[str | None] = mapped_column(String(50))


class SabaqParaRow(Base):
    """A sabaq para review entry."""

    __tablename__ = "sabaq_para"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    student_id: Mapped[str] = mapped_column(String(64), index=True)
    juz_number: Mapped[int | None] = mapped_column(Integer)
    revision_date: Mapped[dt.date] = mapped_column(Date)
    quality_rating: Mapped[str | None] = mapped_column(String(50))
