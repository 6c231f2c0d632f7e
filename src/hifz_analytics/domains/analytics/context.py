# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Typed, immutable data context shared by every calculator in a run.

Raw rows coming out of the store are validated and defaulted once here,
at the loader boundary, so the calculators never need defensive checks:
- timestamps become timezone-aware UTC datetimes
- missing collections become empty lists
- status and role strings are lower-cased

The AnalyticsDataContext is frozen. Every calculator in a run observes
the same point-in-time snapshot.
"""

import datetime as dt
from dataclasses import dataclass
from typing import Annotated, Any, Protocol

from pydantic import AfterValidator, BaseModel, BeforeValidator, ConfigDict, Field

from hifz_analytics.utils.datetime import as_utc_datetime, ensure_utc


def _empty_if_none(value: Any) -> Any:
    return [] if value is None else value


def _normalize_label(value: Any) -> Any:
    if isinstance(value, str):
        return value.strip().lower() or None
    return value


def _unknown_if_blank(value: Any) -> Any:
    return value or "Unknown"


UtcDateTime = Annotated[dt.datetime, AfterValidator(ensure_utc)]
IdList = Annotated[list[str], BeforeValidator(_empty_if_none)]
Label = Annotated[str | None, BeforeValidator(_normalize_label)]
DisplayName = Annotated[str, BeforeValidator(_unknown_if_blank)]


class _Record(BaseModel):
    """Base class for snapshot records."""

    model_config = ConfigDict(frozen=True, from_attributes=True, extra="ignore")


class StudentRecord(_Record):
    """A student enrolled in the institution."""

    id: str
    name: DisplayName = "Unknown"
    section: str | None = None
    status: Label = "active"
    enrollment_date: dt.date | None = None
    status_start_date: dt.date | None = None
    current_juz: int | None = None
    completed_juz: Annotated[list[int], BeforeValidator(_empty_if_none)] = Field(
        default_factory=list
    )
    institution_id: str | None = None

    @property
    def is_active(self) -> bool:
        """Check whether the student is currently active."""
        return self.status == "active"


class TeacherRecord(_Record):
    """A staff profile; only role 'teacher' is analysed."""

    id: str
    name: DisplayName = "Unknown"
    section: str | None = None
    role: Label = "teacher"
    institution_id: str | None = None


class TimeSlot(_Record):
    """A recurring teaching slot within a class schedule."""

    start_time: str | None = None
    end_time: str | None = None
    days: list[str] | None = None
    teacher_ids: IdList = Field(default_factory=list)


class ClassRecord(_Record):
    """A class (halaqa) with its roster and schedule."""

    id: str
    name: DisplayName = "Unknown"
    capacity: int | None = None
    current_students: IdList = Field(default_factory=list)
    teacher_ids: IdList = Field(default_factory=list)
    time_slots: list[TimeSlot] | None = None
    days_of_week: list[str] | None = None
    status: Label = None
    institution_id: str | None = None

    @property
    def is_active(self) -> bool:
        """A class without a status is treated as active."""
        return self.status is None or self.status == "active"


class ProgressRecord(_Record):
    """A memorization progress entry (sabaq) recorded by a teacher."""

    id: str
    student_id: str
    teacher_id: str | None = None
    contributor_id: str | None = None
    pages_memorized: Annotated[float, BeforeValidator(lambda v: v or 0.0), Field(ge=0)] = 0.0
    mistake_count: int | None = Field(default=None, ge=0)
    memorization_quality: str | None = None
    created_at: UtcDateTime | None = None
    date: dt.date | None = None

    @property
    def occurred_at(self) -> dt.datetime | None:
        """Timestamp used for windowing: created_at, falling back to date."""
        return self.created_at or as_utc_datetime(self.date)


class AttendanceRecord(_Record):
    """An attendance mark for one student on one day."""

    id: str
    student_id: str
    teacher_id: str | None = None
    class_id: str | None = None
    status: Label = None
    notes: str | None = None
    late_reason: str | None = None
    date: dt.date | None = None
    created_at: UtcDateTime | None = None

    @property
    def occurred_at(self) -> dt.datetime | None:
        """Timestamp used for windowing: the attendance date, falling back to created_at."""
        return as_utc_datetime(self.date) or self.created_at


class AssignmentRecord(_Record):
    """A homework assignment given by a teacher to a set of students."""

    id: str
    teacher_id: str | None = None
    student_ids: IdList = Field(default_factory=list)
    created_at: UtcDateTime | None = None


class SubmissionRecord(_Record):
    """A student's submission for an assignment."""

    id: str
    assignment_id: str
    student_id: str
    status: Label = None
    submitted_at: UtcDateTime | None = None
    graded_at: UtcDateTime | None = None
    created_at: UtcDateTime | None = None


class JuzRevisionRecord(_Record):
    """A dhor (long-cycle revision) of a Juz."""

    id: str
    student_id: str
    juz_number: int | None = None
    revision_date: dt.date
    memorization_quality: str | None = None


class SabaqParaRecord(_Record):
    """A sabaq para (recent review) entry."""

    id: str
    student_id: str
    juz_number: int | None = None
    revision_date: dt.date
    quality_rating: str | None = None


class AnalyticsDataContext(BaseModel):
    """Read-only snapshot of all raw records needed for one run."""

    model_config = ConfigDict(frozen=True)

    students: tuple[StudentRecord, ...] = ()
    teachers: tuple[TeacherRecord, ...] = ()
    classes: tuple[ClassRecord, ...] = ()
    progress: tuple[ProgressRecord, ...] = ()
    attendance: tuple[AttendanceRecord, ...] = ()
    assignments: tuple[AssignmentRecord, ...] = ()
    submissions: tuple[SubmissionRecord, ...] = ()
    juz_revisions: tuple[JuzRevisionRecord, ...] = ()
    sabaq_para: tuple[SabaqParaRecord, ...] = ()

    def get_student(self, student_id: str) -> StudentRecord | None:
        """Find a student by id."""
        return next((s for s in self.students if s.id == student_id), None)

    def get_teacher(self, teacher_id: str) -> TeacherRecord | None:
        """Find a teacher by id."""
        return next((t for t in self.teachers if t.id == teacher_id), None)

    def get_class(self, class_id: str) -> ClassRecord | None:
        """Find a class by id."""
        return next((c for c in self.classes if c.id == class_id), None)


@dataclass(frozen=True)
class TimeRange:
    """A closed time window [start, end] in UTC."""

    start: dt.datetime
    end: dt.datetime

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise ValueError(f"Time range start {self.start} is after end {self.end}")

    def contains(self, moment: dt.datetime | None) -> bool:
        """Check whether a moment falls within the window."""
        if moment is None:
            return False
        return self.start <= moment <= self.end


class ContextLoader(Protocol):
    """Fetches every raw record needed for a window in one call."""

    async def load(
        self,
        time_range: TimeRange,
        institution_id: str | None = None,
    ) -> AnalyticsDataContext:
        """Load a snapshot for the given window and institution scope.

        Raises:
            ContextLoadError: If the snapshot cannot be loaded.
        """
        ...
