# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy implementation of the analytics ContextLoader.

Loads every source table in one session and validates the rows into
the immutable AnalyticsDataContext:
- students, profiles and classes are filtered by institution
- progress and attendance are filtered to the window, by their primary
  timestamp with the secondary one as fallback
- assignments are filtered by created_at, submissions follow their
  assignments
- juz revisions and sabaq para are filtered by revision_date

Example:
    loader = SqlAlchemyContextLoader(create_sessionmaker(engine))
    context = await loader.load(time_range, institution_id="inst-1")
"""

import logging
from collections.abc import Sequence
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError
from sqlalchemy import and_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hifz_analytics.domains.analytics.context import (
    AnalyticsDataContext,
    AssignmentRecord,
    AttendanceRecord,
    ClassRecord,
    JuzRevisionRecord,
    ProgressRecord,
    SabaqParaRecord,
    StudentRecord,
    SubmissionRecord,
    TeacherRecord,
    TimeRange,
)
from hifz_analytics.domains.analytics.exceptions import ContextLoadError
from hifz_analytics.infrastructure.database.models import (
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

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=BaseModel)


def _validate(record_type: type[R], rows: Sequence[Any]) -> tuple[R, ...]:
    return tuple(record_type.model_validate(row) for row in rows)


class SqlAlchemyContextLoader:
    """Reads one snapshot of the operational tables per call.

    Attributes:
        session_factory: Sessionmaker bound to the operational database.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def load(
        self,
        time_range: TimeRange,
        institution_id: str | None = None,
    ) -> AnalyticsDataContext:
        """Load the snapshot for a window and institution scope.

        Args:
            time_range: Window for time-stamped records.
            institution_id: Institution scope, None for all.

        Returns:
            The validated, read-only data context.

        Raises:
            ContextLoadError: If a query fails or a row cannot be validated.
        """
        try:
            async with self.session_factory() as session:
                context = await self._load(session, time_range, institution_id)
        except SQLAlchemyError as e:
            raise ContextLoadError("Failed to query analytics source tables", e) from e
        except ValidationError as e:
            raise ContextLoadError("Invalid row in analytics source tables", e) from e

        logger.debug(
            "Loaded analytics context: students=%d, teachers=%d, classes=%d, progress=%d",
            len(context.students),
            len(context.teachers),
            len(context.classes),
            len(context.progress),
        )
        return context

    async def _load(
        self,
        session: AsyncSession,
        time_range: TimeRange,
        institution_id: str | None,
    ) -> AnalyticsDataContext:
        start, end = time_range.start, time_range.end
        start_date, end_date = start.date(), end.date()

        students_stmt = select(StudentRow)
        teachers_stmt = select(ProfileRow)
        classes_stmt = select(ClassRow)
        if institution_id is not None:
            students_stmt = students_stmt.where(StudentRow.institution_id == institution_id)
            teachers_stmt = teachers_stmt.where(ProfileRow.institution_id == institution_id)
            classes_stmt = classes_stmt.where(ClassRow.institution_id == institution_id)

        students = _validate(StudentRecord, (await session.scalars(students_stmt)).all())
        teachers = _validate(TeacherRecord, (await session.scalars(teachers_stmt)).all())
        classes = _validate(ClassRecord, (await session.scalars(classes_stmt)).all())
        student_ids = [s.id for s in students]

        progress_stmt = select(ProgressRow).where(
            ProgressRow.student_id.in_(student_ids),
            or_(
                ProgressRow.created_at.between(start, end),
                and_(
                    ProgressRow.created_at.is_(None),
                    ProgressRow.date.between(start_date, end_date),
                ),
            ),
        )
        attendance_stmt = select(AttendanceRow).where(
            AttendanceRow.student_id.in_(student_ids),
            or_(
                AttendanceRow.date.between(start_date, end_date),
                and_(
                    AttendanceRow.date.is_(None),
                    AttendanceRow.created_at.between(start, end),
                ),
            ),
        )
        assignments_stmt = select(AssignmentRow).where(
            AssignmentRow.created_at.between(start, end)
        )
        juz_stmt = select(JuzRevisionRow).where(
            JuzRevisionRow.student_id.in_(student_ids),
            JuzRevisionRow.revision_date.between(start_date, end_date),
        )
        sabaq_stmt = select(SabaqParaRow).where(
            SabaqParaRow.student_id.in_(student_ids),
            SabaqParaRow.revision_date.between(start_date, end_date),
        )

        progress = _validate(ProgressRecord, (await session.scalars(progress_stmt)).all())
        attendance = _validate(AttendanceRecord, (await session.scalars(attendance_stmt)).all())
        assignments = _validate(
            AssignmentRecord, (await session.scalars(assignments_stmt)).all()
        )

        assignment_ids = [a.id for a in assignments]
        submissions_stmt = select(SubmissionRow).where(
            SubmissionRow.assignment_id.in_(assignment_ids)
        )
        submissions = _validate(
            SubmissionRecord, (await session.scalars(submissions_stmt)).all()
        )
        juz_revisions = _validate(JuzRevisionRecord, (await session.scalars(juz_stmt)).all())
        sabaq_para = _validate(SabaqParaRecord, (await session.scalars(sabaq_stmt)).all())

        return AnalyticsDataContext(
            students=students,
            teachers=teachers,
            classes=classes,
            progress=progress,
            attendance=attendance,
            assignments=assignments,
            submissions=submissions,
            juz_revisions=juz_revisions,
            sabaq_para=sabaq_para,
        )
