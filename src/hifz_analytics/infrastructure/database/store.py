# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""SQLAlchemy implementation of the analytics SummaryStore.

Summary writes are INSERT ... ON CONFLICT DO UPDATE statements keyed by
each table's unique constraint, so re-running a day overwrites the same
rows. PostgreSQL and SQLite are supported.

Each table is written in its own transaction. Alert reconciliation
(delete, refresh, insert) runs in a single transaction.
"""

import logging
from collections.abc import Sequence
from datetime import date
from typing import Any

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hifz_analytics.domains.analytics.alerts import AnalyticsAlert
from hifz_analytics.domains.analytics.exceptions import StorageWriteError
from hifz_analytics.domains.analytics.store import (
    AlertReconciliation,
    plan_alert_reconciliation,
)
from hifz_analytics.infrastructure.database.models import (
    AnalyticsAlertRow,
    AnalyticsSummaryRow,
    Base,
    ClassMetricsSummaryRow,
    StudentMetricsSummaryRow,
    TeacherMetricsSummaryRow,
)

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _alert_values(row: dict[str, Any]) -> dict[str, Any]:
    """Map an alert payload to ORM attribute names."""
    values = dict(row)
    if "metadata" in values:
        values["alert_metadata"] = values.pop("metadata")
    return values


class SqlAlchemySummaryStore:
    """Writes summaries and alerts through an async sessionmaker.

    Attributes:
        session_factory: Sessionmaker bound to the analytics database.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self.session_factory = session_factory

    async def _upsert(
        self,
        model: type[Base],
        rows: Sequence[dict[str, Any]],
        key_columns: tuple[str, ...],
    ) -> int:
        table = model.__tablename__
        if not rows:
            return 0

        try:
            async with self.session_factory() as session, session.begin():
                dialect = session.get_bind().dialect.name
                dialect_insert = _UPSERT_DIALECTS.get(dialect)
                if dialect_insert is None:
                    raise StorageWriteError(table, f"Upsert not supported on dialect {dialect}")

                stmt = dialect_insert(model).values([dict(r) for r in rows])
                update_columns = {
                    c: stmt.excluded[c] for c in rows[0] if c not in key_columns
                }
                update_columns["updated_at"] = func.now()
                stmt = stmt.on_conflict_do_update(
                    index_elements=list(key_columns),
                    set_=update_columns,
                )
                await session.execute(stmt)
        except SQLAlchemyError as e:
            raise StorageWriteError(table, original_error=e) from e

        logger.debug("Upserted %d rows into %s", len(rows), table)
        return len(rows)

    async def upsert_analytics_summary(self, row: dict[str, Any]) -> None:
        await self._upsert(AnalyticsSummaryRow, [row], ("date", "institution_id"))

    async def upsert_student_summaries(self, rows: Sequence[dict[str, Any]]) -> int:
        return await self._upsert(StudentMetricsSummaryRow, rows, ("date", "student_id"))

    async def upsert_teacher_summaries(self, rows: Sequence[dict[str, Any]]) -> int:
        return await self._upsert(TeacherMetricsSummaryRow, rows, ("week_start", "teacher_id"))

    async def upsert_class_summaries(self, rows: Sequence[dict[str, Any]]) -> int:
        return await self._upsert(ClassMetricsSummaryRow, rows, ("week_start", "class_id"))

    async def reconcile_alerts(
        self,
        alerts: Sequence[AnalyticsAlert],
        run_date: date,
    ) -> AlertReconciliation:
        """Reconcile stored alerts against the fresh set in one transaction.

        Raises:
            StorageWriteError: If any statement fails. Nothing is changed.
        """
        table = AnalyticsAlertRow.__tablename__
        try:
            async with self.session_factory() as session, session.begin():
                result = await session.execute(
                    select(
                        AnalyticsAlertRow.id,
                        AnalyticsAlertRow.type,
                        AnalyticsAlertRow.entity_id,
                        AnalyticsAlertRow.status,
                    )
                )
                stored = result.mappings().all()
                plan = plan_alert_reconciliation(stored, alerts, run_date)

                if plan.delete_ids:
                    await session.execute(
                        delete(AnalyticsAlertRow).where(
                            AnalyticsAlertRow.id.in_(plan.delete_ids)
                        )
                    )
                if plan.updates:
                    await session.execute(
                        update(AnalyticsAlertRow),
                        [
                            {"id": alert_id, **_alert_values(changes)}
                            for alert_id, changes in plan.updates.items()
                        ],
                    )
                if plan.inserts:
                    await session.execute(
                        insert(AnalyticsAlertRow),
                        [_alert_values(row) for row in plan.inserts],
                    )
        except SQLAlchemyError as e:
            raise StorageWriteError(table, original_error=e) from e

        return plan.summary()
