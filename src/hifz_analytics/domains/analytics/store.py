# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Summary store contract and an in-memory implementation.

Every summary write is an upsert keyed by period and entity:
- analytics_summary: (date, institution_id)
- student_metrics_summary: (date, student_id)
- teacher_metrics_summary: (week_start, teacher_id)
- class_metrics_summary: (week_start, class_id)

Alerts are reconciled rather than upserted. Reconciliation keys on
(type, entity_id): a stored active alert is refreshed in place, a stored
acknowledged or resolved alert is left untouched and suppresses a new
row, and a stored active alert missing from the fresh set is deleted.
"""

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Protocol

from hifz_analytics.domains.analytics.alerts import AlertStatus, AnalyticsAlert

# Columns of a stored alert that a refresh never changes
_IMMUTABLE_ALERT_COLUMNS = ("id", "created_at", "status")


@dataclass(frozen=True)
class AlertReconciliation:
    """Counts reported by an alert reconciliation pass."""

    inserted: int = 0
    updated: int = 0
    preserved: int = 0
    deleted: int = 0

    def to_dict(self) -> dict[str, int]:
        """Convert to dictionary."""
        return {
            "inserted": self.inserted,
            "updated": self.updated,
            "preserved": self.preserved,
            "deleted": self.deleted,
        }


@dataclass
class AlertReconciliationPlan:
    """Row-level changes computed from stored alerts and a fresh alert set.

    Attributes:
        inserts: New rows to insert.
        updates: Stored id to the columns to overwrite.
        delete_ids: Stored active alerts no longer present.
        preserved: Fresh alerts suppressed by an acknowledged or resolved row.
    """

    inserts: list[dict[str, Any]] = field(default_factory=list)
    updates: dict[str, dict[str, Any]] = field(default_factory=dict)
    delete_ids: list[str] = field(default_factory=list)
    preserved: int = 0

    def summary(self) -> AlertReconciliation:
        """Counts for this plan."""
        return AlertReconciliation(
            inserted=len(self.inserts),
            updated=len(self.updates),
            preserved=self.preserved,
            deleted=len(self.delete_ids),
        )


def plan_alert_reconciliation(
    stored: Iterable[Mapping[str, Any]],
    alerts: Sequence[AnalyticsAlert],
    run_date: date,
) -> AlertReconciliationPlan:
    """Decide which alert rows to insert, refresh or delete.

    Args:
        stored: Existing alert rows with at least id, type, entity_id, status.
        alerts: Fresh alerts from this run.
        run_date: Date of the run.

    Returns:
        The reconciliation plan. Acknowledged and resolved rows never
        appear in updates or delete_ids.
    """
    active: dict[tuple[str, str], Mapping[str, Any]] = {}
    handled: set[tuple[str, str]] = set()
    for row in stored:
        key = (row["type"], row["entity_id"])
        if row["status"] == AlertStatus.ACTIVE.value:
            active.setdefault(key, row)
        else:
            handled.add(key)

    plan = AlertReconciliationPlan()
    fresh_keys: set[tuple[str, str]] = set()
    for alert in alerts:
        key = alert.dedup_key
        if key in fresh_keys:
            continue
        fresh_keys.add(key)

        row = alert.to_row(run_date)
        if key in active:
            plan.updates[active[key]["id"]] = {
                k: v for k, v in row.items() if k not in _IMMUTABLE_ALERT_COLUMNS
            }
        elif key in handled:
            plan.preserved += 1
        else:
            plan.inserts.append(row)

    plan.delete_ids = [
        row["id"]
        for row in stored
        if row["status"] == AlertStatus.ACTIVE.value
        and (row["type"], row["entity_id"]) not in fresh_keys
    ]
    return plan


class SummaryStore(Protocol):
    """Tabular store receiving the summaries of a run.

    Implementations raise StorageWriteError when a write fails.
    """

    async def upsert_analytics_summary(self, row: dict[str, Any]) -> None:
        """Upsert the daily program-level row.

        A run over every institution carries the empty institution id.
        """
        ...

    async def upsert_student_summaries(self, rows: Sequence[dict[str, Any]]) -> int:
        """Upsert daily student rows, returning the number written."""
        ...

    async def upsert_teacher_summaries(self, rows: Sequence[dict[str, Any]]) -> int:
        """Upsert weekly teacher rows, returning the number written."""
        ...

    async def upsert_class_summaries(self, rows: Sequence[dict[str, Any]]) -> int:
        """Upsert weekly class rows, returning the number written."""
        ...

    async def reconcile_alerts(
        self,
        alerts: Sequence[AnalyticsAlert],
        run_date: date,
    ) -> AlertReconciliation:
        """Reconcile stored alerts against the fresh alert set."""
        ...


class InMemorySummaryStore:
    """Dictionary-backed SummaryStore for tests and dry runs.

    Attributes:
        analytics_summary: Rows keyed by (date, institution_id).
        student_summaries: Rows keyed by (date, student_id).
        teacher_summaries: Rows keyed by (week_start, teacher_id).
        class_summaries: Rows keyed by (week_start, class_id).
        alerts: Rows keyed by alert id.
    """

    def __init__(self) -> None:
        """Initialize empty tables."""
        self.analytics_summary: dict[tuple[Any, ...], dict[str, Any]] = {}
        self.student_summaries: dict[tuple[Any, ...], dict[str, Any]] = {}
        self.teacher_summaries: dict[tuple[Any, ...], dict[str, Any]] = {}
        self.class_summaries: dict[tuple[Any, ...], dict[str, Any]] = {}
        self.alerts: dict[str, dict[str, Any]] = {}

    @staticmethod
    def _upsert(
        table: dict[tuple[Any, ...], dict[str, Any]],
        rows: Iterable[dict[str, Any]],
        key_columns: tuple[str, ...],
    ) -> int:
        count = 0
        for row in rows:
            table[tuple(row[c] for c in key_columns)] = dict(row)
            count += 1
        return count

    async def upsert_analytics_summary(self, row: dict[str, Any]) -> None:
        self._upsert(self.analytics_summary, [row], ("date", "institution_id"))

    async def upsert_student_summaries(self, rows: Sequence[dict[str, Any]]) -> int:
        return self._upsert(self.student_summaries, rows, ("date", "student_id"))

    async def upsert_teacher_summaries(self, rows: Sequence[dict[str, Any]]) -> int:
        return self._upsert(self.teacher_summaries, rows, ("week_start", "teacher_id"))

    async def upsert_class_summaries(self, rows: Sequence[dict[str, Any]]) -> int:
        return self._upsert(self.class_summaries, rows, ("week_start", "class_id"))

    async def reconcile_alerts(
        self,
        alerts: Sequence[AnalyticsAlert],
        run_date: date,
    ) -> AlertReconciliation:
        plan = plan_alert_reconciliation(list(self.alerts.values()), alerts, run_date)

        for alert_id in plan.delete_ids:
            del self.alerts[alert_id]
        for alert_id, changes in plan.updates.items():
            self.alerts[alert_id].update(changes)
        for row in plan.inserts:
            self.alerts[row["id"]] = row

        return plan.summary()

    def active_alerts(self) -> list[dict[str, Any]]:
        """Stored alerts with status active."""
        return [r for r in self.alerts.values() if r["status"] == AlertStatus.ACTIVE.value]
