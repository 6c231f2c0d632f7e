# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Daily analytics aggregation job.

One run:
1. Loads the data context once for the lookback window
2. Computes student, teacher, class and program metrics
3. Evaluates the alert rules, with teacher and class metrics recomputed
   over the shorter alert window
4. Persists, in order: analytics_summary, student_metrics_summary,
   teacher_metrics_summary, class_metrics_summary, alert reconciliation

Alert reconciliation deletes stale rows, so it runs last. A storage
failure on any summary table aborts the run and leaves the previous
alerts intact. All summary writes are keyed upserts, so re-running a
day overwrites the same rows. Every metric is computed as of the last
instant of the run date, so any run on the same date yields the same values.

The AnalyticsAggregator can either:
1. Queue the Dramatiq actor for background execution
2. Run the aggregation directly and return the result

Usage:
    from hifz_analytics.domains.analytics import AnalyticsAggregator

    aggregator = AnalyticsAggregator(loader, store, settings)

    # Trigger async aggregation (via Dramatiq)
    aggregator.aggregate_daily_async(institution_id="inst-1")

    # Direct aggregation
    result = await aggregator.run_daily_aggregation(institution_id="inst-1")
"""

import logging
from collections.abc import Callable, Sequence
from datetime import date, datetime, timedelta
from typing import Any

from hifz_analytics.core.config.settings import AnalyticsSettings
from hifz_analytics.domains.analytics.alerts import AnalyticsAlert, generate_alerts
from hifz_analytics.domains.analytics.calculator import percentage
from hifz_analytics.domains.analytics.class_metrics import calculate_all_class_metrics
from hifz_analytics.domains.analytics.context import (
    AnalyticsDataContext,
    ContextLoader,
    TimeRange,
)
from hifz_analytics.domains.analytics.exceptions import StorageWriteError
from hifz_analytics.domains.analytics.models import StudentMetrics, TeacherMetrics
from hifz_analytics.domains.analytics.program_metrics import calculate_program_metrics
from hifz_analytics.domains.analytics.store import AlertReconciliation, SummaryStore
from hifz_analytics.domains.analytics.student_metrics import calculate_all_student_metrics
from hifz_analytics.domains.analytics.teacher_metrics import calculate_all_teacher_metrics
from hifz_analytics.utils.datetime import (
    as_utc_datetime,
    end_of_day,
    start_of_day,
    start_of_week,
    utc_now,
)
from hifz_analytics.utils.logging import bind_context, clear_context

logger = logging.getLogger(__name__)

RETENTION_LOOKBACK_DAYS = 30


class AggregationResult:
    """Result of an aggregation run.

    Attributes:
        run_date: Date the summaries were written for.
        week_start: Monday of the run date's week.
        institution_id: Institution scope, None for all.
        students_processed: Student summary rows written.
        teachers_processed: Teacher summary rows written.
        classes_processed: Class summary rows written.
        alerts_generated: Alerts produced by this run.
        alert_reconciliation: Outcome of the alert reconciliation pass.
    """

    def __init__(
        self,
        run_date: date,
        week_start: date,
        institution_id: str | None = None,
        students_processed: int = 0,
        teachers_processed: int = 0,
        classes_processed: int = 0,
        alerts_generated: int = 0,
        alert_reconciliation: AlertReconciliation | None = None,
    ) -> None:
        """Initialize aggregation result.

        Args:
            run_date: Date the summaries were written for.
            week_start: Monday of the run date's week.
            institution_id: Institution scope.
            students_processed: Student summary rows written.
            teachers_processed: Teacher summary rows written.
            classes_processed: Class summary rows written.
            alerts_generated: Alerts produced by this run.
            alert_reconciliation: Outcome of the alert reconciliation pass.
        """
        self.date = run_date
        self.week_start = week_start
        self.institution_id = institution_id
        self.students_processed = students_processed
        self.teachers_processed = teachers_processed
        self.classes_processed = classes_processed
        self.alerts_generated = alerts_generated
        self.alert_reconciliation = alert_reconciliation or AlertReconciliation()

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "date": str(self.date),
            "week_start": str(self.week_start),
            "institution_id": self.institution_id,
            "students_processed": self.students_processed,
            "teachers_processed": self.teachers_processed,
            "classes_processed": self.classes_processed,
            "alerts_generated": self.alerts_generated,
            "alert_reconciliation": self.alert_reconciliation.to_dict(),
        }


def calculate_essential_metrics(
    context: AnalyticsDataContext,
    student_metrics: Sequence[StudentMetrics],
    teacher_metrics: Sequence[TeacherMetrics],
    *,
    now: datetime,
    settings: AnalyticsSettings,
) -> dict[str, Any]:
    """Derive the 12 essential dashboard metrics.

    Args:
        context: Snapshot for the run.
        student_metrics: Metrics for active students.
        teacher_metrics: Metrics for teachers.
        now: Run instant.
        settings: Thresholds.

    Returns:
        Column values for the analytics_summary row.
    """
    total_students = len(student_metrics)
    on_track = sum(
        1 for m in student_metrics if m.pace.pages_per_week >= settings.weekly_pace_target
    )
    at_risk = sum(1 for m in student_metrics if m.at_risk_score >= settings.at_risk_threshold)

    total_teachers = len(teacher_metrics)
    teachers_with_at_risk = sum(
        1
        for m in teacher_metrics
        if m.at_risk_students_count >= settings.at_risk_concentration_threshold
    )

    cutoff = now - timedelta(days=RETENTION_LOOKBACK_DAYS)
    retained_cohort = sum(
        1
        for s in context.students
        if s.is_active
        and s.enrollment_date is not None
        and as_utc_datetime(s.enrollment_date) <= cutoff  # type: ignore[operator]
    )
    retention = (
        round(total_students / retained_cohort * 100, 2) if retained_cohort else 100.0
    )

    def _mean(values: list[float]) -> float:
        return round(sum(values) / len(values), 2) if values else 0.0

    return {
        "total_active_students": total_students,
        "students_on_track_count": on_track,
        "students_on_track_percentage": percentage(on_track, total_students),
        "at_risk_students_count": at_risk,
        "at_risk_students_percentage": percentage(at_risk, total_students),
        "overall_attendance_rate": _mean([m.attendance_rate for m in student_metrics]),
        "overall_memorization_velocity": _mean([m.pace.pages_per_week for m in student_metrics]),
        "total_active_teachers": total_teachers,
        "teachers_with_at_risk_count": teachers_with_at_risk,
        "teachers_with_at_risk_percentage": percentage(teachers_with_at_risk, total_teachers),
        "avg_session_reliability": _mean([m.sessions.ratio for m in teacher_metrics]),
        "student_retention_30day": retention,
    }


class AnalyticsAggregator:
    """Orchestrates one daily aggregation run.

    The loader and store are injected so the job never reaches for
    module-level clients.

    Attributes:
        loader: Source of the data context.
        store: Destination of the summaries and alerts.
        settings: Thresholds and run windows.
    """

    def __init__(
        self,
        loader: ContextLoader,
        store: SummaryStore,
        settings: AnalyticsSettings | None = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        """Initialize the aggregator.

        Args:
            loader: Source of the data context.
            store: Destination of the summaries and alerts.
            settings: Thresholds and run windows.
            clock: Returns the current instant. Injected in tests.
        """
        self.loader = loader
        self.store = store
        self.settings = settings or AnalyticsSettings()
        self._clock = clock

    @staticmethod
    def aggregate_daily_async(
        institution_id: str | None = None,
        target_date: date | None = None,
    ) -> None:
        """Queue the daily aggregation actor via Dramatiq.

        Args:
            institution_id: Institution scope, None for all.
            target_date: Date to aggregate, defaults to today.
        """
        from hifz_analytics.infrastructure.background.tasks import aggregate_daily_analytics

        date_str = str(target_date) if target_date else None
        aggregate_daily_analytics.send(institution_id=institution_id, date_str=date_str)

        logger.info(
            "Queued daily analytics aggregation: institution=%s, date=%s",
            institution_id or "all",
            date_str or "today",
        )

    async def run_daily_aggregation(
        self,
        institution_id: str | None = None,
    ) -> AggregationResult:
        """Run the full aggregation for the day of the clock.

        An all-institutions run is stored under the empty institution id.

        Args:
            institution_id: Institution scope, None for all.

        Returns:
            AggregationResult with per-table counts.

        Raises:
            ContextLoadError: If the snapshot cannot be loaded. Nothing is written.
            StorageWriteError: If a write fails. Later writes are skipped.
        """
        run_day = start_of_day(self._clock())
        run_date = run_day.date()
        week_start = start_of_week(run_day).date()
        # Every calculation is anchored to the end of the run date
        now = end_of_day(run_day)

        bind_context(run_date=str(run_date), institution_id=institution_id)
        try:
            logger.info("Starting daily analytics aggregation for %s", run_date)

            load_range = TimeRange(
                start=run_day - timedelta(days=self.settings.context_lookback_days),
                end=now,
            )
            try:
                context = await self.loader.load(load_range, institution_id)
            except Exception:
                logger.error("Failed to load analytics context for %s", run_date, exc_info=True)
                raise

            metrics_range = TimeRange(
                start=now - timedelta(days=self.settings.metrics_window_days),
                end=now,
            )
            students = calculate_all_student_metrics(
                context, metrics_range, now=now, settings=self.settings
            )
            by_student = {m.student_id: m for m in students}
            teachers = calculate_all_teacher_metrics(
                context,
                metrics_range,
                now=now,
                settings=self.settings,
                student_metrics=by_student,
            )
            classes = calculate_all_class_metrics(
                context,
                metrics_range,
                now=now,
                settings=self.settings,
                student_metrics=by_student,
            )
            program = calculate_program_metrics(
                context,
                load_range,
                now=now,
                settings=self.settings,
                student_metrics=students,
                teacher_metrics=teachers,
            )

            alert_range = TimeRange(
                start=now - timedelta(days=self.settings.alert_window_days),
                end=now,
            )
            alerts = generate_alerts(
                students,
                calculate_all_teacher_metrics(
                    context,
                    alert_range,
                    now=now,
                    settings=self.settings,
                    student_metrics=by_student,
                ),
                calculate_all_class_metrics(
                    context,
                    alert_range,
                    now=now,
                    settings=self.settings,
                    student_metrics=by_student,
                ),
                settings=self.settings,
                now=now,
            )

            summary_row = {
                "date": run_date,
                "institution_id": institution_id or "",
                **calculate_essential_metrics(
                    context, students, teachers, now=now, settings=self.settings
                ),
                **program.to_summary_row(),
            }

            try:
                await self.store.upsert_analytics_summary(summary_row)
                student_rows = await self.store.upsert_student_summaries(
                    [m.to_summary_row(run_date) for m in students]
                )
                teacher_rows = await self.store.upsert_teacher_summaries(
                    [m.to_summary_row(week_start) for m in teachers]
                )
                class_rows = await self.store.upsert_class_summaries(
                    [m.to_summary_row(week_start) for m in classes]
                )
                reconciliation = await self._reconcile(alerts, run_date)
            except StorageWriteError as e:
                logger.error("Aborting aggregation for %s: %s", run_date, e)
                raise

            result = AggregationResult(
                run_date=run_date,
                week_start=week_start,
                institution_id=institution_id,
                students_processed=student_rows,
                teachers_processed=teacher_rows,
                classes_processed=class_rows,
                alerts_generated=len(alerts),
                alert_reconciliation=reconciliation,
            )
            logger.info(
                "Daily aggregation complete: date=%s, students=%d, teachers=%d, "
                "classes=%d, alerts=%d",
                run_date,
                student_rows,
                teacher_rows,
                class_rows,
                len(alerts),
            )
            return result
        finally:
            clear_context()

    async def _reconcile(
        self,
        alerts: list[AnalyticsAlert],
        run_date: date,
    ) -> AlertReconciliation:
        reconciliation = await self.store.reconcile_alerts(alerts, run_date)
        logger.info(
            "Alerts reconciled: inserted=%d, updated=%d, preserved=%d, deleted=%d",
            reconciliation.inserted,
            reconciliation.updated,
            reconciliation.preserved,
            reconciliation.deleted,
        )
        return reconciliation


async def run_daily_analytics_aggregation(
    loader: ContextLoader,
    store: SummaryStore,
    institution_id: str | None = None,
    settings: AnalyticsSettings | None = None,
    clock: Callable[[], datetime] = utc_now,
) -> AggregationResult:
    """Run one daily aggregation with the given loader and store.

    Args:
        loader: Source of the data context.
        store: Destination of the summaries and alerts.
        institution_id: Institution scope, None for all.
        settings: Thresholds and run windows.
        clock: Returns the current instant.

    Returns:
        AggregationResult with per-table counts.
    """
    aggregator = AnalyticsAggregator(loader, store, settings=settings, clock=clock)
    return await aggregator.run_daily_aggregation(institution_id)
