# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the daily aggregation job.

The loader and store are replaced by AsyncMock doubles or the
in-memory store.
"""

from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest

from hifz_analytics.domains.analytics.aggregator import (
    AnalyticsAggregator,
    calculate_essential_metrics,
    run_daily_analytics_aggregation,
)
from hifz_analytics.domains.analytics.context import (
    ClassRecord,
    ProgressRecord,
    StudentRecord,
    TeacherRecord,
    TimeRange,
    TimeSlot,
)
from hifz_analytics.domains.analytics.exceptions import ContextLoadError, StorageWriteError
from hifz_analytics.domains.analytics.store import AlertReconciliation, InMemorySummaryStore
from hifz_analytics.domains.analytics.student_metrics import calculate_all_student_metrics
from hifz_analytics.domains.analytics.teacher_metrics import calculate_all_teacher_metrics


@pytest.fixture
def context(make_context, now: datetime):
    """Six idle students in one class with a teacher who missed every slot."""
    students = [StudentRecord(id=f"s{i}", enrollment_date=date(2025, 1, 1)) for i in range(6)]
    students.append(StudentRecord(id="gone", status="inactive", enrollment_date=date(2024, 5, 1)))
    return make_context(
        students=students,
        teachers=[TeacherRecord(id="t1", name="Ustadh Bilal")],
        classes=[
            ClassRecord(
                id="c1",
                name="Halaqa A",
                capacity=10,
                teacher_ids=["t1"],
                current_students=[f"s{i}" for i in range(6)],
                time_slots=[
                    TimeSlot(
                        start_time="08:00",
                        end_time="09:00",
                        days=["mon", "wed", "fri"],
                        teacher_ids=["t1"],
                    )
                ],
            )
        ],
        progress=[
            ProgressRecord(
                id="p1",
                student_id="s0",
                teacher_id="t1",
                pages_memorized=3,
                created_at=now - timedelta(days=40),
            ),
        ],
    )


@pytest.fixture
def loader(context) -> AsyncMock:
    mock = AsyncMock()
    mock.load.return_value = context
    return mock


def _mock_store() -> AsyncMock:
    store = AsyncMock()
    store.upsert_student_summaries.return_value = 0
    store.upsert_teacher_summaries.return_value = 0
    store.upsert_class_summaries.return_value = 0
    store.reconcile_alerts.return_value = AlertReconciliation()
    return store


class TestRunDailyAggregation:
    """Tests for AnalyticsAggregator.run_daily_aggregation."""

    @pytest.mark.asyncio
    async def test_writes_every_table(self, loader, now, settings):
        store = InMemorySummaryStore()
        aggregator = AnalyticsAggregator(loader, store, settings, clock=lambda: now)

        result = await aggregator.run_daily_aggregation("inst-1")

        assert result.date == date(2025, 3, 12)
        assert result.week_start == date(2025, 3, 10)
        assert result.students_processed == 6
        assert result.teachers_processed == 1
        assert result.classes_processed == 1
        assert result.alerts_generated == len(store.alerts)
        assert result.alert_reconciliation.inserted == len(store.alerts)

        summary = store.analytics_summary[(date(2025, 3, 12), "inst-1")]
        assert summary["total_active_students"] == 6
        assert summary["at_risk_students_count"] == 6
        assert summary["total_active_teachers"] == 1
        assert summary["teachers_with_at_risk_count"] == 1
        assert (date(2025, 3, 10), "t1") in store.teacher_summaries
        assert (date(2025, 3, 10), "c1") in store.class_summaries

    @pytest.mark.asyncio
    async def test_loads_lookback_window(self, loader, now, settings):
        aggregator = AnalyticsAggregator(loader, _mock_store(), settings, clock=lambda: now)

        await aggregator.run_daily_aggregation("inst-1")

        time_range, institution_id = loader.load.await_args.args
        assert institution_id == "inst-1"
        assert time_range == TimeRange(
            start=datetime(2025, 3, 12, tzinfo=now.tzinfo) - timedelta(days=90),
            end=datetime(2025, 3, 12, 23, 59, 59, 999999, tzinfo=now.tzinfo),
        )

    @pytest.mark.asyncio
    async def test_rerun_is_idempotent(self, loader, context, settings):
        loader.load.return_value = context.model_copy(
            update={
                "progress": (
                    *context.progress,
                    ProgressRecord(
                        id="p2",
                        student_id="s1",
                        teacher_id="t1",
                        pages_memorized=2,
                        created_at=datetime(2025, 3, 4, 18, 0, tzinfo=timezone.utc),
                    ),
                )
            }
        )
        store = InMemorySummaryStore()

        first = await run_daily_analytics_aggregation(
            loader,
            store,
            "inst-1",
            settings,
            clock=lambda: datetime(2025, 3, 12, 1, 0, tzinfo=timezone.utc),
        )
        tables = (
            store.analytics_summary,
            store.student_summaries,
            store.teacher_summaries,
            store.class_summaries,
        )
        snapshot = [{key: dict(row) for key, row in table.items()} for table in tables]
        alert_ids = set(store.alerts)

        # Same date, 22 hours later: s1's last progress crosses another day boundary
        second = await run_daily_analytics_aggregation(
            loader,
            store,
            "inst-1",
            settings,
            clock=lambda: datetime(2025, 3, 12, 23, 0, tzinfo=timezone.utc),
        )

        assert [dict(table) for table in tables] == snapshot
        assert len(store.analytics_summary) == 1
        assert set(store.alerts) == alert_ids
        assert second.alert_reconciliation.inserted == 0
        assert second.alert_reconciliation.updated == first.alert_reconciliation.inserted

    @pytest.mark.asyncio
    async def test_alerts_use_alert_window(self, make_context, now, settings):
        """A teacher who ran every slot this week raises no session alerts."""
        sessions = [datetime(2025, 3, day, 8, 30, tzinfo=now.tzinfo) for day in (6, 7, 10, 11, 12)]
        context = make_context(
            students=[StudentRecord(id="s1", enrollment_date=date(2025, 1, 1))],
            teachers=[TeacherRecord(id="t2", name="Ustadha Maryam")],
            classes=[
                ClassRecord(
                    id="c2",
                    name="Halaqa B",
                    capacity=10,
                    teacher_ids=["t2"],
                    current_students=["s1"],
                    time_slots=[
                        TimeSlot(
                            start_time="08:00",
                            end_time="09:00",
                            days=["mon", "tue", "wed", "thu", "fri"],
                            teacher_ids=["t2"],
                        )
                    ],
                )
            ],
            progress=[
                ProgressRecord(
                    id=f"p{i}",
                    student_id="s1",
                    teacher_id="t2",
                    pages_memorized=1,
                    created_at=moment,
                )
                for i, moment in enumerate(sessions)
            ],
        )
        loader = AsyncMock()
        loader.load.return_value = context
        store = InMemorySummaryStore()

        await AnalyticsAggregator(loader, store, settings, clock=lambda: now).run_daily_aggregation()

        alert_types = {row["type"] for row in store.alerts.values()}
        assert "missed_sessions_threshold" not in alert_types
        assert "excessive_teacher_cancellations" not in alert_types
        # The stored weekly summary keeps the metrics window: 5 of 25 slots
        assert store.teacher_summaries[(date(2025, 3, 10), "t2")]["session_reliability"] == 20.0

    @pytest.mark.asyncio
    async def test_all_institutions_summary_uses_empty_key(self, loader, now, settings):
        store = InMemorySummaryStore()
        aggregator = AnalyticsAggregator(loader, store, settings, clock=lambda: now)

        result = await aggregator.run_daily_aggregation()

        assert list(store.analytics_summary) == [(date(2025, 3, 12), "")]
        assert result.institution_id is None

    @pytest.mark.asyncio
    async def test_load_failure_writes_nothing(self, now, settings):
        loader = AsyncMock()
        loader.load.side_effect = ContextLoadError("connection refused")
        store = _mock_store()
        aggregator = AnalyticsAggregator(loader, store, settings, clock=lambda: now)

        with pytest.raises(ContextLoadError):
            await aggregator.run_daily_aggregation()

        store.upsert_analytics_summary.assert_not_awaited()
        store.reconcile_alerts.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_storage_failure_stops_later_writes(self, loader, now, settings):
        store = _mock_store()
        store.upsert_teacher_summaries.side_effect = StorageWriteError("teacher_metrics_summary")
        aggregator = AnalyticsAggregator(loader, store, settings, clock=lambda: now)

        with pytest.raises(StorageWriteError) as exc_info:
            await aggregator.run_daily_aggregation()

        assert exc_info.value.table == "teacher_metrics_summary"
        store.upsert_analytics_summary.assert_awaited_once()
        store.upsert_student_summaries.assert_awaited_once()
        store.upsert_class_summaries.assert_not_awaited()
        store.reconcile_alerts.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_result_to_dict(self, loader, now, settings):
        aggregator = AnalyticsAggregator(loader, InMemorySummaryStore(), settings, clock=lambda: now)

        result = (await aggregator.run_daily_aggregation()).to_dict()

        assert result["date"] == "2025-03-12"
        assert result["week_start"] == "2025-03-10"
        assert result["institution_id"] is None
        assert set(result["alert_reconciliation"]) == {"inserted", "updated", "preserved", "deleted"}


class TestEssentialMetrics:
    """Tests for calculate_essential_metrics."""

    def test_dashboard_figures(self, context, now, settings):
        window = TimeRange(now - timedelta(days=30), now)
        students = calculate_all_student_metrics(context, window, now=now, settings=settings)
        teachers = calculate_all_teacher_metrics(
            context,
            window,
            now=now,
            settings=settings,
            student_metrics={m.student_id: m for m in students},
        )

        metrics = calculate_essential_metrics(
            context, students, teachers, now=now, settings=settings
        )

        assert metrics["total_active_students"] == 6
        assert metrics["students_on_track_count"] == 0
        assert metrics["students_on_track_percentage"] == 0.0
        assert metrics["at_risk_students_percentage"] == 100.0
        assert metrics["teachers_with_at_risk_percentage"] == 100.0
        assert metrics["avg_session_reliability"] == 0.0
        # Six active students out of a cohort of six enrolled over 30 days ago
        assert metrics["student_retention_30day"] == 100.0

    def test_empty_snapshot(self, make_context, now, settings):
        metrics = calculate_essential_metrics(make_context(), [], [], now=now, settings=settings)

        assert metrics["total_active_students"] == 0
        assert metrics["students_on_track_percentage"] == 0.0
        assert metrics["overall_attendance_rate"] == 0.0
        assert metrics["student_retention_30day"] == 100.0


def test_aggregate_daily_async_queues_actor():
    with patch(
        "hifz_analytics.infrastructure.background.tasks.aggregate_daily_analytics"
    ) as actor:
        AnalyticsAggregator.aggregate_daily_async("inst-1", date(2025, 3, 12))

    actor.send.assert_called_once_with(institution_id="inst-1", date_str="2025-03-12")
