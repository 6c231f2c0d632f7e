# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Analytics metrics and alerting domain.

This module provides the batch analytics pipeline:
- Data context: one immutable snapshot of raw records per run
- Calculators: student, teacher, class and program metrics
- Alert engine: threshold rules over the computed metrics
- Aggregation: the daily job persisting summaries and reconciling alerts

Calculators are pure functions over the snapshot. I/O only happens in
the ContextLoader and SummaryStore implementations injected into the
aggregator.

Usage:
    from hifz_analytics.domains.analytics import (
        AnalyticsAggregator,
        InMemorySummaryStore,
        run_daily_analytics_aggregation,
    )

    result = await run_daily_analytics_aggregation(loader, store, institution_id="inst-1")

    # Metrics for a single student
    from hifz_analytics.domains.analytics import calculate_student_metrics

    metrics = calculate_student_metrics(student_id, context)
"""

from hifz_analytics.domains.analytics.aggregator import (
    AggregationResult,
    AnalyticsAggregator,
    calculate_essential_metrics,
    run_daily_analytics_aggregation,
)
from hifz_analytics.domains.analytics.alerts import (
    DEFAULT_RULES,
    AlertRule,
    AlertSeverity,
    AlertStatus,
    AlertType,
    AnalyticsAlert,
    EntityType,
    generate_alerts,
    generate_all_alerts,
    should_trigger_alert,
)
from hifz_analytics.domains.analytics.class_metrics import (
    calculate_all_class_metrics,
    calculate_class_metrics,
)
from hifz_analytics.domains.analytics.comparison import (
    TrendData,
    calculate_percentage_change,
    calculate_trend,
    get_previous_period_range,
)
from hifz_analytics.domains.analytics.context import (
    AnalyticsDataContext,
    ContextLoader,
    TimeRange,
)
from hifz_analytics.domains.analytics.exceptions import (
    AnalyticsError,
    ContextLoadError,
    EntityNotFoundError,
    StorageWriteError,
)
from hifz_analytics.domains.analytics.models import (
    ClassMetrics,
    ProgramMetrics,
    StudentMetrics,
    TeacherMetrics,
)
from hifz_analytics.domains.analytics.program_metrics import calculate_program_metrics
from hifz_analytics.domains.analytics.store import (
    AlertReconciliation,
    InMemorySummaryStore,
    SummaryStore,
)
from hifz_analytics.domains.analytics.student_metrics import (
    calculate_all_student_metrics,
    calculate_student_metrics,
)
from hifz_analytics.domains.analytics.teacher_metrics import (
    calculate_all_teacher_metrics,
    calculate_teacher_metrics,
)

__all__ = [
    # Context
    "AnalyticsDataContext",
    "ContextLoader",
    "TimeRange",
    # Errors
    "AnalyticsError",
    "ContextLoadError",
    "EntityNotFoundError",
    "StorageWriteError",
    # Metrics
    "StudentMetrics",
    "TeacherMetrics",
    "ClassMetrics",
    "ProgramMetrics",
    "calculate_student_metrics",
    "calculate_all_student_metrics",
    "calculate_teacher_metrics",
    "calculate_all_teacher_metrics",
    "calculate_class_metrics",
    "calculate_all_class_metrics",
    "calculate_program_metrics",
    # Comparison
    "TrendData",
    "calculate_trend",
    "calculate_percentage_change",
    "get_previous_period_range",
    # Alerts
    "AlertRule",
    "AlertType",
    "AlertSeverity",
    "AlertStatus",
    "EntityType",
    "AnalyticsAlert",
    "DEFAULT_RULES",
    "generate_alerts",
    "generate_all_alerts",
    "should_trigger_alert",
    # Aggregation
    "AnalyticsAggregator",
    "AggregationResult",
    "calculate_essential_metrics",
    "run_daily_analytics_aggregation",
    # Storage
    "SummaryStore",
    "InMemorySummaryStore",
    "AlertReconciliation",
]
