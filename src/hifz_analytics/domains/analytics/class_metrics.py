# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Class metrics calculator."""

import logging
from collections.abc import Mapping
from datetime import datetime

from hifz_analytics.core.config.settings import AnalyticsSettings
from hifz_analytics.domains.analytics.calculator import mean, percentage, standard_deviation
from hifz_analytics.domains.analytics.context import AnalyticsDataContext, TimeRange
from hifz_analytics.domains.analytics.exceptions import EntityNotFoundError
from hifz_analytics.domains.analytics.models import ClassMetrics, StudentMetrics
from hifz_analytics.domains.analytics.student_metrics import (
    ISOLATED_ERRORS,
    collect_student_metrics,
)
from hifz_analytics.utils.datetime import utc_now

logger = logging.getLogger(__name__)


def calculate_class_metrics(
    class_id: str,
    context: AnalyticsDataContext,
    time_range: TimeRange | None = None,
    *,
    now: datetime | None = None,
    settings: AnalyticsSettings | None = None,
    student_metrics: Mapping[str, StudentMetrics] | None = None,
) -> ClassMetrics:
    """Calculate the indicators for one class.

    Capacity utilization and drop-off rate are relative to the roster
    size, with a denominator of 1 when the capacity or roster is empty.

    Raises:
        EntityNotFoundError: If the class is not in the snapshot.
    """
    class_record = context.get_class(class_id)
    if class_record is None:
        raise EntityNotFoundError("class", class_id)

    now = now or utc_now()
    settings = settings or AnalyticsSettings()

    roster = set(class_record.current_students)
    enrolled = [s for s in context.students if s.id in roster]
    metrics = collect_student_metrics(
        [s.id for s in enrolled],
        context,
        time_range,
        now=now,
        settings=settings,
        precomputed=student_metrics,
    )

    roster_attendance = [a for a in context.attendance if a.student_id in roster]
    present = sum(1 for a in roster_attendance if a.status == "present")

    roster_size = len(class_record.current_students)
    capacity = class_record.capacity or 0
    active = sum(1 for s in enrolled if s.is_active)

    return ClassMetrics(
        class_id=class_record.id,
        class_name=class_record.name,
        student_count=roster_size,
        capacity=capacity,
        average_progress=round(mean([m.pages.lifetime for m in metrics]), 2),
        attendance_rate=percentage(present, len(roster_attendance)),
        pace_variance=standard_deviation([m.pace.pages_per_week for m in metrics]),
        capacity_utilization=percentage(roster_size, capacity or 1),
        drop_off_rate=percentage(roster_size - active, roster_size or 1),
    )


def calculate_all_class_metrics(
    context: AnalyticsDataContext,
    time_range: TimeRange | None = None,
    *,
    now: datetime | None = None,
    settings: AnalyticsSettings | None = None,
    student_metrics: Mapping[str, StudentMetrics] | None = None,
) -> list[ClassMetrics]:
    """Calculate metrics for every active class, skipping failures."""
    now = now or utc_now()
    settings = settings or AnalyticsSettings()

    results: list[ClassMetrics] = []
    for class_record in context.classes:
        if not class_record.is_active:
            continue
        try:
            results.append(
                calculate_class_metrics(
                    class_record.id,
                    context,
                    time_range,
                    now=now,
                    settings=settings,
                    student_metrics=student_metrics,
                )
            )
        except ISOLATED_ERRORS as e:
            logger.warning("Skipping metrics for class %s: %s", class_record.id, e)

    return results
