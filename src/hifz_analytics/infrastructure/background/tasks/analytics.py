# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Analytics background tasks.

The daily aggregation actor builds its own engine, loader and store per
invocation and disposes the engine when the run ends. Failures propagate
so Dramatiq's retry policy applies.
"""

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any

import dramatiq

from hifz_analytics.core.config import get_settings
from hifz_analytics.domains.analytics.aggregator import run_daily_analytics_aggregation
from hifz_analytics.infrastructure.background.broker import Priority, Queues, setup_dramatiq
from hifz_analytics.infrastructure.background.tasks.base import run_async
from hifz_analytics.infrastructure.database.connection import (
    create_engine,
    create_sessionmaker,
)
from hifz_analytics.infrastructure.database.loader import SqlAlchemyContextLoader
from hifz_analytics.infrastructure.database.store import SqlAlchemySummaryStore
from hifz_analytics.utils.datetime import end_of_day, utc_now

# Setup broker before defining actors
setup_dramatiq()

logger = logging.getLogger(__name__)


def run_clock(date_str: str | None) -> Callable[[], datetime]:
    """Clock for a run: the end of a YYYY-MM-DD day, or the wall clock."""
    if not date_str:
        return utc_now
    moment = end_of_day(datetime.strptime(date_str, "%Y-%m-%d"))
    return lambda: moment


async def aggregate_daily_analytics_async(
    institution_id: str | None = None,
    date_str: str | None = None,
) -> dict[str, Any]:
    """Run the daily aggregation against the configured database.

    Args:
        institution_id: Institution scope, None for all.
        date_str: Date to aggregate (YYYY-MM-DD). Defaults to today.

    Returns:
        AggregationResult as a dictionary.
    """
    settings = get_settings()
    clock = run_clock(date_str)

    engine = create_engine(settings)
    try:
        sessions = create_sessionmaker(engine)
        result = await run_daily_analytics_aggregation(
            SqlAlchemyContextLoader(sessions),
            SqlAlchemySummaryStore(sessions),
            institution_id=institution_id,
            settings=settings.analytics,
            clock=clock,
        )
    finally:
        await engine.dispose()

    logger.info(
        "Daily analytics aggregated for %s: students=%d, teachers=%d, classes=%d, alerts=%d",
        result.date,
        result.students_processed,
        result.teachers_processed,
        result.classes_processed,
        result.alerts_generated,
    )
    return result.to_dict()


@dramatiq.actor(
    queue_name=Queues.ANALYTICS,
    max_retries=3,
    time_limit=600000,  # 10 minutes
    priority=Priority.LOW,
)
def aggregate_daily_analytics(
    institution_id: str | None = None,
    date_str: str | None = None,
) -> dict[str, Any]:
    """Aggregate daily analytics summaries and reconcile alerts.

    Args:
        institution_id: Institution scope, None for all.
        date_str: Date to aggregate (YYYY-MM-DD). Defaults to today.

    Returns:
        Aggregation result with per-table counts.
    """
    return run_async(aggregate_daily_analytics_async(institution_id, date_str))
