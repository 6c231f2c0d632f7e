# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Background task actors for the analytics engine.

Usage:
    from hifz_analytics.infrastructure.background.tasks import aggregate_daily_analytics

    # Send a task
    aggregate_daily_analytics.send(institution_id="inst-1")

Running Workers:
    dramatiq hifz_analytics.infrastructure.background.tasks --processes 1 --threads 2
"""

from hifz_analytics.infrastructure.background.tasks.analytics import aggregate_daily_analytics
from hifz_analytics.infrastructure.background.tasks.base import run_async

__all__ = [
    "aggregate_daily_analytics",
    "run_async",
]
