# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Background task infrastructure for the analytics engine.

Quick Start:
    # Setup broker (call once at startup)
    from hifz_analytics.infrastructure.background import setup_dramatiq
    setup_dramatiq()

    # Queue the daily aggregation
    from hifz_analytics.infrastructure.background.tasks import aggregate_daily_analytics
    aggregate_daily_analytics.send(institution_id="inst-1")

Running Workers:
    dramatiq hifz_analytics.infrastructure.background.tasks --processes 1 --threads 2
"""

from hifz_analytics.infrastructure.background.broker import (
    BrokerManager,
    Priority,
    Queues,
    get_broker_manager,
    setup_dramatiq,
)

__all__ = [
    "BrokerManager",
    "Priority",
    "Queues",
    "get_broker_manager",
    "setup_dramatiq",
]
