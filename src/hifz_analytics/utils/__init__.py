# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Utility functions and helpers.

This package contains cross-cutting utilities:
- logging: Structured logging with structlog
- datetime: Timezone-aware datetime operations
"""

from hifz_analytics.utils.datetime import (
    as_utc_datetime,
    end_of_day,
    ensure_utc,
    start_of_day,
    start_of_month,
    start_of_week,
    subtract_months,
    utc_now,
)
from hifz_analytics.utils.logging import bind_context, build_formatter, clear_context, setup_logging

__all__ = [
    # Logging
    "setup_logging",
    "build_formatter",
    "bind_context",
    "clear_context",
    # Datetime
    "utc_now",
    "ensure_utc",
    "end_of_day",
    "as_utc_datetime",
    "start_of_day",
    "start_of_week",
    "start_of_month",
    "subtract_months",
]
