# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Configuration package for the analytics engine.

Example:
    >>> from hifz_analytics.core.config import get_settings
    >>> settings = get_settings()
    >>> settings.analytics.at_risk_threshold
    50.0
"""

from hifz_analytics.core.config.settings import (
    AnalyticsSettings,
    DatabaseSettings,
    RedisSettings,
    Settings,
    WorkerSettings,
    clear_settings_cache,
    get_settings,
)

__all__ = [
    "AnalyticsSettings",
    "DatabaseSettings",
    "RedisSettings",
    "Settings",
    "WorkerSettings",
    "clear_settings_cache",
    "get_settings",
]
