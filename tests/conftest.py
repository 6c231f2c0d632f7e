# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest configuration and shared fixtures.

This module provides fixtures used across all test types:
- A fixed reference instant so every calculation is deterministic
- Default analytics settings
- A factory for data context snapshots
"""

import os
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import pytest

# Actors set up the broker at import time
os.environ.setdefault("DRAMATIQ_TEST_MODE", "true")
os.environ.setdefault("ENVIRONMENT", "test")

from hifz_analytics.core.config.settings import AnalyticsSettings  # noqa: E402
from hifz_analytics.domains.analytics.context import AnalyticsDataContext  # noqa: E402


# =============================================================================
# Marker Configuration
# =============================================================================


def pytest_configure(config: pytest.Config) -> None:
    """Configure custom pytest markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test (uses SQLite through aiosqlite)"
    )


# =============================================================================
# Analytics Fixtures
# =============================================================================


@pytest.fixture
def now() -> datetime:
    """Reference instant: Wednesday 2025-03-12 10:00 UTC."""
    return datetime(2025, 3, 12, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def settings() -> AnalyticsSettings:
    """Default analytics thresholds and windows."""
    return AnalyticsSettings()


@pytest.fixture
def make_context() -> Callable[..., AnalyticsDataContext]:
    """Factory building a snapshot from keyword collections.

    Example:
        context = make_context(students=[...], progress=[...])
    """

    def _make(**collections: Any) -> AnalyticsDataContext:
        return AnalyticsDataContext(**{k: tuple(v) for k, v in collections.items()})

    return _make
