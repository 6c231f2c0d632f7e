# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for period comparison helpers."""

from datetime import datetime, timezone

import pytest

from hifz_analytics.domains.analytics.comparison import (
    calculate_percentage_change,
    calculate_trend,
    get_previous_period_range,
)

UTC = timezone.utc


class TestPercentageChange:
    """Tests for calculate_percentage_change."""

    def test_change_from_zero(self):
        assert calculate_percentage_change(0, 0) == 0.0
        assert calculate_percentage_change(5, 0) == 100.0

    def test_growth_and_decline(self):
        assert calculate_percentage_change(150, 100) == 50.0
        assert calculate_percentage_change(50, 100) == -50.0


class TestTrend:
    """Tests for calculate_trend."""

    def test_no_change_is_positive(self):
        trend = calculate_trend(10, 10)
        assert trend.change == 0.0
        assert trend.is_positive is True

    def test_decline_is_negative(self):
        trend = calculate_trend(8, 10)
        assert trend.change == -20.0
        assert trend.is_positive is False

    def test_zero_baseline(self):
        assert calculate_trend(0, 0).is_positive is False
        assert calculate_trend(3, 0).is_positive is True


class TestPreviousPeriodRange:
    """Tests for get_previous_period_range."""

    def test_previous_week(self, now: datetime):
        time_range = get_previous_period_range("week", now)
        assert time_range.start == datetime(2025, 3, 3, tzinfo=UTC)
        assert time_range.end == datetime(2025, 3, 9, tzinfo=UTC)

    def test_previous_month(self, now: datetime):
        time_range = get_previous_period_range("month", now)
        assert time_range.start == datetime(2025, 2, 1, tzinfo=UTC)
        assert time_range.end == datetime(2025, 2, 28, tzinfo=UTC)

    def test_unsupported_period(self, now: datetime):
        with pytest.raises(ValueError):
            get_previous_period_range("year", now)  # type: ignore[arg-type]
