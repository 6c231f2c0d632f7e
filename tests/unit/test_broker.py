# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Unit tests for the Dramatiq broker setup."""

import pytest
from dramatiq.brokers.stub import StubBroker

from hifz_analytics.infrastructure.background.broker import (
    BrokerManager,
    Queues,
    get_broker_manager,
    setup_dramatiq,
)


class TestBrokerManager:
    """Tests for BrokerManager."""

    def test_broker_before_setup_raises(self) -> None:
        with pytest.raises(RuntimeError, match="not initialized"):
            BrokerManager().broker

    def test_test_mode_uses_stub_broker(self) -> None:
        broker = setup_dramatiq()

        assert isinstance(broker, StubBroker)
        assert get_broker_manager().broker is broker

    def test_setup_is_idempotent(self) -> None:
        assert setup_dramatiq() is setup_dramatiq()


def test_aggregation_actor_declares_analytics_queue() -> None:
    from hifz_analytics.infrastructure.background.tasks import aggregate_daily_analytics

    broker = setup_dramatiq()

    assert aggregate_daily_analytics.queue_name == Queues.ANALYTICS
    assert Queues.ANALYTICS in broker.get_declared_queues()
