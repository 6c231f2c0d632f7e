# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Integration tests for the per-run engine helpers."""

import pytest
from sqlalchemy import inspect, select
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.pool import StaticPool

from hifz_analytics.core.config.settings import Settings
from hifz_analytics.infrastructure.database import (
    create_engine,
    create_sessionmaker,
)
from hifz_analytics.infrastructure.database.models import StudentRow


def test_sqlite_engine_shares_one_connection(db_settings: Settings):
    if not db_settings.database.url.startswith("sqlite"):
        pytest.skip("SQLite only")

    engine = create_engine(db_settings)

    assert isinstance(engine.pool, StaticPool)


@pytest.mark.asyncio
async def test_tables_created_and_sessions_keep_loaded_rows(db_engine: AsyncEngine):
    async with db_engine.connect() as conn:
        tables = await conn.run_sync(lambda sync: inspect(sync).get_table_names())
    assert {"students", "analytics_summary", "analytics_alerts"} <= set(tables)

    sessions = create_sessionmaker(db_engine)
    async with sessions() as session:
        session.add(StudentRow(id="s1", name="Yusuf", institution_id="inst-1"))
        await session.commit()
        assert session.sync_session.expire_on_commit is False

    async with sessions() as session:
        student = (await session.scalars(select(StudentRow))).one()

    assert student.name == "Yusuf"
    assert student.status == "active"
