# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Pytest fixtures for database integration tests.

Tests run against a SQLite file per test through aiosqlite, so no
database server is needed. Set TEST_DATABASE_URL to run them against
PostgreSQL instead.
"""

import os
from collections.abc import AsyncGenerator
from pathlib import Path
from unittest.mock import patch

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from hifz_analytics.core.config.settings import Settings
from hifz_analytics.infrastructure.database.connection import (
    create_all_tables,
    create_engine,
    create_sessionmaker,
)
from hifz_analytics.infrastructure.database.models import Base


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """Get database URL for tests."""
    return os.environ.get("TEST_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'hifz.db'}")


@pytest.fixture
def db_settings(database_url: str) -> Settings:
    """Settings pointing at the test database."""
    with patch.dict(os.environ, {"DB_URL": database_url}, clear=False):
        return Settings(environment="test")


@pytest_asyncio.fixture
async def db_engine(db_settings: Settings) -> AsyncGenerator[AsyncEngine, None]:
    """Create an engine with every table created."""
    engine = create_engine(db_settings)
    await create_all_tables(engine)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def db_sessions(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Sessionmaker bound to the test engine."""
    return create_sessionmaker(db_engine)
