# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database connection management using SQLAlchemy async.

Each aggregation run owns its engine: the worker creates one, hands a
sessionmaker to the context loader and the summary store, and disposes
the engine when the run ends.

Uses SQLAlchemy 2.0 async API with the asyncpg driver in production.
SQLite URLs (aiosqlite) are accepted for tests and local runs.

Example:
    from hifz_analytics.infrastructure.database.connection import (
        create_engine,
        create_sessionmaker,
    )

    engine = create_engine(settings)
    try:
        sessions = create_sessionmaker(engine)
        async with sessions() as session:
            students = (await session.scalars(select(StudentRow))).all()
    finally:
        await engine.dispose()
"""

from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from hifz_analytics.infrastructure.database.models import Base

if TYPE_CHECKING:
    from hifz_analytics.core.config.settings import Settings


def create_engine(settings: "Settings") -> AsyncEngine:
    """Create an async engine from settings.

    SQLite URLs get a StaticPool so an in-memory database is shared by
    every session of the engine.

    Args:
        settings: Application settings containing database configuration.

    Returns:
        A new AsyncEngine. The caller owns it and must dispose it.
    """
    url = settings.database.url
    if url.startswith("sqlite"):
        return create_async_engine(
            url,
            poolclass=StaticPool,
            connect_args={"check_same_thread": False},
            echo=settings.debug,
        )

    return create_async_engine(
        url,
        pool_size=settings.database.pool_size,
        max_overflow=settings.database.max_overflow,
        pool_pre_ping=True,
        pool_recycle=1800,
        echo=settings.debug,
    )


def create_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a sessionmaker bound to an engine."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


async def create_all_tables(engine: AsyncEngine) -> None:
    """Create every source and summary table that does not exist yet."""
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
