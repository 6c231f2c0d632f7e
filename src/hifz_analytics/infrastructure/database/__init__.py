# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Database infrastructure for the analytics engine.

This package provides SQLAlchemy async access to:
- Operational tables: students, staff profiles, classes and their
  activity records, read by SqlAlchemyContextLoader
- Summary tables: daily and weekly summaries and alerts, written by
  SqlAlchemySummaryStore

Example:
    from hifz_analytics.infrastructure.database import (
        SqlAlchemyContextLoader,
        SqlAlchemySummaryStore,
        create_engine,
        create_sessionmaker,
    )

    engine = create_engine(settings)
    sessions = create_sessionmaker(engine)
    loader = SqlAlchemyContextLoader(sessions)
    store = SqlAlchemySummaryStore(sessions)
"""

from hifz_analytics.infrastructure.database.connection import (
    create_all_tables,
    create_engine,
    create_sessionmaker,
)
from hifz_analytics.infrastructure.database.loader import SqlAlchemyContextLoader
from hifz_analytics.infrastructure.database.store import SqlAlchemySummaryStore

__all__ = [
    # Connection
    "create_all_tables",
    "create_engine",
    "create_sessionmaker",
    # Analytics I/O
    "SqlAlchemyContextLoader",
    "SqlAlchemySummaryStore",
]
