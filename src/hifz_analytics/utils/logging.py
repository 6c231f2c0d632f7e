# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Structured logging for the analytics worker.

Modules log through the standard library (logging.getLogger(__name__)).
The root handler renders every record with structlog, so values bound
with bind_context() for the duration of a run (run_date, institution_id)
appear on each line: JSON outside development, colored console output
in development or debug mode.
"""

import logging
import sys
from typing import TYPE_CHECKING

import structlog
from structlog.types import Processor

if TYPE_CHECKING:
    from hifz_analytics.core.config.settings import Settings

QUIET_LOGGERS = ("sqlalchemy", "sqlalchemy.engine", "asyncio", "aiosqlite", "dramatiq")


def build_formatter(settings: "Settings") -> structlog.stdlib.ProcessorFormatter:
    """Formatter rendering standard library records through structlog."""
    pre_chain: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
    ]

    if settings.is_development or settings.debug:
        renderer: list[Processor] = [structlog.dev.ConsoleRenderer(colors=True)]
    else:
        renderer = [
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(),
        ]

    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=pre_chain,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *renderer],
    )


def setup_logging(settings: "Settings") -> None:
    """Install the structlog formatter on the root handler.

    Replaces any handler already on the root logger. Third-party
    loggers stay at WARNING.

    Args:
        settings: Application settings containing log_level and debug flag.
    """
    log_level = getattr(logging, settings.log_level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(build_formatter(settings))
    logging.basicConfig(handlers=[handler], level=log_level, force=True)

    for logger_name in QUIET_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)

    logging.getLogger("hifz_analytics").setLevel(log_level)


def bind_context(**kwargs: object) -> None:
    """Attach key-value pairs to every log line until clear_context()."""
    structlog.contextvars.bind_contextvars(**kwargs)


def clear_context() -> None:
    """Drop the values bound for the current run."""
    structlog.contextvars.clear_contextvars()
