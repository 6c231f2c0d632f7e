# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Exceptions raised by the analytics engine.

Error policy:
- EntityNotFoundError is raised by single-entity calculators and is
  caught by the batch calculators, which log and skip the entity.
- ContextLoadError aborts a run before any computation.
- StorageWriteError aborts a run before any later persistence step.
"""


class AnalyticsError(Exception):
    """Base exception for analytics engine errors.

    Attributes:
        message: Human-readable error description.
        original_error: The underlying exception, if any.
    """

    def __init__(self, message: str, original_error: Exception | None = None) -> None:
        self.message = message
        self.original_error = original_error
        super().__init__(message)

    def __str__(self) -> str:
        """Return string representation of the error."""
        if self.original_error:
            return f"{self.message}: {self.original_error}"
        return self.message


class EntityNotFoundError(AnalyticsError):
    """Raised when a student, teacher or class id is absent from the snapshot."""

    def __init__(self, entity_type: str, entity_id: str) -> None:
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type.capitalize()} {entity_id} not found")


class ContextLoadError(AnalyticsError):
    """Raised when the data context for a run cannot be loaded."""

    pass


class StorageWriteError(AnalyticsError):
    """Raised when an upsert or delete against the summary store fails.

    Attributes:
        table: Name of the table being written.
    """

    def __init__(
        self,
        table: str,
        message: str | None = None,
        original_error: Exception | None = None,
    ) -> None:
        self.table = table
        super().__init__(message or f"Failed to write {table}", original_error)
