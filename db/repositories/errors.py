"""
Repository-layer exceptions for savings job persistence.
"""

from __future__ import annotations

import uuid


class SavingsRepositoryError(RuntimeError):
    """Base exception for savings job repository failures."""


class JobNotFoundError(SavingsRepositoryError):
    """Raised when a referenced processing job does not exist."""

    def __init__(self, job_id: uuid.UUID | str) -> None:
        super().__init__(f"Processing job {job_id} was not found.")
        self.job_id = str(job_id)


class LineItemPersistenceError(SavingsRepositoryError):
    """Raised when a line item row cannot be stored even on its own."""

    def __init__(self, *, row_number: int, message: str) -> None:
        super().__init__(f"Row {row_number}: {message}")
        self.row_number = row_number
