"""
Exception hierarchy for ResiboKo.

Each family maps to one user-facing message class in the UI:
capture problems, AI extraction problems, incomplete records,
storage problems, and sync-bridge problems are all shown differently.
"""

from typing import Optional


class ResiboKoError(Exception):
    """Base exception for all application errors."""
    pass


class CaptureError(ResiboKoError):
    """A camera, microphone or upload could not produce a usable blob."""
    pass


class ExtractionError(ResiboKoError):
    """The AI service failed or returned something we cannot use."""
    pass


class ReceiptOutsideCurrentYearError(ExtractionError):
    """An extracted receipt is dated outside the current year."""

    def __init__(self, receipt_year: int, current_year: int):
        self.receipt_year = receipt_year
        self.current_year = current_year
        super().__init__(
            f"This receipt is from {receipt_year}. Only transactions for "
            f"the current year ({current_year}) are allowed."
        )


class IncompleteRecordError(ResiboKoError):
    """A record is missing required fields at the persistence boundary."""

    def __init__(self, missing_fields: list[str], message: Optional[str] = None):
        self.missing_fields = missing_fields
        super().__init__(message or "Cannot save incomplete receipt data.")


class StorageError(ResiboKoError):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Record not found in the user's collection."""
    pass


class StorageConnectionError(StorageError):
    """Could not connect to the storage backend."""
    pass


class NotAuthenticatedError(ResiboKoError):
    """An operation that needs a signed-in user was attempted without one."""
    pass


class SyncError(ResiboKoError):
    """The push to the external spreadsheet failed."""
    pass
