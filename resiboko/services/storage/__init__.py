"""
Storage Services Package

Provides the abstract record store and its implementations.
Google Sheets is the production backend; the in-memory store backs tests
and local development.
"""

from resiboko.services.storage.interface import (
    RecordStoreInterface,
    SnapshotCallback,
    SnapshotFeed,
    Subscription,
    require_user,
    sort_newest_first,
)
from resiboko.services.storage.google_sheets import (
    RECEIPT_COLUMNS,
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
    receipt_to_row,
    row_to_receipt,
)
from resiboko.services.storage.memory import InMemoryRecordStore

__all__ = [
    # Interface
    "RecordStoreInterface",
    "SnapshotCallback",
    "SnapshotFeed",
    "Subscription",
    "require_user",
    "sort_newest_first",
    # Google Sheets implementation
    "RECEIPT_COLUMNS",
    "GoogleSheetsClient",
    "GoogleSheetsRecordStore",
    "receipt_to_row",
    "row_to_receipt",
    # In-memory implementation
    "InMemoryRecordStore",
]
