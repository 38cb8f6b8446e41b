"""Services package."""

from resiboko.services.storage import (
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
    InMemoryRecordStore,
    RecordStoreInterface,
    Subscription,
)
from resiboko.services.sync import SheetSyncBridge

__all__ = [
    # Storage services
    "GoogleSheetsClient",
    "GoogleSheetsRecordStore",
    "InMemoryRecordStore",
    "RecordStoreInterface",
    "Subscription",
    # Sync
    "SheetSyncBridge",
]
