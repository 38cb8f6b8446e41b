"""Push-only sync to the legacy spreadsheet webhook."""

from resiboko.services.sync.webhook import SheetSyncBridge

__all__ = ["SheetSyncBridge"]
