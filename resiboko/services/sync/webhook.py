"""
Spreadsheet Sync Bridge

DESIGN DECISION: This integration is PUSH-ONLY and UNVERIFIABLE.
The receiving Apps Script endpoint answers with a redirect / opaque page,
so the response body and status carry no meaningful result. We:
1. POST {"receipts": [...]} once
2. Treat "the request went out" as success
3. Treat any exception while sending (DNS, refused, timeout, a crash) as failure

Do not add logic that inspects the response: it would report false
failures for a request that actually landed.

State machine for the sync button:

    IDLE --push--> SYNCING --sent--> SYNCED --(display delay)--> IDLE
                           --error--> IDLE (SyncError raised)

A push while SYNCING or SYNCED is ignored. The SYNCED -> IDLE revert is
computed from an injectable clock, so no timer thread is needed.
"""

import time
from typing import Callable, Optional

import httpx

from resiboko.audit import get_logger
from resiboko.config import SyncBridgeSettings, get_settings
from resiboko.errors import SyncError
from resiboko.models.receipt import AuthenticatedUser, SavedReceipt, SyncStatus
from resiboko.services.storage.interface import require_user


logger = get_logger(__name__)


class SheetSyncBridge:
    """
    Pushes the full receipt list to the legacy spreadsheet webhook.

    One bridge instance per user session.
    """

    def __init__(
        self,
        settings: Optional[SyncBridgeSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._settings = settings or get_settings().sync
        self._transport = transport
        self._clock = clock
        self._status = SyncStatus.IDLE
        self._synced_until = 0.0

    @property
    def status(self) -> SyncStatus:
        """Current button state; SYNCED expires on read."""
        if self._status == SyncStatus.SYNCED and self._clock() >= self._synced_until:
            self._status = SyncStatus.IDLE
        return self._status

    @staticmethod
    def build_payload(records: list[SavedReceipt]) -> dict:
        return {"receipts": [record.to_document() for record in records]}

    async def push(
        self,
        user: Optional[AuthenticatedUser],
        records: list[SavedReceipt],
    ) -> bool:
        """
        Send every record to the webhook.

        Returns:
            True if a request was sent, False if ignored because a
            previous push is still in flight or still being displayed.

        Raises:
            NotAuthenticatedError: before any request, if user is None
            SyncError: if the request could not be delivered
        """
        user = require_user(user, "sync receipts")

        if self.status != SyncStatus.IDLE:
            logger.info("sync_push_ignored", user_id=user.uid, status=self._status.value)
            return False

        self._status = SyncStatus.SYNCING
        try:
            async with httpx.AsyncClient(
                timeout=self._settings.timeout_seconds,
                transport=self._transport,
                follow_redirects=False,
            ) as client:
                # Response intentionally not inspected
                await client.post(
                    self._settings.webhook_url,
                    json=self.build_payload(records),
                )
        except Exception as e:
            self._status = SyncStatus.IDLE
            raise SyncError(f"Syncing failed: {e}") from e
        except BaseException:
            # Cancelled mid-request: nothing was confirmed, allow a new push
            self._status = SyncStatus.IDLE
            raise

        self._status = SyncStatus.SYNCED
        self._synced_until = self._clock() + self._settings.synced_display_seconds
        return True
