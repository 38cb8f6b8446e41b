"""
In-Memory Record Store

Same contract as the Google Sheets store, kept in a dict per user.
Used by the test suite and by APP_STORAGE_BACKEND=memory for local
development without service-account credentials.
"""

from uuid import uuid4

from resiboko.errors import NotFoundError
from resiboko.models.receipt import AuthenticatedUser, ConfirmedReceipt, SavedReceipt
from resiboko.services.storage.interface import RecordStoreInterface


class InMemoryRecordStore(RecordStoreInterface):
    """Process-local record store. Nothing survives a restart."""

    def __init__(self):
        super().__init__()
        self._collections: dict[str, dict[str, SavedReceipt]] = {}

    def _collection(self, user: AuthenticatedUser) -> dict[str, SavedReceipt]:
        return self._collections.setdefault(user.uid, {})

    async def _fetch_all(self, user: AuthenticatedUser) -> list[SavedReceipt]:
        return list(self._collection(user).values())

    async def _insert(self, user: AuthenticatedUser, record: ConfirmedReceipt) -> str:
        receipt_id = uuid4().hex
        self._collection(user)[receipt_id] = record.to_saved(receipt_id)
        return receipt_id

    async def _overwrite(
        self,
        user: AuthenticatedUser,
        receipt_id: str,
        record: ConfirmedReceipt,
    ) -> None:
        collection = self._collection(user)
        if receipt_id not in collection:
            raise NotFoundError(f"Receipt not found: {receipt_id}")
        collection[receipt_id] = record.to_saved(receipt_id)

    async def _remove(self, user: AuthenticatedUser, receipt_id: str) -> None:
        collection = self._collection(user)
        if receipt_id not in collection:
            raise NotFoundError(f"Receipt not found: {receipt_id}")
        del collection[receipt_id]
