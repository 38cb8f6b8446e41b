"""
Abstract Record Store Interface

DESIGN DECISION: The store is the single source of truth and it PUSHES.
Consumers never read records directly. They subscribe, and every
delivery is the COMPLETE date-descending set for that user:
1. Delivered once immediately on subscribe
2. Delivered again after every create / update / delete
3. Delivered again on refresh() (picks up edits made elsewhere)

Consumers must treat each delivery as a full replacement, never a merge.
Nothing outside the store patches the snapshot in anticipation of a write.

A write that reached the backend is reported as done even if the
re-read that follows it fails; the next refresh() catches the snapshot
up. Reporting it as failed would invite a retry and a duplicate row.

The store is shared by every UI session. A callback that is a bound
method is held weakly, so a session that goes away drops out of the
feed without having to unsubscribe.

The base class owns the observer feed and the authentication check;
backends only implement four primitives (_fetch_all, _insert,
_overwrite, _remove) scoped to one user's namespace.
"""

import inspect
import weakref
from abc import ABC, abstractmethod
from datetime import date
from typing import Callable, Optional

from resiboko.audit import get_logger
from resiboko.errors import NotAuthenticatedError
from resiboko.models.receipt import AuthenticatedUser, ConfirmedReceipt, SavedReceipt


logger = get_logger(__name__)

SnapshotCallback = Callable[[list[SavedReceipt]], None]


def require_user(user: Optional[AuthenticatedUser], action: str) -> AuthenticatedUser:
    """
    Reject anonymous access before anything touches the network.

    Raises:
        NotAuthenticatedError: "You must be logged in to <action>."
    """
    if user is None:
        raise NotAuthenticatedError(f"You must be logged in to {action}.")
    return user


def sort_newest_first(records: list[SavedReceipt]) -> list[SavedReceipt]:
    """Date-descending; records without a usable date go last."""
    return sorted(
        records,
        key=lambda r: r.parsed_date or date.min,
        reverse=True,
    )


class Subscription:
    """
    Handle returned by subscribe(); unsubscribe() is idempotent.

    Bound-method callbacks are referenced weakly: once their owner is
    garbage collected the subscription is inactive.
    """

    def __init__(self, feed: "SnapshotFeed", user_id: str, callback: SnapshotCallback):
        self._feed = feed
        self.user_id = user_id
        if inspect.ismethod(callback):
            self._callback_ref = weakref.WeakMethod(callback)
        else:
            self._callback_ref = lambda: callback
        self._active = True

    @property
    def callback(self) -> Optional[SnapshotCallback]:
        return self._callback_ref() if self._active else None

    @property
    def active(self) -> bool:
        return self.callback is not None

    def unsubscribe(self) -> None:
        if self._active:
            self._active = False
            self._feed.remove(self)


class SnapshotFeed:
    """Per-user list of snapshot observers."""

    def __init__(self):
        self._subscribers: dict[str, list[Subscription]] = {}

    def add(self, user_id: str, callback: SnapshotCallback) -> Subscription:
        subscription = Subscription(self, user_id, callback)
        self._subscribers.setdefault(user_id, []).append(subscription)
        return subscription

    def remove(self, subscription: Subscription) -> None:
        subscribers = self._subscribers.get(subscription.user_id, [])
        if subscription in subscribers:
            subscribers.remove(subscription)
        if not subscribers:
            self._subscribers.pop(subscription.user_id, None)

    def _prune(self, user_id: str) -> list[Subscription]:
        """Drop subscriptions whose owner is gone; return the live ones."""
        live = []
        for subscription in list(self._subscribers.get(user_id, [])):
            if subscription.active:
                live.append(subscription)
            else:
                subscription.unsubscribe()
        return live

    def has_subscribers(self, user_id: str) -> bool:
        return bool(self._prune(user_id))

    def publish(self, user_id: str, records: list[SavedReceipt]) -> None:
        """Deliver a fresh copy of the full set to every active observer."""
        for subscription in self._prune(user_id):
            callback = subscription.callback
            if callback is not None:
                callback(list(records))


class RecordStoreInterface(ABC):
    """
    Abstract interface for the per-user receipt collection.

    Any backend (Google Sheets, in-memory, ...) implements the four
    primitives; the public operations below are shared.
    """

    def __init__(self):
        self._feed = SnapshotFeed()

    # -- backend primitives ---------------------------------------------

    @abstractmethod
    async def _fetch_all(self, user: AuthenticatedUser) -> list[SavedReceipt]:
        """Read every record in the user's namespace."""
        pass

    @abstractmethod
    async def _insert(self, user: AuthenticatedUser, record: ConfirmedReceipt) -> str:
        """Store a new record and return its assigned id."""
        pass

    @abstractmethod
    async def _overwrite(
        self,
        user: AuthenticatedUser,
        receipt_id: str,
        record: ConfirmedReceipt,
    ) -> None:
        """
        Replace all four fields of an existing record.

        Raises:
            NotFoundError: If the id is unknown
        """
        pass

    @abstractmethod
    async def _remove(self, user: AuthenticatedUser, receipt_id: str) -> None:
        """
        Delete a record.

        Raises:
            NotFoundError: If the id is unknown
        """
        pass

    # -- public operations ----------------------------------------------

    async def _publish(self, user: AuthenticatedUser) -> list[SavedReceipt]:
        records = sort_newest_first(await self._fetch_all(user))
        self._feed.publish(user.uid, records)
        return records

    async def _publish_after_write(self, user: AuthenticatedUser, operation: str) -> None:
        """Push the new snapshot; a failed re-read does not undo the write."""
        if not self._feed.has_subscribers(user.uid):
            return
        try:
            await self._publish(user)
        except Exception as e:
            logger.warning(
                "snapshot_publish_failed",
                user_id=user.uid,
                operation=operation,
                error=str(e),
            )

    async def subscribe(
        self,
        user: Optional[AuthenticatedUser],
        callback: SnapshotCallback,
    ) -> Subscription:
        """
        Register for live snapshots of the user's records.

        The callback receives the current set before this returns.
        If that first read fails nothing is registered.
        """
        user = require_user(user, "view receipts")
        records = sort_newest_first(await self._fetch_all(user))
        subscription = self._feed.add(user.uid, callback)
        callback(list(records))
        return subscription

    async def refresh(self, user: Optional[AuthenticatedUser]) -> list[SavedReceipt]:
        """Re-read the collection and publish it to every subscriber."""
        user = require_user(user, "view receipts")
        return await self._publish(user)

    async def create(
        self,
        user: Optional[AuthenticatedUser],
        record: ConfirmedReceipt,
    ) -> str:
        """Persist a confirmed receipt; returns the new id."""
        user = require_user(user, "save receipts")
        receipt_id = await self._insert(user, record)
        logger.info("record_created", user_id=user.uid, receipt_id=receipt_id)
        await self._publish_after_write(user, "create")
        return receipt_id

    async def update(
        self,
        user: Optional[AuthenticatedUser],
        receipt_id: str,
        record: ConfirmedReceipt,
    ) -> None:
        """Full overwrite of an existing record."""
        user = require_user(user, "update receipts")
        await self._overwrite(user, receipt_id, record)
        logger.info("record_updated", user_id=user.uid, receipt_id=receipt_id)
        await self._publish_after_write(user, "update")

    async def delete(self, user: Optional[AuthenticatedUser], receipt_id: str) -> None:
        """Remove a record by id."""
        user = require_user(user, "delete receipts")
        await self._remove(user, receipt_id)
        logger.info("record_deleted", user_id=user.uid, receipt_id=receipt_id)
        await self._publish_after_write(user, "delete")
