"""
Tests for the record stores.

Both backends share the same public contract, so most tests run against
each of them. The Sheets store talks to an in-process fake worksheet.
"""

import asyncio
import gc
from datetime import date
from decimal import Decimal

import pytest

from resiboko.errors import NotAuthenticatedError, NotFoundError, StorageError
from resiboko.models.receipt import ConfirmedReceipt, TransactionCategory
from resiboko.services.storage import (
    RECEIPT_COLUMNS,
    GoogleSheetsRecordStore,
    InMemoryRecordStore,
    receipt_to_row,
    row_to_receipt,
)


class FakeWorksheet:
    """The handful of gspread.Worksheet calls the store makes."""

    def __init__(self, title):
        self.title = title
        self.rows = [list(RECEIPT_COLUMNS)]
        self.calls = []

    def get_all_values(self):
        self.calls.append("get_all_values")
        return [list(row) for row in self.rows]

    def append_row(self, values, value_input_option=None):
        self.calls.append("append_row")
        self.rows.append([str(v) for v in values])

    def update(self, range_name=None, values=None, value_input_option=None):
        self.calls.append("update")
        idx = int(range_name.split(":")[0][1:])
        self.rows[idx - 1] = [str(v) for v in values[0]]

    def delete_rows(self, index):
        self.calls.append("delete_rows")
        del self.rows[index - 1]


class FakeSheetsClient:
    """Stands in for GoogleSheetsClient: one FakeWorksheet per uid."""

    def __init__(self):
        self.sheets = {}

    def get_user_sheet(self, uid):
        return self.sheets.setdefault(uid, FakeWorksheet(f"receipts_{uid}"))


@pytest.fixture(params=["memory", "sheets"])
def store(request):
    if request.param == "memory":
        return InMemoryRecordStore()
    return GoogleSheetsRecordStore(client=FakeSheetsClient())


def confirmed(name, amount, day, category=TransactionCategory.OTHER):
    return ConfirmedReceipt(
        transaction_name=name,
        total_amount=Decimal(amount),
        transaction_date=day,
        category=category,
    )


JEEPNEY = confirmed("Jeepney", "15", date(2025, 3, 3), TransactionCategory.TRANSPORTATION)
COFFEE = confirmed("Coffee", "120", date(2025, 3, 5), TransactionCategory.FOOD_AND_DRINK)


class TestRecordStoreContract:

    def test_subscribe_delivers_immediately(self, store, user):
        deliveries = []

        async def scenario():
            await store.create(user, JEEPNEY)
            await store.subscribe(user, deliveries.append)

        asyncio.run(scenario())

        assert len(deliveries) == 1
        assert [r.transaction_name for r in deliveries[0]] == ["Jeepney"]

    def test_every_write_publishes_the_full_set(self, store, user):
        deliveries = []

        async def scenario():
            await store.subscribe(user, deliveries.append)
            receipt_id = await store.create(user, JEEPNEY)
            await store.create(user, COFFEE)
            await store.update(user, receipt_id, confirmed(
                "Jeepney (Cubao)", "20", date(2025, 3, 3), TransactionCategory.TRANSPORTATION,
            ))
            await store.delete(user, receipt_id)

        asyncio.run(scenario())

        assert [len(d) for d in deliveries] == [0, 1, 2, 2, 1]
        assert [r.transaction_name for r in deliveries[3]] == ["Coffee", "Jeepney (Cubao)"]
        assert deliveries[3][1].total_amount == Decimal("20")
        assert [r.transaction_name for r in deliveries[4]] == ["Coffee"]

    def test_snapshots_are_newest_first(self, store, user):
        deliveries = []

        async def scenario():
            await store.create(user, JEEPNEY)
            await store.create(user, COFFEE)
            await store.create(user, confirmed("Load", "50", date(2025, 1, 2)))
            await store.subscribe(user, deliveries.append)

        asyncio.run(scenario())

        assert [r.transaction_date for r in deliveries[0]] == [
            "2025-03-05", "2025-03-03", "2025-01-02",
        ]

    def test_update_keeps_the_id(self, store, user):
        async def scenario():
            receipt_id = await store.create(user, JEEPNEY)
            await store.update(user, receipt_id, COFFEE)
            return receipt_id, await store.refresh(user)

        receipt_id, records = asyncio.run(scenario())

        assert [r.id for r in records] == [receipt_id]
        assert records[0].transaction_name == "Coffee"
        assert records[0].category == TransactionCategory.FOOD_AND_DRINK

    def test_ids_are_unique(self, store, user):
        async def scenario():
            return [await store.create(user, JEEPNEY) for _ in range(3)]

        ids = asyncio.run(scenario())

        assert len(set(ids)) == 3

    def test_unknown_id(self, store, user):
        with pytest.raises(NotFoundError):
            asyncio.run(store.update(user, "missing", JEEPNEY))
        with pytest.raises(NotFoundError):
            asyncio.run(store.delete(user, "missing"))

    def test_users_are_isolated(self, store, user, other_user):
        mine, theirs = [], []

        async def scenario():
            await store.subscribe(user, mine.append)
            await store.subscribe(other_user, theirs.append)
            await store.create(user, JEEPNEY)

        asyncio.run(scenario())

        assert [len(d) for d in mine] == [0, 1]
        assert [len(d) for d in theirs] == [0]

    def test_unsubscribe_stops_deliveries(self, store, user):
        deliveries = []

        async def scenario():
            subscription = await store.subscribe(user, deliveries.append)
            subscription.unsubscribe()
            subscription.unsubscribe()
            await store.create(user, JEEPNEY)
            return subscription

        subscription = asyncio.run(scenario())

        assert subscription.active is False
        assert len(deliveries) == 1

    def test_refresh_publishes(self, store, user):
        deliveries = []

        async def scenario():
            await store.subscribe(user, deliveries.append)
            return await store.refresh(user)

        records = asyncio.run(scenario())

        assert records == []
        assert len(deliveries) == 2

    def test_deliveries_are_independent_copies(self, store, user):
        first, second = [], []

        async def scenario():
            await store.create(user, JEEPNEY)
            await store.subscribe(user, first.append)
            await store.subscribe(user, second.append)
            await store.refresh(user)

        asyncio.run(scenario())

        first[-1].clear()
        assert len(second[-1]) == 1


class TestAuthentication:

    @pytest.mark.parametrize("operation", ["subscribe", "refresh", "create", "update", "delete"])
    def test_anonymous_access_is_rejected(self, operation):
        client = FakeSheetsClient()
        store = GoogleSheetsRecordStore(client=client)
        calls = {
            "subscribe": lambda: store.subscribe(None, lambda records: None),
            "refresh": lambda: store.refresh(None),
            "create": lambda: store.create(None, JEEPNEY),
            "update": lambda: store.update(None, "id", JEEPNEY),
            "delete": lambda: store.delete(None, "id"),
        }

        with pytest.raises(NotAuthenticatedError, match="You must be logged in"):
            asyncio.run(calls[operation]())

        assert client.sheets == {}

    def test_message_names_the_action(self):
        with pytest.raises(NotAuthenticatedError) as exc_info:
            asyncio.run(InMemoryRecordStore().create(None, JEEPNEY))
        assert str(exc_info.value) == "You must be logged in to save receipts."


class TestSheetsRows:

    def test_receipt_to_row(self):
        row = receipt_to_row("abc", COFFEE, created_at="t1", updated_at="t2")
        assert row == ["abc", "Coffee", "120", "2025-03-05", "Food & Drink", "t1", "t2"]

    def test_row_to_receipt(self):
        receipt = row_to_receipt(["abc", "Coffee", "120", "2025-03-05", "Food & Drink", "t1", "t2"])
        assert receipt.id == "abc"
        assert receipt.total_amount == Decimal("120")
        assert receipt.category == TransactionCategory.FOOD_AND_DRINK

    def test_hand_edited_row_is_parsed_leniently(self):
        receipt = row_to_receipt(["abc", "  Rice ", "1,250.50", "2025-03-05", "Food"])
        assert receipt.transaction_name == "Rice"
        assert receipt.total_amount == Decimal("1250.50")
        assert receipt.category is None

    @pytest.mark.parametrize("raw_amount", ["abc", "-5", "NaN", ""])
    def test_bad_amount_becomes_none(self, raw_amount):
        receipt = row_to_receipt(["abc", "Rice", raw_amount, "2025-03-05", "Groceries"])
        assert receipt.total_amount is None

    def test_row_without_id_is_skipped(self):
        assert row_to_receipt(["", "Rice", "10"]) is None
        assert row_to_receipt([]) is None


class TestGoogleSheetsStore:

    def test_update_preserves_created_at(self, user):
        client = FakeSheetsClient()
        store = GoogleSheetsRecordStore(client=client)

        async def scenario():
            receipt_id = await store.create(user, JEEPNEY)
            sheet = client.get_user_sheet(user.uid)
            sheet.rows[1][5] = "2025-03-03T00:00:00+00:00"
            await store.update(user, receipt_id, COFFEE)
            return sheet

        sheet = asyncio.run(scenario())

        assert sheet.rows[1][5] == "2025-03-03T00:00:00+00:00"
        assert sheet.rows[1][6] != "2025-03-03T00:00:00+00:00"
        assert sheet.rows[1][1] == "Coffee"

    def test_delete_removes_the_row(self, user):
        client = FakeSheetsClient()
        store = GoogleSheetsRecordStore(client=client)

        async def scenario():
            first = await store.create(user, JEEPNEY)
            await store.create(user, COFFEE)
            await store.delete(user, first)

        asyncio.run(scenario())

        rows = client.get_user_sheet(user.uid).rows
        assert rows[0] == RECEIPT_COLUMNS
        assert [row[1] for row in rows[1:]] == ["Coffee"]

    def test_create_without_subscribers_does_not_reread(self, user):
        client = FakeSheetsClient()
        store = GoogleSheetsRecordStore(client=client)

        asyncio.run(store.create(user, JEEPNEY))

        assert client.get_user_sheet(user.uid).calls == ["append_row"]

    def test_rows_in_each_users_own_sheet(self, user, other_user):
        client = FakeSheetsClient()
        store = GoogleSheetsRecordStore(client=client)

        async def scenario():
            await store.create(user, JEEPNEY)
            await store.create(other_user, COFFEE)

        asyncio.run(scenario())

        assert [row[1] for row in client.sheets[user.uid].rows[1:]] == ["Jeepney"]
        assert [row[1] for row in client.sheets[other_user.uid].rows[1:]] == ["Coffee"]


class FlakyReadStore(InMemoryRecordStore):
    """Reads start failing once `fail_reads` is switched on."""

    def __init__(self):
        super().__init__()
        self.fail_reads = False

    async def _fetch_all(self, user):
        if self.fail_reads:
            raise StorageError("read quota exceeded")
        return await super()._fetch_all(user)


class SessionSnapshot:
    """Plays the part of a UI session's snapshot holder."""

    def __init__(self):
        self.records = None

    def replace(self, records):
        self.records = records


class TestSnapshotFailures:

    def test_write_succeeds_when_reread_fails(self, user):
        store = FlakyReadStore()
        deliveries = []

        async def scenario():
            await store.subscribe(user, deliveries.append)
            store.fail_reads = True
            receipt_id = await store.create(user, JEEPNEY)
            store.fail_reads = False
            return receipt_id, await store.refresh(user)

        receipt_id, records = asyncio.run(scenario())

        assert [r.id for r in records] == [receipt_id]
        assert [len(d) for d in deliveries] == [0, 1]

    def test_update_and_delete_succeed_when_reread_fails(self, user):
        store = FlakyReadStore()

        async def scenario():
            receipt_id = await store.create(user, JEEPNEY)
            await store.subscribe(user, lambda records: None)
            store.fail_reads = True
            await store.update(user, receipt_id, COFFEE)
            await store.delete(user, receipt_id)
            store.fail_reads = False
            return await store.refresh(user)

        assert asyncio.run(scenario()) == []

    def test_failed_subscribe_registers_nothing(self, user):
        store = FlakyReadStore()
        store.fail_reads = True

        with pytest.raises(StorageError):
            asyncio.run(store.subscribe(user, lambda records: None))

        assert store._feed.has_subscribers(user.uid) is False

    def test_gone_session_drops_out_of_the_feed(self, user):
        store = InMemoryRecordStore()
        session = SessionSnapshot()

        asyncio.run(store.subscribe(user, session.replace))
        assert session.records == []
        assert store._feed.has_subscribers(user.uid) is True

        del session
        gc.collect()

        assert store._feed.has_subscribers(user.uid) is False
        asyncio.run(store.create(user, JEEPNEY))

    def test_live_session_keeps_receiving(self, user):
        store = InMemoryRecordStore()
        session = SessionSnapshot()

        async def scenario():
            await store.subscribe(user, session.replace)
            await store.create(user, JEEPNEY)

        asyncio.run(scenario())

        assert [r.transaction_name for r in session.records] == ["Jeepney"]
