"""Tests for the push-only spreadsheet sync bridge."""

import asyncio
import json

import httpx
import pytest

from resiboko.errors import NotAuthenticatedError, SyncError
from resiboko.models.receipt import SyncStatus
from resiboko.services.sync import SheetSyncBridge


class FakeClock:

    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now


class RecordingHandler:
    """MockTransport handler that keeps every request it sees."""

    def __init__(self, response=None, error=None):
        self.requests = []
        self.response = response or httpx.Response(302, headers={"Location": "https://example.test/echo"})
        self.error = error

    def __call__(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error(request)
        return self.response


def make_bridge(handler, clock=None):
    return SheetSyncBridge(
        transport=httpx.MockTransport(handler),
        clock=clock or FakeClock(),
    )


class TestSyncBridge:

    def test_push_posts_every_record(self, user, weekly_records):
        handler = RecordingHandler()
        bridge = make_bridge(handler)

        assert asyncio.run(bridge.push(user, weekly_records)) is True

        assert len(handler.requests) == 1
        request = handler.requests[0]
        assert request.method == "POST"
        assert str(request.url) == "https://example.test/exec"
        body = json.loads(request.content)
        assert [r["transaction_name"] for r in body["receipts"]] == ["Jeepney", "Coffee"]
        assert body["receipts"][1]["total_amount"] == 120.0
        assert body["receipts"][1]["category"] == "Food & Drink"

    def test_error_status_still_counts_as_sent(self, user, weekly_records):
        bridge = make_bridge(RecordingHandler(response=httpx.Response(500)))

        assert asyncio.run(bridge.push(user, weekly_records)) is True
        assert bridge.status == SyncStatus.SYNCED

    def test_transport_failure_raises_and_returns_to_idle(self, user, weekly_records):
        def refuse(request):
            return httpx.ConnectError("connection refused", request=request)

        bridge = make_bridge(RecordingHandler(error=refuse))

        with pytest.raises(SyncError, match="Syncing failed"):
            asyncio.run(bridge.push(user, weekly_records))
        assert bridge.status == SyncStatus.IDLE

    def test_unexpected_error_returns_to_idle(self, user, weekly_records):
        def crash(request):
            raise RuntimeError("boom")

        bridge = make_bridge(crash)

        with pytest.raises(SyncError, match="boom"):
            asyncio.run(bridge.push(user, weekly_records))
        assert bridge.status == SyncStatus.IDLE

        handler = RecordingHandler()
        bridge._transport = httpx.MockTransport(handler)
        assert asyncio.run(bridge.push(user, weekly_records)) is True
        assert len(handler.requests) == 1

    def test_cancelled_push_returns_to_idle(self, user, weekly_records):
        bridge = make_bridge(RecordingHandler())

        async def scenario():
            started = asyncio.Event()

            async def hang(request):
                started.set()
                await asyncio.Event().wait()

            bridge._transport = httpx.MockTransport(hang)
            task = asyncio.ensure_future(bridge.push(user, weekly_records))
            await started.wait()
            assert bridge.status == SyncStatus.SYNCING
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(scenario())

        assert bridge.status == SyncStatus.IDLE

    def test_not_authenticated_sends_nothing(self, weekly_records):
        handler = RecordingHandler()
        bridge = make_bridge(handler)

        with pytest.raises(NotAuthenticatedError):
            asyncio.run(bridge.push(None, weekly_records))
        assert handler.requests == []
        assert bridge.status == SyncStatus.IDLE

    def test_synced_reverts_to_idle_after_display_delay(self, user, weekly_records):
        clock = FakeClock(now=100.0)
        bridge = make_bridge(RecordingHandler(), clock=clock)

        asyncio.run(bridge.push(user, weekly_records))
        assert bridge.status == SyncStatus.SYNCED

        clock.now = 102.0
        assert bridge.status == SyncStatus.SYNCED

        clock.now = 102.5
        assert bridge.status == SyncStatus.IDLE

    def test_push_while_synced_is_ignored(self, user, weekly_records):
        handler = RecordingHandler()
        clock = FakeClock()
        bridge = make_bridge(handler, clock=clock)

        asyncio.run(bridge.push(user, weekly_records))
        assert asyncio.run(bridge.push(user, weekly_records)) is False
        assert len(handler.requests) == 1

        clock.now += 10
        assert asyncio.run(bridge.push(user, weekly_records)) is True
        assert len(handler.requests) == 2

    def test_empty_record_list_is_still_pushed(self, user):
        handler = RecordingHandler()
        bridge = make_bridge(handler)

        asyncio.run(bridge.push(user, []))

        assert json.loads(handler.requests[0].content) == {"receipts": []}
