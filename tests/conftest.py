"""
Shared fixtures.

Every test runs against a fixed, fake configuration and never touches
the network: Gemini is replaced by a stub model, Google Sheets by a
fake worksheet, the webhook by httpx.MockTransport.
"""

import json
from datetime import date

import pytest

from resiboko.config import get_settings
from resiboko.models.receipt import AuthenticatedUser, SavedReceipt, TransactionCategory


@pytest.fixture(autouse=True)
def _fake_environment(tmp_path, monkeypatch):
    """Point every settings class at test values and reset the settings cache."""
    credentials = tmp_path / "credentials.json"
    credentials.write_text("{}")

    monkeypatch.setenv("GEMINI_API_KEY", "test-key")
    monkeypatch.setenv("GOOGLE_SHEETS_CREDENTIALS_PATH", str(credentials))
    monkeypatch.setenv("GOOGLE_SHEETS_SPREADSHEET_ID", "test-spreadsheet")
    monkeypatch.setenv("SYNC_WEBHOOK_URL", "https://example.test/exec")
    monkeypatch.setenv("APP_STORAGE_BACKEND", "memory")
    monkeypatch.chdir(tmp_path)

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class StubResponse:
    """Mimics a GenerateContentResponse: only .text is used."""

    def __init__(self, text):
        self._text = text

    @property
    def text(self):
        if isinstance(self._text, Exception):
            raise self._text
        return self._text


class StubModel:
    """
    Stands in for genai.GenerativeModel.

    Each queued item is raised if it is an exception, returned as-is if
    it is already a StubResponse, and wrapped as the response text
    otherwise. Every call is recorded.
    """

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    async def generate_content_async(self, contents, generation_config=None):
        self.calls.append({"contents": contents, "generation_config": generation_config})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        if isinstance(item, StubResponse):
            return item
        return StubResponse(item)


@pytest.fixture
def stub_model():
    """Factory: stub_model({"transaction_name": ...}, RuntimeError(...), "text", ...)"""
    def _make(*responses):
        return StubModel(*(
            json.dumps(r) if isinstance(r, dict) else r
            for r in responses
        ))
    return _make


@pytest.fixture
def blocked_response():
    """A response whose .text raises, like a safety-blocked candidate."""
    return StubResponse(ValueError("The response was blocked"))


class RecordingLogger:
    """Collects what AuditLogger sends to structlog."""

    def __init__(self):
        self.entries = []

    def _record(self, level, event, **kwargs):
        self.entries.append({"level": level, "event": event, **kwargs})

    def debug(self, event, **kwargs):
        self._record("debug", event, **kwargs)

    def info(self, event, **kwargs):
        self._record("info", event, **kwargs)

    def warning(self, event, **kwargs):
        self._record("warning", event, **kwargs)

    def error(self, event, **kwargs):
        self._record("error", event, **kwargs)

    def event_types(self):
        return [entry["event_type"] for entry in self.entries]


@pytest.fixture
def recording_logger():
    return RecordingLogger()


@pytest.fixture
def user():
    return AuthenticatedUser(uid="user-123", display_name="Juan dela Cruz", email="juan@example.com")


@pytest.fixture
def other_user():
    return AuthenticatedUser(uid="user-456", display_name="Maria Clara")


@pytest.fixture
def today():
    return date(2025, 3, 6)


@pytest.fixture
def weekly_records():
    """The Jeepney / Coffee week."""
    return [
        SavedReceipt(
            id="r1",
            transaction_name="Jeepney",
            total_amount=15,
            transaction_date="2025-03-03",
            category=TransactionCategory.TRANSPORTATION,
        ),
        SavedReceipt(
            id="r2",
            transaction_name="Coffee",
            total_amount=120,
            transaction_date="2025-03-05",
            category=TransactionCategory.FOOD_AND_DRINK,
        ),
    ]
