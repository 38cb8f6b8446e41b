"""
Google Sheets Record Store

DESIGN DECISION: Google Sheets is used as the storage backend because:
1. Users can open their own receipts directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)

Each user gets their own worksheet, named <prefix><uid>
(receipts_<uid> by default). The uid scopes every read and write,
so one user can never see another user's rows.

TRADEOFFS:
- Not suitable for high-volume data (fine for personal receipts)
- No transactions (one row per receipt, updated in place)
- No server-side queries (we read the sheet and filter in Python)
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Optional
from uuid import uuid4

import gspread
from google.oauth2.service_account import Credentials
from tenacity import retry, retry_if_not_exception_type, stop_after_attempt, wait_exponential

from resiboko.config import GoogleSheetsSettings, get_settings
from resiboko.errors import NotFoundError, StorageConnectionError, StorageError
from resiboko.models.receipt import (
    AuthenticatedUser,
    ConfirmedReceipt,
    SavedReceipt,
    TransactionCategory,
)
from resiboko.services.storage.interface import RecordStoreInterface


# Column layout of every per-user worksheet
RECEIPT_COLUMNS = [
    "id",
    "transaction_name",
    "total_amount",
    "transaction_date",
    "category",
    "created_at",
    "updated_at",
]

_LAST_COLUMN = chr(ord("A") + len(RECEIPT_COLUMNS) - 1)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for the connection.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._worksheets: dict[str, gspread.Worksheet] = {}
        self._settings = settings or get_settings().google_sheets

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError as e:
                raise StorageConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                ) from e
            except Exception as e:
                raise StorageConnectionError(f"Failed to connect to Google Sheets: {e}") from e

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound as e:
                raise StorageConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                ) from e
        return self._spreadsheet

    def worksheet_title(self, uid: str) -> str:
        return f"{self._settings.worksheet_prefix}{uid}"

    def get_user_sheet(self, uid: str) -> gspread.Worksheet:
        """Get or create the worksheet holding one user's receipts."""
        title = self.worksheet_title(uid)
        if title in self._worksheets:
            return self._worksheets[title]

        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            # Create the sheet with headers
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(RECEIPT_COLUMNS),
            )
            sheet.append_row(RECEIPT_COLUMNS)

        self._worksheets[title] = sheet
        return sheet


def receipt_to_row(
    receipt_id: str,
    record: ConfirmedReceipt,
    created_at: str,
    updated_at: str,
) -> list[str]:
    """Convert a confirmed receipt to a spreadsheet row."""
    doc = record.to_document()
    return [
        receipt_id,
        doc["transaction_name"],
        doc["total_amount"],
        doc["transaction_date"],
        doc["category"],
        created_at,
        updated_at,
    ]


def row_to_receipt(row: list) -> Optional[SavedReceipt]:
    """
    Convert a spreadsheet row to a SavedReceipt.

    Rows can be edited by hand in Sheets, so every field is parsed
    leniently: a bad amount or an unknown category becomes None
    rather than dropping the row. Rows without an id are skipped.
    """
    def safe_get(index: int) -> str:
        try:
            return str(row[index]).strip()
        except IndexError:
            return ""

    receipt_id = safe_get(0)
    if not receipt_id:
        return None

    amount = None
    raw_amount = safe_get(2).replace(",", "")
    if raw_amount:
        try:
            amount = Decimal(raw_amount)
        except InvalidOperation:
            amount = None
        if amount is not None and (not amount.is_finite() or amount < 0):
            amount = None

    category = None
    raw_category = safe_get(4)
    for member in TransactionCategory:
        if member.value == raw_category:
            category = member
            break

    return SavedReceipt(
        id=receipt_id,
        transaction_name=safe_get(1)[:200] or None,
        total_amount=amount,
        transaction_date=safe_get(3) or None,
        category=category,
    )


_write_retry = retry(
    retry=retry_if_not_exception_type(NotFoundError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


class GoogleSheetsRecordStore(RecordStoreInterface):
    """
    Google Sheets implementation of the record store.

    One receipt per row in the user's worksheet.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        super().__init__()
        self._client = client or GoogleSheetsClient()

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()

    def _find_row(self, sheet, receipt_id: str) -> tuple[int, list]:
        """1-based sheet row index and values for an id (row 1 is the header)."""
        all_rows = sheet.get_all_values()
        for idx, row in enumerate(all_rows[1:], start=2):
            if row and row[0] == receipt_id:
                return idx, row
        raise NotFoundError(f"Receipt not found: {receipt_id}")

    async def _fetch_all(self, user: AuthenticatedUser) -> list[SavedReceipt]:
        try:
            sheet = self._client.get_user_sheet(user.uid)
            all_rows = sheet.get_all_values()[1:]  # Skip header
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to read receipts: {e}") from e

        receipts = []
        for row in all_rows:
            receipt = row_to_receipt(row)
            if receipt is not None:
                receipts.append(receipt)
        return receipts

    @_write_retry
    async def _insert(self, user: AuthenticatedUser, record: ConfirmedReceipt) -> str:
        receipt_id = uuid4().hex
        now = self._now()
        try:
            sheet = self._client.get_user_sheet(user.uid)
            sheet.append_row(
                receipt_to_row(receipt_id, record, created_at=now, updated_at=now),
                value_input_option="RAW",
            )
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to save receipt: {e}") from e
        return receipt_id

    @_write_retry
    async def _overwrite(
        self,
        user: AuthenticatedUser,
        receipt_id: str,
        record: ConfirmedReceipt,
    ) -> None:
        try:
            sheet = self._client.get_user_sheet(user.uid)
            idx, existing = self._find_row(sheet, receipt_id)
            created_at = existing[5] if len(existing) > 5 and existing[5] else self._now()
            new_row = receipt_to_row(receipt_id, record, created_at=created_at, updated_at=self._now())
            sheet.update(
                range_name=f"A{idx}:{_LAST_COLUMN}{idx}",
                values=[new_row],
                value_input_option="RAW",
            )
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to update receipt: {e}") from e

    @_write_retry
    async def _remove(self, user: AuthenticatedUser, receipt_id: str) -> None:
        try:
            sheet = self._client.get_user_sheet(user.uid)
            idx, _ = self._find_row(sheet, receipt_id)
            sheet.delete_rows(idx)
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to delete receipt: {e}") from e
