"""
Main Orchestrator for ResiboKo

This module ties together all the components and defines the
end-to-end flows for:
1. Receipt capture (image / voice → AI candidate → review → save)
2. Editing and deleting saved receipts
3. Insights (question → answer, cash leak analysis)
4. History (period view → CSV export, push to the spreadsheet)

DESIGN DECISION: The orchestrator enforces the boundaries:
- No data persists without the user pressing Save
- Nothing incomplete reaches the store
- Every step is audited

This is the "glue" that ensures the system works correctly
even when individual components might behave unexpectedly.
"""

from datetime import date, datetime
from typing import Optional
from uuid import UUID

from resiboko.agents import GeminiReceiptClient
from resiboko.audit import AuditLogger, create_correlation_id, get_logger
from resiboko.config import AppSettings, get_settings
from resiboko.errors import (
    ExtractionError,
    IncompleteRecordError,
    ReceiptOutsideCurrentYearError,
    StorageError,
    SyncError,
)
from resiboko.history import build_history_view, export_filename, export_history_csv
from resiboko.models.receipt import (
    MANUAL_ENTRY_DEFAULT_CATEGORY,
    AuthenticatedUser,
    CapturedBlob,
    CaptureSource,
    HistoryView,
    PeriodFilter,
    ReceiptData,
    SavedReceipt,
)
from resiboko.services.storage import (
    GoogleSheetsRecordStore,
    InMemoryRecordStore,
    RecordStoreInterface,
    require_user,
)
from resiboko.services.sync import SheetSyncBridge
from resiboko.validation import ReceiptValidator


logger = get_logger(__name__)


def manual_entry_defaults(today: date) -> ReceiptData:
    """Blank manual-entry form: today's date, Transportation."""
    return ReceiptData(
        transaction_date=today.isoformat(),
        category=MANUAL_ENTRY_DEFAULT_CATEGORY,
    )


class ReceiptCaptureFlow:
    """
    Orchestrates capture, review and persistence of receipts.

    Flow:
    1. Capture → CapturedBlob (upload, camera or microphone)
    2. Extract → AI proposes a ReceiptData
    3. Review → Present to user (PAUSE - require confirmation)
    4. Confirm → Validator turns it into a ConfirmedReceipt
    5. Save → Store assigns an id; the live snapshot shows it

    The system NEVER auto-saves.
    """

    def __init__(
        self,
        ai_client: Optional[GeminiReceiptClient] = None,
        record_store: Optional[RecordStoreInterface] = None,
        validator: Optional[ReceiptValidator] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._settings = settings or get_settings().app
        self._ai_client = ai_client or GeminiReceiptClient(
            currency_symbol=self._settings.currency_symbol,
        )
        self._record_store = record_store or InMemoryRecordStore()
        self._validator = validator or ReceiptValidator()
        self._audit_logger = audit_logger or AuditLogger()

    @property
    def record_store(self) -> RecordStoreInterface:
        return self._record_store

    @property
    def validator(self) -> ReceiptValidator:
        return self._validator

    async def extract_from_image(
        self,
        blob: CapturedBlob,
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ReceiptData:
        """
        Ask the AI for a candidate receipt from a photo.

        Raises:
            ExtractionError: the AI call failed
            ReceiptOutsideCurrentYearError: the receipt is dated in another
                year and APP_RESTRICT_TO_CURRENT_YEAR is on
        """
        correlation_id = correlation_id or create_correlation_id()
        today = today or date.today()

        self._audit_logger.log_capture_received(
            source=blob.source.value,
            mime_type=blob.mime_type,
            size_bytes=blob.size_bytes,
            correlation_id=correlation_id,
        )

        try:
            receipt = await self._ai_client.extract_from_image(blob.data, blob.mime_type)
        except ExtractionError as e:
            self._audit_logger.log_extraction_failed(
                mode="image",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        self._audit_logger.log_extraction_completed(
            mode="image",
            missing_fields=receipt.missing_fields(),
            category=receipt.category.value if receipt.category else None,
            correlation_id=correlation_id,
        )

        receipt_date = receipt.parsed_date
        if (
            self._settings.restrict_to_current_year
            and receipt_date is not None
            and receipt_date.year != today.year
        ):
            self._audit_logger.log_receipt_rejected_outside_year(
                receipt_year=receipt_date.year,
                current_year=today.year,
                correlation_id=correlation_id,
            )
            raise ReceiptOutsideCurrentYearError(receipt_date.year, today.year)

        return receipt

    async def extract_from_voice(
        self,
        blob: CapturedBlob,
        current: Optional[ReceiptData] = None,
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> ReceiptData:
        """
        Ask the AI for a candidate receipt from a voice memo.

        When `current` (the form as the user left it) is given, only the
        fields the AI actually heard overwrite it.
        """
        correlation_id = correlation_id or create_correlation_id()
        today = today or date.today()

        self._audit_logger.log_capture_received(
            source=blob.source.value,
            mime_type=blob.mime_type,
            size_bytes=blob.size_bytes,
            correlation_id=correlation_id,
        )

        try:
            heard = await self._ai_client.extract_from_voice(blob.data, blob.mime_type, today)
        except ExtractionError as e:
            self._audit_logger.log_extraction_failed(
                mode="voice",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        self._audit_logger.log_extraction_completed(
            mode="voice",
            missing_fields=heard.missing_fields(),
            category=heard.category.value if heard.category else None,
            correlation_id=correlation_id,
        )

        if current is None:
            return heard
        return current.merged_with(heard)

    async def confirm_and_save(
        self,
        user: Optional[AuthenticatedUser],
        candidate: ReceiptData,
        correlation_id: Optional[UUID] = None,
    ) -> SavedReceipt:
        """
        Validate and persist a reviewed receipt.

        CRITICAL: This is called ONLY after the user pressed Save.

        Raises:
            NotAuthenticatedError: no signed-in user
            IncompleteRecordError: a required field is missing or invalid
            StorageError: the store rejected the write
        """
        correlation_id = correlation_id or create_correlation_id()
        user = require_user(user, "save receipts")

        try:
            confirmed = self._validator.require_complete(candidate)
        except IncompleteRecordError as e:
            self._audit_logger.log_save_blocked(
                missing_fields=e.missing_fields,
                correlation_id=correlation_id,
            )
            raise

        try:
            receipt_id = await self._record_store.create(user, confirmed)
        except StorageError as e:
            self._audit_logger.log_store_failed(
                operation="create",
                error_message=str(e),
                user_id=user.uid,
                correlation_id=correlation_id,
            )
            raise

        self._audit_logger.log_receipt_saved(
            receipt_id=receipt_id,
            user_id=user.uid,
            name=confirmed.transaction_name,
            amount=str(confirmed.total_amount),
            correlation_id=correlation_id,
        )
        return confirmed.to_saved(receipt_id)

    async def update_saved(
        self,
        user: Optional[AuthenticatedUser],
        receipt_id: str,
        candidate: ReceiptData,
        correlation_id: Optional[UUID] = None,
    ) -> SavedReceipt:
        """Overwrite all four fields of a saved receipt."""
        correlation_id = correlation_id or create_correlation_id()
        user = require_user(user, "update receipts")

        try:
            confirmed = self._validator.require_complete(candidate)
        except IncompleteRecordError as e:
            self._audit_logger.log_save_blocked(
                missing_fields=e.missing_fields,
                correlation_id=correlation_id,
            )
            raise

        try:
            await self._record_store.update(user, receipt_id, confirmed)
        except StorageError as e:
            self._audit_logger.log_store_failed(
                operation="update",
                error_message=str(e),
                user_id=user.uid,
                correlation_id=correlation_id,
            )
            raise

        self._audit_logger.log_receipt_updated(
            receipt_id=receipt_id,
            user_id=user.uid,
            correlation_id=correlation_id,
        )
        return confirmed.to_saved(receipt_id)

    async def delete(
        self,
        user: Optional[AuthenticatedUser],
        receipt_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Delete a saved receipt by id."""
        correlation_id = correlation_id or create_correlation_id()
        user = require_user(user, "delete receipts")

        try:
            await self._record_store.delete(user, receipt_id)
        except StorageError as e:
            self._audit_logger.log_store_failed(
                operation="delete",
                error_message=str(e),
                user_id=user.uid,
                correlation_id=correlation_id,
            )
            raise

        self._audit_logger.log_receipt_deleted(
            receipt_id=receipt_id,
            user_id=user.uid,
            correlation_id=correlation_id,
        )

    def discard(self, correlation_id: Optional[UUID] = None) -> None:
        """
        Record that the user threw away a candidate without saving.

        Nothing is written to the store.
        """
        self._audit_logger.log_user_discarded(correlation_id=correlation_id)

    def record_capture_failure(
        self,
        source: CaptureSource,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Audit a capture that never produced a usable blob."""
        self._audit_logger.log_capture_failed(
            source=source.value,
            error_message=error_message,
            correlation_id=correlation_id,
        )


class InsightsFlow:
    """
    Orchestrates the AI insights panel.

    The AI sees exactly the records in the current live snapshot,
    nothing else, and nothing it says is written back.
    """

    def __init__(
        self,
        ai_client: Optional[GeminiReceiptClient] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._ai_client = ai_client or GeminiReceiptClient(
            currency_symbol=get_settings().app.currency_symbol,
        )
        self._audit_logger = audit_logger or AuditLogger()

    async def ask(
        self,
        records: list[SavedReceipt],
        question: str,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[str]:
        """
        Answer a question about the user's spending.

        Returns None (no request made) for a blank question or when
        there are no records yet.
        """
        question = (question or "").strip()
        if not question or not records:
            return None

        correlation_id = correlation_id or create_correlation_id()
        try:
            answer = await self._ai_client.answer_question(records, question)
        except ExtractionError as e:
            self._audit_logger.log_insight_failed(
                kind="question",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        self._audit_logger.log_question_answered(
            record_count=len(records),
            question_length=len(question),
            correlation_id=correlation_id,
        )
        return answer

    async def find_cash_leaks(
        self,
        records: list[SavedReceipt],
        correlation_id: Optional[UUID] = None,
    ) -> str:
        """Run the cash leak rubric over the user's records."""
        correlation_id = correlation_id or create_correlation_id()
        try:
            analysis = await self._ai_client.find_cash_leaks(records)
        except ExtractionError as e:
            self._audit_logger.log_insight_failed(
                kind="cash_leaks",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        self._audit_logger.log_cash_leaks_analyzed(
            record_count=len(records),
            correlation_id=correlation_id,
        )
        return analysis


class HistoryFlow:
    """
    Period views, CSV export and the spreadsheet push.

    Stateless; the sync bridge carries per-session state and is passed in.
    """

    def __init__(self, audit_logger: Optional[AuditLogger] = None):
        self._audit_logger = audit_logger or AuditLogger()

    def view(
        self,
        records: list[SavedReceipt],
        period: PeriodFilter,
        now: Optional[datetime] = None,
    ) -> HistoryView:
        return build_history_view(records, period, now or datetime.now())

    def export(self, view: HistoryView, today: Optional[date] = None) -> tuple[str, str]:
        """
        Render the CSV for a view. Pure; see record_export() for the audit.

        Returns:
            (filename, csv_text)
        """
        filename = export_filename(view.period, today or date.today())
        return filename, export_history_csv(view)

    def record_export(self, view: HistoryView, filename: str) -> None:
        """Audit a download that the user actually triggered."""
        row_count = len(view.summary if view.is_summary else view.records or [])
        self._audit_logger.log_history_exported(
            period=view.period.value,
            row_count=row_count,
            filename=filename,
        )

    async def sync(
        self,
        bridge: SheetSyncBridge,
        user: Optional[AuthenticatedUser],
        records: list[SavedReceipt],
    ) -> bool:
        """Push every record through the bridge. False if the push was ignored."""
        try:
            sent = await bridge.push(user, records)
        except SyncError as e:
            self._audit_logger.log_sync_failed(
                user_id=user.uid if user else None,
                error_message=str(e),
            )
            raise

        if sent:
            self._audit_logger.log_sync_pushed(user_id=user.uid, record_count=len(records))
        return sent


def create_record_store(backend: Optional[str] = None) -> RecordStoreInterface:
    """Build the configured record store (APP_STORAGE_BACKEND)."""
    backend = backend or get_settings().app.storage_backend
    if backend == "memory":
        return InMemoryRecordStore()
    return GoogleSheetsRecordStore()


def create_app_components(
    storage_backend: Optional[str] = None,
) -> tuple[ReceiptCaptureFlow, InsightsFlow, HistoryFlow, RecordStoreInterface]:
    """
    Factory function to create all application components.

    Args:
        storage_backend: "sheets" or "memory"; defaults to APP_STORAGE_BACKEND.

    Returns:
        (capture_flow, insights_flow, history_flow, record_store)
    """
    settings = get_settings().app
    audit_logger = AuditLogger()
    ai_client = GeminiReceiptClient(currency_symbol=settings.currency_symbol)

    try:
        record_store = create_record_store(storage_backend)
    except Exception as e:
        # Sheets not configured - continue with local storage
        logger.warning("storage_not_configured", error=str(e))
        record_store = InMemoryRecordStore()

    capture_flow = ReceiptCaptureFlow(
        ai_client=ai_client,
        record_store=record_store,
        audit_logger=audit_logger,
        settings=settings,
    )
    insights_flow = InsightsFlow(ai_client=ai_client, audit_logger=audit_logger)
    history_flow = HistoryFlow(audit_logger=audit_logger)

    return capture_flow, insights_flow, history_flow, record_store
