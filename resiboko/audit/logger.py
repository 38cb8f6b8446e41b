"""
Audit Logger

DESIGN DECISION: Every significant action in the system is logged.
This provides:
1. Traceability of capture → confirm → save
2. Debugging capability when the AI or the store misbehaves

The audit logger:
- Writes to the local structured log only (nothing is persisted remotely)
- Is synchronous and cheap; it runs inline with every flow step
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from resiboko.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def get_logger(name: Optional[str] = None):
    """Module-level structured logger."""
    return structlog.get_logger(name)


class AuditLogger:
    """
    Central audit logging service.

    Events go to the local structured log, routed by severity.
    """

    def __init__(self, logger=None):
        self._logger = logger or structlog.get_logger("resiboko.audit")

    def log(self, event: AuditEvent) -> None:
        """Log an audit event."""
        log_dict = event.to_log_dict()

        if event.severity == AuditSeverity.ERROR:
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

    def log_capture_received(
        self,
        source: str,
        mime_type: str,
        size_bytes: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.capture_received(
            source=source,
            mime_type=mime_type,
            size_bytes=size_bytes,
            correlation_id=correlation_id,
        ))

    def log_capture_failed(
        self,
        source: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.capture_failed(
            source=source,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_extraction_completed(
        self,
        mode: str,
        missing_fields: list[str],
        category: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.extraction_completed(
            mode=mode,
            missing_fields=missing_fields,
            category=category,
            correlation_id=correlation_id,
        ))

    def log_extraction_failed(
        self,
        mode: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.extraction_failed(
            mode=mode,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_receipt_rejected_outside_year(
        self,
        receipt_year: int,
        current_year: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.receipt_rejected_outside_year(
            receipt_year=receipt_year,
            current_year=current_year,
            correlation_id=correlation_id,
        ))

    def log_save_blocked(
        self,
        missing_fields: list[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.save_blocked_incomplete(
            missing_fields=missing_fields,
            correlation_id=correlation_id,
        ))

    def log_user_discarded(self, correlation_id: Optional[UUID] = None) -> None:
        self.log(AuditEventBuilder.user_discarded(correlation_id=correlation_id))

    def log_receipt_saved(
        self,
        receipt_id: str,
        user_id: str,
        name: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.receipt_saved(
            receipt_id=receipt_id,
            user_id=user_id,
            name=name,
            amount=amount,
            correlation_id=correlation_id,
        ))

    def log_receipt_updated(
        self,
        receipt_id: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.receipt_updated(
            receipt_id=receipt_id,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    def log_receipt_deleted(
        self,
        receipt_id: str,
        user_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.receipt_deleted(
            receipt_id=receipt_id,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    def log_store_failed(
        self,
        operation: str,
        error_message: str,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.store_failed(
            operation=operation,
            error_message=error_message,
            user_id=user_id,
            correlation_id=correlation_id,
        ))

    def log_question_answered(
        self,
        record_count: int,
        question_length: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.question_answered(
            record_count=record_count,
            question_length=question_length,
            correlation_id=correlation_id,
        ))

    def log_cash_leaks_analyzed(
        self,
        record_count: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.cash_leaks_analyzed(
            record_count=record_count,
            correlation_id=correlation_id,
        ))

    def log_insight_failed(
        self,
        kind: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.insight_failed(
            kind=kind,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    def log_history_exported(self, period: str, row_count: int, filename: str) -> None:
        self.log(AuditEventBuilder.history_exported(
            period=period,
            row_count=row_count,
            filename=filename,
        ))

    def log_sync_pushed(self, user_id: str, record_count: int) -> None:
        self.log(AuditEventBuilder.sync_pushed(user_id=user_id, record_count=record_count))

    def log_sync_failed(self, user_id: Optional[str], error_message: str) -> None:
        self.log(AuditEventBuilder.sync_failed(user_id=user_id, error_message=error_message))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a receipt scan).
    Pass it through all subsequent operations.
    """
    return uuid4()
