"""
Audit Models for ResiboKo

Every significant action in the system produces an audit event.
This provides:
1. Traceability of what the user did and what the AI returned
2. Debugging information when things go wrong
3. A single vocabulary for the local structured log

DESIGN DECISION: Audit events are written to the local log only.
They are never persisted to the record store or any other remote.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every step of the capture → confirm → store pipeline has its own type.
    """
    # Capture
    CAPTURE_RECEIVED = "capture_received"
    CAPTURE_FAILED = "capture_failed"

    # AI extraction
    EXTRACTION_COMPLETED = "extraction_completed"
    EXTRACTION_FAILED = "extraction_failed"
    RECEIPT_REJECTED_OUTSIDE_YEAR = "receipt_rejected_outside_year"

    # Human confirmation
    SAVE_BLOCKED_INCOMPLETE = "save_blocked_incomplete"
    USER_DISCARDED = "user_discarded"

    # Persistence
    RECEIPT_SAVED = "receipt_saved"
    RECEIPT_UPDATED = "receipt_updated"
    RECEIPT_DELETED = "receipt_deleted"
    STORE_FAILED = "store_failed"

    # Insights
    QUESTION_ANSWERED = "question_answered"
    CASH_LEAKS_ANALYZED = "cash_leaks_analyzed"
    INSIGHT_FAILED = "insight_failed"

    # History
    HISTORY_EXPORTED = "history_exported"
    SYNC_PUSHED = "sync_pushed"
    SYNC_FAILED = "sync_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.now,
        description="When the event occurred (local time)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'receipt', 'blob', 'question')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )
    user_id: Optional[str] = Field(
        default=None,
        description="uid of the acting user, when known"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one capture → save flow)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "user_id": self.user_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.capture_received("camera", "image/jpeg", 2048, correlation_id)
        event = AuditEventBuilder.receipt_saved(receipt_id, user_id, "Jollibee", "250", correlation_id)
    """

    @staticmethod
    def capture_received(
        source: str,
        mime_type: str,
        size_bytes: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CAPTURE_RECEIVED,
            entity_type="blob",
            correlation_id=correlation_id,
            description=f"Captured {mime_type} from {source}",
            details={
                "source": source,
                "mime_type": mime_type,
                "size_bytes": size_bytes,
            },
            is_user_action=True,
        )

    @staticmethod
    def capture_failed(
        source: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CAPTURE_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="blob",
            correlation_id=correlation_id,
            description=f"Capture from {source} failed",
            error_message=error_message,
            details={"source": source},
        )

    @staticmethod
    def extraction_completed(
        mode: str,
        missing_fields: list[str],
        category: Optional[str],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_COMPLETED,
            entity_type="extraction",
            correlation_id=correlation_id,
            description=f"{mode.capitalize()} extraction completed",
            details={
                "mode": mode,
                "missing_fields": missing_fields,
                "category": category,
            },
        )

    @staticmethod
    def extraction_failed(
        mode: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="extraction",
            correlation_id=correlation_id,
            description=f"{mode.capitalize()} extraction failed",
            error_message=error_message,
            details={"mode": mode},
        )

    @staticmethod
    def receipt_rejected_outside_year(
        receipt_year: int,
        current_year: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_REJECTED_OUTSIDE_YEAR,
            severity=AuditSeverity.WARNING,
            entity_type="extraction",
            correlation_id=correlation_id,
            description=f"Receipt from {receipt_year} rejected (current year {current_year})",
            details={
                "receipt_year": receipt_year,
                "current_year": current_year,
            },
        )

    @staticmethod
    def save_blocked_incomplete(
        missing_fields: list[str],
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_BLOCKED_INCOMPLETE,
            severity=AuditSeverity.WARNING,
            entity_type="receipt",
            correlation_id=correlation_id,
            description=f"Save blocked: {len(missing_fields)} field(s) missing",
            details={"missing_fields": missing_fields},
            is_user_action=True,
        )

    @staticmethod
    def user_discarded(correlation_id: Optional[UUID] = None) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_DISCARDED,
            entity_type="extraction",
            correlation_id=correlation_id,
            description="User discarded the extracted receipt",
            is_user_action=True,
        )

    @staticmethod
    def receipt_saved(
        receipt_id: str,
        user_id: str,
        name: str,
        amount: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_SAVED,
            entity_type="receipt",
            entity_id=receipt_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Receipt saved: {name} - ₱{amount}",
            details={
                "transaction_name": name,
                "total_amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def receipt_updated(
        receipt_id: str,
        user_id: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_UPDATED,
            entity_type="receipt",
            entity_id=receipt_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description="Receipt overwritten with edited values",
            is_user_action=True,
        )

    @staticmethod
    def receipt_deleted(
        receipt_id: str,
        user_id: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECEIPT_DELETED,
            entity_type="receipt",
            entity_id=receipt_id,
            user_id=user_id,
            correlation_id=correlation_id,
            description="Receipt deleted",
            is_user_action=True,
        )

    @staticmethod
    def store_failed(
        operation: str,
        error_message: str,
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORE_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="receipt",
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"Record store {operation} failed",
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def question_answered(
        record_count: int,
        question_length: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.QUESTION_ANSWERED,
            entity_type="question",
            correlation_id=correlation_id,
            description=f"Answered a question over {record_count} transactions",
            details={
                "record_count": record_count,
                "question_length": question_length,
            },
            is_user_action=True,
        )

    @staticmethod
    def cash_leaks_analyzed(
        record_count: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CASH_LEAKS_ANALYZED,
            entity_type="analysis",
            correlation_id=correlation_id,
            description=f"Cash leak analysis over {record_count} transactions",
            details={"record_count": record_count},
            is_user_action=True,
        )

    @staticmethod
    def insight_failed(
        kind: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.INSIGHT_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="analysis",
            correlation_id=correlation_id,
            description=f"{kind} failed",
            error_message=error_message,
            details={"kind": kind},
        )

    @staticmethod
    def history_exported(
        period: str,
        row_count: int,
        filename: str
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.HISTORY_EXPORTED,
            entity_type="export",
            description=f"Exported {row_count} rows for {period}",
            details={
                "period": period,
                "row_count": row_count,
                "filename": filename,
            },
            is_user_action=True,
        )

    @staticmethod
    def sync_pushed(user_id: str, record_count: int) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_PUSHED,
            entity_type="sync",
            user_id=user_id,
            description=f"Pushed {record_count} receipts to the spreadsheet webhook",
            details={"record_count": record_count},
            is_user_action=True,
        )

    @staticmethod
    def sync_failed(user_id: Optional[str], error_message: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYNC_FAILED,
            severity=AuditSeverity.ERROR,
            entity_type="sync",
            user_id=user_id,
            description="Spreadsheet sync failed",
            error_message=error_message,
        )
