"""
Data Models Package

This package contains all Pydantic models used in ResiboKo.
All data flowing through the system must conform to these schemas.
"""

from resiboko.models.receipt import (
    DEFAULT_CATEGORY,
    MANUAL_ENTRY_DEFAULT_CATEGORY,
    UNCATEGORIZED_LABEL,
    AuthenticatedUser,
    CapturedBlob,
    CaptureSource,
    CategoryTotal,
    ConfirmedReceipt,
    HistoryView,
    PeriodFilter,
    PeriodWindow,
    ReceiptData,
    SavedReceipt,
    SyncStatus,
    TransactionCategory,
    ValidationIssue,
    ValidationResult,
    category_names,
    coerce_category,
    parse_record_date,
)
from resiboko.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Receipt models
    "DEFAULT_CATEGORY",
    "MANUAL_ENTRY_DEFAULT_CATEGORY",
    "UNCATEGORIZED_LABEL",
    "AuthenticatedUser",
    "CapturedBlob",
    "CaptureSource",
    "CategoryTotal",
    "ConfirmedReceipt",
    "HistoryView",
    "PeriodFilter",
    "PeriodWindow",
    "ReceiptData",
    "SavedReceipt",
    "SyncStatus",
    "TransactionCategory",
    "ValidationIssue",
    "ValidationResult",
    "category_names",
    "coerce_category",
    "parse_record_date",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
