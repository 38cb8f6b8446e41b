"""
Core Data Models for ResiboKo

These models define the schemas for all data flowing through the system.
They are designed to:
1. Keep the category list in exactly one place
2. Separate what the AI proposes from what the user confirms
3. Be serializable for the record store, the CSV export and the sync bridge

DESIGN DECISION: A receipt exists in three shapes.
- ReceiptData: a candidate, every field optional (AI output, form state)
- ConfirmedReceipt: all four fields present and typed; the ONLY shape
  the store accepts
- SavedReceipt: what the store hands back, with its assigned id
"""

from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionCategory(str, Enum):
    """
    Supported transaction categories, in display order.

    DESIGN DECISION: This enum is the single source of truth. The AI
    prompt, the response validator, the entry forms and the history
    summary all read it from here.
    """
    FOOD_AND_DRINK = "Food & Drink"
    GROCERIES = "Groceries"
    TRANSPORTATION = "Transportation"
    SHOPPING = "Shopping"
    UTILITIES = "Utilities"
    ENTERTAINMENT = "Entertainment"
    HEALTH_AND_WELLNESS = "Health & Wellness"
    TRAVEL = "Travel"
    RENT = "Rent"
    OTHER = "Other"


# Fallback when the AI returns something outside the enumeration
DEFAULT_CATEGORY = TransactionCategory.OTHER

# Summary bucket for stored records that carry no usable category
UNCATEGORIZED_LABEL = "Uncategorized"

# Pre-selected category on the manual entry form
MANUAL_ENTRY_DEFAULT_CATEGORY = TransactionCategory.TRANSPORTATION


def category_names() -> list[str]:
    """Category display names in enumeration order."""
    return [category.value for category in TransactionCategory]


def coerce_category(value: Any) -> TransactionCategory:
    """
    Map a raw value onto the enumeration.

    Only an exact match is accepted; anything else becomes DEFAULT_CATEGORY.
    """
    if isinstance(value, TransactionCategory):
        return value
    if isinstance(value, str):
        for category in TransactionCategory:
            if category.value == value:
                return category
    return DEFAULT_CATEGORY


def parse_record_date(value: Any) -> Optional[date]:
    """
    Parse a stored transaction date (ISO YYYY-MM-DD).

    Returns None for anything that is not a real calendar date.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    try:
        return date.fromisoformat(value.strip()[:10])
    except ValueError:
        return None


class CaptureSource(str, Enum):
    """Where a raw blob came from."""
    UPLOAD = "upload"
    CAMERA = "camera"
    MICROPHONE = "microphone"


class PeriodFilter(str, Enum):
    """History granularity selector."""
    DAILY = "Daily"
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"
    YEARLY = "Yearly"
    ALL = "All"


class SyncStatus(str, Enum):
    """Observable states of the spreadsheet sync button."""
    IDLE = "idle"
    SYNCING = "syncing"
    SYNCED = "synced"


# =============================================================================
# RECEIPT MODELS
# =============================================================================

class ReceiptData(BaseModel):
    """
    A candidate transaction.

    CRITICAL: This is PROPOSED data. It comes from the AI or from a
    half-filled form and must be confirmed before it is stored.
    All fields are optional because extraction might miss any of them.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    transaction_name: Optional[str] = Field(
        default=None,
        max_length=200,
        description="Merchant or transaction name"
    )
    total_amount: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Final total in pesos"
    )
    transaction_date: Optional[str] = Field(
        default=None,
        description="Transaction date in YYYY-MM-DD format"
    )
    category: Optional[TransactionCategory] = None

    @property
    def parsed_date(self) -> Optional[date]:
        """The transaction date as a date, or None if absent or unparseable."""
        return parse_record_date(self.transaction_date)

    def missing_fields(self) -> list[str]:
        """Names of the fields that would block a save."""
        missing = []
        if not self.transaction_name:
            missing.append("transaction_name")
        if self.total_amount is None:
            missing.append("total_amount")
        if not self.transaction_date:
            missing.append("transaction_date")
        if self.category is None:
            missing.append("category")
        return missing

    def merged_with(self, other: "ReceiptData") -> "ReceiptData":
        """
        Overlay the non-empty fields of another candidate onto this one.

        Used when a voice recording fills in a form the user already
        started typing into.
        """
        updates = {
            key: value
            for key, value in other.model_dump().items()
            if value not in (None, "")
        }
        return self.model_copy(update=updates)


class SavedReceipt(ReceiptData):
    """
    A receipt as delivered by the store's live snapshot.

    The id is assigned by the store and never changes.
    """

    id: str = Field(
        ...,
        min_length=1,
        frozen=True,
        description="Store-assigned identifier"
    )

    def to_document(self) -> dict:
        """JSON-ready representation used by the sync bridge."""
        return {
            "id": self.id,
            "transaction_name": self.transaction_name,
            "total_amount": float(self.total_amount) if self.total_amount is not None else None,
            "transaction_date": self.transaction_date,
            "category": self.category.value if self.category else None,
        }


class ConfirmedReceipt(BaseModel):
    """
    A receipt that the user has confirmed.

    CRITICAL: Only ConfirmedReceipt objects are persisted.
    Every field is required; nothing is filled in with defaults here.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    transaction_name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Merchant or transaction name (required)"
    )
    total_amount: Decimal = Field(
        ...,
        ge=0,
        description="Total amount in pesos (required)"
    )
    transaction_date: date = Field(
        ...,
        description="Transaction date (required)"
    )
    category: TransactionCategory = Field(
        ...,
        description="Transaction category (required)"
    )

    def to_document(self) -> dict:
        """Field values as stored: ISO date, plain decimal string, category name."""
        return {
            "transaction_name": self.transaction_name,
            "total_amount": str(self.total_amount),
            "transaction_date": self.transaction_date.isoformat(),
            "category": self.category.value,
        }

    def to_saved(self, receipt_id: str) -> SavedReceipt:
        return SavedReceipt(
            id=receipt_id,
            transaction_name=self.transaction_name,
            total_amount=self.total_amount,
            transaction_date=self.transaction_date.isoformat(),
            category=self.category,
        )


# =============================================================================
# USER / CAPTURE MODELS
# =============================================================================

class AuthenticatedUser(BaseModel):
    """The signed-in user as reported by the identity provider."""
    model_config = ConfigDict(frozen=True)

    uid: str = Field(..., min_length=1)
    display_name: Optional[str] = None
    email: Optional[str] = None


class CapturedBlob(BaseModel):
    """Raw bytes produced by an upload, a camera snapshot or a recording."""

    data: bytes = Field(..., repr=False)
    mime_type: str
    source: CaptureSource
    filename: Optional[str] = None

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    @property
    def is_audio(self) -> bool:
        return self.mime_type.startswith("audio/")


# =============================================================================
# HISTORY MODELS
# =============================================================================

class PeriodWindow(BaseModel):
    """Inclusive datetime range for a history period."""
    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    def contains(self, day: date) -> bool:
        """Whether the local midnight of `day` lies inside the window."""
        instant = datetime.combine(day, time.min)
        return self.start <= instant <= self.end


class CategoryTotal(BaseModel):
    """One row of a period summary."""

    category: str
    total: Decimal


class HistoryView(BaseModel):
    """
    What the history panel shows for one period selection.

    For PeriodFilter.ALL `records` is filled and `summary` is None;
    for every other period it is the other way round.
    """

    period: PeriodFilter
    title: str
    window: Optional[PeriodWindow] = None
    records: Optional[list[SavedReceipt]] = None
    summary: Optional[list[CategoryTotal]] = None

    @property
    def is_summary(self) -> bool:
        return self.summary is not None

    @property
    def is_empty(self) -> bool:
        rows = self.summary if self.is_summary else self.records
        return not rows

    @property
    def grand_total(self) -> Decimal:
        if self.is_summary:
            return sum((row.total for row in self.summary), Decimal("0"))
        return sum(
            (r.total_amount for r in self.records or [] if r.total_amount is not None),
            Decimal("0"),
        )


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_format', 'invalid_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Result of checking a candidate at the save boundary."""

    is_valid: bool
    issues: list[ValidationIssue] = Field(default_factory=list)
    confirmed: Optional[ConfirmedReceipt] = None

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def missing_fields(self) -> list[str]:
        return [issue.field for issue in self.issues if issue.issue_type == "missing"]
