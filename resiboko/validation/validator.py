"""
Save-Boundary Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SCHEMA VALIDATION:
- Required field presence (name, amount, date, category)
- Format validation (the date must be a real YYYY-MM-DD date)
- Category must be a member of TransactionCategory
- Errors here BLOCK the save

STAGE 2 - SEMANTIC VALIDATION:
- Future date detection
- Zero amount detection
- Warnings only; the user has already looked at the form

IMPORTANT: Validation NEVER silently fixes issues.
A missing field is never filled in with a default here; the candidate
either becomes a ConfirmedReceipt as-is or it is rejected.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from resiboko.errors import IncompleteRecordError
from resiboko.models.receipt import (
    ConfirmedReceipt,
    ReceiptData,
    ValidationIssue,
    ValidationResult,
)


# Allow a day of slack for timezone differences between phone and server
FUTURE_DATE_TOLERANCE_DAYS = 1


class ReceiptValidator:
    """
    Turns a candidate ReceiptData into a ConfirmedReceipt, or explains why not.

    Stage 1: Schema validation (blocking)
    Stage 2: Semantic validation (warnings)
    """

    def _validate_schema(
        self,
        candidate: ReceiptData,
    ) -> tuple[bool, list[ValidationIssue]]:
        """
        Stage 1: Schema validation.

        Returns: (is_valid, list_of_issues)
        """
        issues = []

        if not candidate.transaction_name:
            issues.append(ValidationIssue(
                field="transaction_name",
                issue_type="missing",
                message="Transaction name is required",
                severity="error",
            ))

        if candidate.total_amount is None:
            issues.append(ValidationIssue(
                field="total_amount",
                issue_type="missing",
                message="Total amount is required",
                severity="error",
            ))

        if not candidate.transaction_date:
            issues.append(ValidationIssue(
                field="transaction_date",
                issue_type="missing",
                message="Transaction date is required",
                severity="error",
            ))
        elif candidate.parsed_date is None:
            issues.append(ValidationIssue(
                field="transaction_date",
                issue_type="invalid_format",
                message=f"'{candidate.transaction_date}' is not a valid YYYY-MM-DD date",
                severity="error",
            ))

        if candidate.category is None:
            issues.append(ValidationIssue(
                field="category",
                issue_type="missing",
                message="Category is required",
                severity="error",
            ))

        is_valid = not any(issue.severity == "error" for issue in issues)
        return is_valid, issues

    def _validate_semantic(
        self,
        candidate: ReceiptData,
        today: date,
    ) -> list[ValidationIssue]:
        """Stage 2: Semantic validation. Only produces warnings."""
        issues = []

        max_date = today + timedelta(days=FUTURE_DATE_TOLERANCE_DAYS)
        if candidate.parsed_date and candidate.parsed_date > max_date:
            issues.append(ValidationIssue(
                field="transaction_date",
                issue_type="future_date",
                message=f"Transaction date ({candidate.parsed_date}) is in the future",
                severity="warning",
            ))

        if candidate.total_amount is not None and candidate.total_amount == Decimal("0"):
            issues.append(ValidationIssue(
                field="total_amount",
                issue_type="suspicious_value",
                message="Amount is zero",
                severity="warning",
            ))

        return issues

    def validate(
        self,
        candidate: ReceiptData,
        today: Optional[date] = None,
    ) -> ValidationResult:
        """
        Run both stages.

        Returns:
            ValidationResult; `confirmed` is set only when stage 1 passed.
        """
        today = today or date.today()

        schema_valid, issues = self._validate_schema(candidate)
        if not schema_valid:
            return ValidationResult(is_valid=False, issues=issues)

        issues.extend(self._validate_semantic(candidate, today))

        confirmed = ConfirmedReceipt(
            transaction_name=candidate.transaction_name,
            total_amount=candidate.total_amount,
            transaction_date=candidate.parsed_date,
            category=candidate.category,
        )
        return ValidationResult(is_valid=True, issues=issues, confirmed=confirmed)

    def require_complete(
        self,
        candidate: ReceiptData,
        today: Optional[date] = None,
    ) -> ConfirmedReceipt:
        """
        Confirm a candidate or raise.

        Raises:
            IncompleteRecordError: listing every field that blocks the save
        """
        result = self.validate(candidate, today=today)
        if not result.is_valid:
            blocking = [issue.field for issue in result.issues if issue.severity == "error"]
            raise IncompleteRecordError(blocking)
        return result.confirmed

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """What we show under the review form."""
        if result.is_valid and not result.issues:
            return "✅ All fields look good."

        lines = []
        if not result.is_valid:
            lines.append("❌ Please complete the following before saving:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")

        warnings = [issue.message for issue in result.issues if issue.severity == "warning"]
        if warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please double-check:")
            for warning in warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
