"""Save-boundary validation."""

from resiboko.validation.validator import ReceiptValidator

__all__ = ["ReceiptValidator"]
