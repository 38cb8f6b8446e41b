"""AI client package."""

from resiboko.agents.ai_agents import (
    EMPTY_LEAK_ANALYSIS_MESSAGE,
    NO_TRANSACTIONS_TEXT,
    GeminiReceiptClient,
    build_receipt_schema,
    format_transactions_for_ai,
    normalize_receipt_response,
)

__all__ = [
    "EMPTY_LEAK_ANALYSIS_MESSAGE",
    "NO_TRANSACTIONS_TEXT",
    "GeminiReceiptClient",
    "build_receipt_schema",
    "format_transactions_for_ai",
    "normalize_receipt_response",
]
