"""
AI Client for ResiboKo

DESIGN DECISION: Every call to Gemini goes through this one class.
It owns:
1. Prompt construction (category list, today's date, the CSV block)
2. The response schema for structured extraction
3. Validation of whatever comes back, independent of the schema

CRITICAL BOUNDARIES:

1. EXTRACTION (image / voice):
   - CAN: Propose a candidate receipt
   - CANNOT: Return a category outside TransactionCategory
   - CANNOT: Return a non-numeric amount
   - The result is a ReceiptData, never something that is saved directly

2. INSIGHTS (Q&A / cash leaks):
   - CAN: Reason over the user's own transactions, passed in the prompt
   - Returns prose only; nothing it says flows back into the store

No retries happen here. A failure raises ExtractionError and the UI
offers "Try Again".
"""

import json
from datetime import date
from decimal import Decimal
from typing import Any, Optional

import google.generativeai as genai

from resiboko.audit import get_logger
from resiboko.config import GeminiSettings, get_settings
from resiboko.errors import ExtractionError
from resiboko.models.receipt import (
    ReceiptData,
    SavedReceipt,
    category_names,
    coerce_category,
)


logger = get_logger(__name__)

NO_TRANSACTIONS_TEXT = "No transactions available."

EMPTY_LEAK_ANALYSIS_MESSAGE = (
    "Wala pang transactions! Add a few receipts first and I'll look for "
    "cash leaks and tipid opportunities in your spending."
)

MAX_NAME_LENGTH = 200


def build_receipt_schema(date_description: str) -> dict:
    """
    Response schema for structured extraction.

    Exactly the four receipt fields, all nullable.
    """
    categories = ", ".join(category_names())
    return {
        "type": "object",
        "properties": {
            "transaction_name": {
                "type": "string",
                "nullable": True,
                "description": "The name of the merchant or transaction.",
            },
            "total_amount": {
                "type": "number",
                "nullable": True,
                "description": "The final total amount of the transaction.",
            },
            "transaction_date": {
                "type": "string",
                "nullable": True,
                "description": date_description,
            },
            "category": {
                "type": "string",
                "nullable": True,
                "description": f"The category of the purchase. Must be one of: {categories}.",
            },
        },
    }


def normalize_receipt_response(
    data: Any,
    date_fallback: Optional[str] = None,
) -> ReceiptData:
    """
    Turn a raw model response into a ReceiptData.

    Rules, applied regardless of what the schema promised:
    - total_amount: JSON numbers only (no booleans, no strings, no NaN,
      no negatives), converted exactly to Decimal; otherwise None
    - category: exact enumeration member, otherwise "Other"
    - transaction_date: as-is if present, else `date_fallback`
    - transaction_name: as-is if present, else None
    """
    if not isinstance(data, dict):
        raise ExtractionError(
            f"Expected a JSON object from the model, got {type(data).__name__}"
        )

    raw_name = data.get("transaction_name")
    name = raw_name.strip()[:MAX_NAME_LENGTH] if isinstance(raw_name, str) else None

    raw_amount = data.get("total_amount")
    amount = None
    if isinstance(raw_amount, (int, float)) and not isinstance(raw_amount, bool):
        try:
            parsed = Decimal(str(raw_amount))
        except (OverflowError, ValueError):
            # str() refuses ints past the digit limit
            parsed = None
        if parsed is not None and parsed.is_finite() and parsed >= 0:
            amount = parsed

    raw_date = data.get("transaction_date")
    transaction_date = raw_date.strip() if isinstance(raw_date, str) and raw_date.strip() else None

    return ReceiptData(
        transaction_name=name or None,
        total_amount=amount,
        transaction_date=transaction_date or date_fallback,
        category=coerce_category(data.get("category")),
    )


def format_transactions_for_ai(transactions: list[SavedReceipt]) -> str:
    """
    Render the user's transactions as the CSV-like block used in prompts.

    Missing values become N/A, amounts are shown with two decimals.
    """
    if not transactions:
        return NO_TRANSACTIONS_TEXT

    lines = ["Date,Transaction,Amount,Category"]
    for t in transactions:
        amount = f"{t.total_amount:.2f}" if t.total_amount is not None else "0.00"
        lines.append(",".join([
            t.transaction_date or "N/A",
            t.transaction_name or "N/A",
            amount,
            t.category.value if t.category else "N/A",
        ]))
    return "\n".join(lines) + "\n"


class GeminiReceiptClient:
    """
    Thin request/response wrapper around the Gemini model.

    RESPONSIBILITIES:
    - Extract candidate receipts from images and voice memos
    - Answer free-text questions about the user's spending
    - Run the cash leak rubric over the user's spending

    BOUNDARIES:
    - NEVER persists anything
    - NEVER retries; errors propagate as ExtractionError
    - Holds no per-call state
    """

    def __init__(
        self,
        model=None,
        settings: Optional[GeminiSettings] = None,
        currency_symbol: str = "₱",
    ):
        self._settings = settings or get_settings().gemini
        self._currency_symbol = currency_symbol
        if model is None:
            self._configure_genai()
        else:
            self._model = model

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
            }
        )

    def _extraction_config(self, schema: dict) -> dict:
        return {
            "temperature": self._settings.temperature,
            "max_output_tokens": self._settings.max_tokens,
            "response_mime_type": "application/json",
            "response_schema": schema,
        }

    def _insight_config(self) -> dict:
        return {
            "temperature": self._settings.insight_temperature,
            "max_output_tokens": self._settings.max_tokens,
        }

    async def _generate(self, contents, generation_config: dict) -> str:
        """Issue one request and return the response text."""
        try:
            response = await self._model.generate_content_async(
                contents,
                generation_config=generation_config,
            )
        except Exception as e:
            raise ExtractionError(f"Gemini request failed: {e}") from e

        try:
            text = response.text
        except Exception as e:
            # .text raises when the candidate was blocked or has no parts
            raise ExtractionError(f"Gemini returned no usable text: {e}") from e

        if not text or not text.strip():
            raise ExtractionError("Gemini returned an empty response")
        return text.strip()

    async def _extract(
        self,
        prompt: str,
        blob: bytes,
        mime_type: str,
        schema: dict,
        date_fallback: Optional[str],
    ) -> ReceiptData:
        if not blob:
            raise ExtractionError("Nothing to analyze: the capture is empty")

        text = await self._generate(
            [prompt, {"mime_type": mime_type, "data": blob}],
            self._extraction_config(schema),
        )

        try:
            data = json.loads(text)
        except ValueError as e:
            # JSONDecodeError, or an integer past the digit limit
            raise ExtractionError(f"Gemini returned invalid JSON: {e}") from e

        return normalize_receipt_response(data, date_fallback=date_fallback)

    async def extract_from_image(self, blob: bytes, mime_type: str) -> ReceiptData:
        """
        Extract a candidate receipt from a photo.

        A missing date stays missing: photos are often of older receipts.
        """
        categories = ", ".join(category_names())
        prompt = (
            "Analyze the receipt image and extract the following information. "
            "The transaction date should be in YYYY-MM-DD format. "
            f"For the category, choose the most appropriate one from this list: {categories}. "
            "If any information is not found, return null for that field."
        )
        schema = build_receipt_schema(
            "The date of the transaction in YYYY-MM-DD format."
        )

        receipt = await self._extract(prompt, blob, mime_type, schema, date_fallback=None)
        logger.info(
            "receipt_extracted",
            mode="image",
            missing=receipt.missing_fields(),
        )
        return receipt

    async def extract_from_voice(
        self,
        blob: bytes,
        mime_type: str,
        today: date,
    ) -> ReceiptData:
        """
        Extract a candidate receipt from a voice memo.

        A missing date becomes `today`: voice entries are recorded as
        the spending happens.
        """
        today_iso = today.isoformat()
        categories = ", ".join(category_names())
        prompt = (
            "Analyze the following audio and extract the transaction details. "
            f"Today's date is {today_iso}. "
            f"For the category, choose the most appropriate one from this list: {categories}. "
            "If any information is not found, return null for that field."
        )
        schema = build_receipt_schema(
            f"The date in YYYY-MM-DD format. If the user says 'today', use {today_iso}."
        )

        receipt = await self._extract(prompt, blob, mime_type, schema, date_fallback=today_iso)
        logger.info(
            "receipt_extracted",
            mode="voice",
            missing=receipt.missing_fields(),
        )
        return receipt

    async def answer_question(
        self,
        transactions: list[SavedReceipt],
        question: str,
    ) -> str:
        """
        Answer a free-text question about the user's own transactions.

        The whole record set is embedded in the prompt as CSV.
        """
        transaction_data = format_transactions_for_ai(transactions)
        symbol = self._currency_symbol

        prompt = f"""You are a helpful financial assistant for a user in the Philippines. All transactions are in Philippine Pesos (PHP). Based on the following transaction data in CSV format, please answer the user's question. Provide a concise and clear answer, and make sure to use the '{symbol}' symbol for all currency amounts.

Transaction Data:
{transaction_data}

User's Question: "{question}"

Your analysis:"""

        return await self._generate(prompt, self._insight_config())

    async def find_cash_leaks(self, transactions: list[SavedReceipt]) -> str:
        """
        Look for recurring or avoidable spending and suggest savings.

        Returns markdown organised as ranked tips. An empty record set
        gets a canned message and no request is made.
        """
        if not transactions:
            return EMPTY_LEAK_ANALYSIS_MESSAGE

        transaction_data = format_transactions_for_ai(transactions)
        symbol = self._currency_symbol

        prompt = f"""You are Piso, a friendly and practical money coach for Filipino households. All amounts are in Philippine Pesos; always write them with the '{symbol}' symbol.

Study the transactions below and find "cash leaks": small, repeated or avoidable expenses that add up.

Transaction Data:
{transaction_data}

Use this rubric:
1. FEES: Look for bank fees, ATM withdrawal fees, convenience fees, delivery fees, service charges and late payment charges. Total them up.
2. HIGH-FREQUENCY VENDORS: Find merchants or transaction names that appear many times (for example daily coffee, fast food, ride-hailing). Report how often they appear and how much they cost in total.
3. SUBSTITUTIONS: For each leak, suggest a cheaper local alternative (for example brewing coffee at home, taking the jeepney or MRT instead of ride-hailing, buying in bulk at the palengke) and estimate the monthly savings.

Format your answer in markdown:
- Start with a one-paragraph "## Summary" of the biggest leak.
- Then give between 3 and 5 sections titled "### Tip 1: <title>", "### Tip 2: <title>" and so on, ranked from the largest to the smallest estimated savings.
- In each tip, state the evidence from the data, the suggested change, and the estimated savings per month in bold.
- End with a short encouraging line.

Only use the data above. If there is not enough data for a tip, say so instead of inventing transactions."""

        return await self._generate(prompt, self._insight_config())
