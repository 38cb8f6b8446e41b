"""CSV export of a history view, in the layout Google Sheets imports cleanly."""

import csv
import io
from datetime import date
from decimal import Decimal
from typing import Optional

from resiboko.models.receipt import (
    UNCATEGORIZED_LABEL,
    HistoryView,
    PeriodFilter,
)

TRANSACTIONS_HEADER = ["Date", "Transaction", "Amount", "Category"]


def _cell(value: str, force_quotes: bool = False) -> str:
    """
    One CSV field, quoted by the csv module's rules.

    Quoting mode is per writer, so a column that is always quoted is
    rendered on its own.
    """
    if not value and not force_quotes:
        # csv quotes a lone empty field; inside a row it stays bare
        return ""
    buffer = io.StringIO()
    quoting = csv.QUOTE_ALL if force_quotes else csv.QUOTE_MINIMAL
    csv.writer(buffer, quoting=quoting, lineterminator="\r\n").writerow([value])
    return buffer.getvalue()[:-2]


def format_amount(amount: Optional[Decimal]) -> str:
    """Plain decimal text, no exponent and no trailing zeros; missing is 0."""
    if amount is None:
        return "0"
    return format(amount.normalize(), "f")


def export_history_csv(view: HistoryView) -> str:
    """
    Render a history view as CSV text.

    All period: one row per record. The transaction name is always
    quoted so merchant names with commas survive a naive split.
    Other periods: one row per category total.
    """
    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")

    if not view.is_summary:
        writer.writerow(TRANSACTIONS_HEADER)
        for record in view.records or []:
            buffer.write(",".join([
                _cell(record.transaction_date or ""),
                _cell(record.transaction_name or "", force_quotes=True),
                format_amount(record.total_amount),
                _cell(record.category.value if record.category else UNCATEGORIZED_LABEL),
            ]) + "\n")
    else:
        writer.writerow(["Category", f"Total Amount for {view.title}"])
        for row in view.summary:
            writer.writerow([row.category, format_amount(row.total)])

    text = buffer.getvalue()
    return text[:-1] if text.endswith("\n") else text


def export_filename(period: PeriodFilter, today: date) -> str:
    """e.g. ResiboKo_Export_Weekly_2025-03-06.csv"""
    return f"ResiboKo_Export_{period.value}_{today.isoformat()}.csv"
