"""History views: period windows, category summaries and CSV export."""

from resiboko.history.export import export_filename, export_history_csv, format_amount
from resiboko.history.periods import (
    ALL_TRANSACTIONS_TITLE,
    build_history_view,
    filter_records,
    get_period_window,
    period_title,
    summarize_by_category,
)

__all__ = [
    "ALL_TRANSACTIONS_TITLE",
    "build_history_view",
    "export_filename",
    "export_history_csv",
    "filter_records",
    "format_amount",
    "get_period_window",
    "period_title",
    "summarize_by_category",
]
