"""
Period Aggregation Engine

DESIGN DECISION: Aggregation is DETERMINISTIC and local.
The history panel, the CSV export and the tests all go through
build_history_view(); nothing here talks to the AI or the store.

Window rules (local wall-clock time):
- Daily:     today 00:00:00.000 -> now
- Weekly:    Monday 00:00:00.000 -> Sunday 23:59:59.999 (always Monday-first)
- Monthly:   1st of the month 00:00 -> now
- Quarterly: 1st day of the quarter -> last day of the quarter 23:59:59.999
- Yearly:    January 1 -> now
- All:       no window, raw records

A record's date is compared as the local midnight of its calendar day,
inclusive at both ends. Records without a parseable date only show up
under All.
"""

from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Optional

from resiboko.models.receipt import (
    UNCATEGORIZED_LABEL,
    CategoryTotal,
    HistoryView,
    PeriodFilter,
    PeriodWindow,
    SavedReceipt,
)


# JavaScript-style millisecond precision for the closing instant of a day
END_OF_DAY = time(23, 59, 59, 999000)

ALL_TRANSACTIONS_TITLE = "All Transactions"


def _start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min)


def _end_of_day(day: date) -> datetime:
    return datetime.combine(day, END_OF_DAY)


def _last_day_of_quarter(year: int, quarter: int) -> date:
    """Last calendar day of a zero-based quarter."""
    if quarter == 3:
        return date(year, 12, 31)
    return date(year, (quarter + 1) * 3 + 1, 1) - timedelta(days=1)


def get_period_window(period: PeriodFilter, now: datetime) -> Optional[PeriodWindow]:
    """
    Compute the inclusive window for a period, relative to `now`.

    Returns None for PeriodFilter.ALL.
    """
    now = now.replace(tzinfo=None)
    today = now.date()

    if period == PeriodFilter.DAILY:
        return PeriodWindow(start=_start_of_day(today), end=now)

    if period == PeriodFilter.WEEKLY:
        monday = today - timedelta(days=today.weekday())
        sunday = monday + timedelta(days=6)
        return PeriodWindow(start=_start_of_day(monday), end=_end_of_day(sunday))

    if period == PeriodFilter.MONTHLY:
        return PeriodWindow(start=_start_of_day(today.replace(day=1)), end=now)

    if period == PeriodFilter.QUARTERLY:
        quarter = (today.month - 1) // 3
        first = date(today.year, quarter * 3 + 1, 1)
        last = _last_day_of_quarter(today.year, quarter)
        return PeriodWindow(start=_start_of_day(first), end=_end_of_day(last))

    if period == PeriodFilter.YEARLY:
        return PeriodWindow(start=_start_of_day(date(today.year, 1, 1)), end=now)

    return None


def _short_date(day: date) -> str:
    """M/D/YYYY without zero padding."""
    return f"{day.month}/{day.day}/{day.year}"


def period_title(
    period: PeriodFilter,
    now: datetime,
    window: Optional[PeriodWindow] = None,
) -> str:
    """Human-readable heading for a period selection."""
    today = now.date()

    if period == PeriodFilter.DAILY:
        return f"Summary for {today:%B} {today.day}, {today.year}"
    if period == PeriodFilter.WEEKLY:
        window = window or get_period_window(period, now)
        return f"Summary for {_short_date(window.start.date())} - {_short_date(window.end.date())}"
    if period == PeriodFilter.MONTHLY:
        return f"Summary for {today:%B} {today.year}"
    if period == PeriodFilter.QUARTERLY:
        return f"Summary for Q{(today.month - 1) // 3 + 1} {today.year}"
    if period == PeriodFilter.YEARLY:
        return f"Summary for {today.year}"
    return ALL_TRANSACTIONS_TITLE


def filter_records(records: list[SavedReceipt], window: PeriodWindow) -> list[SavedReceipt]:
    """Records whose date falls inside the window; undated records are dropped."""
    selected = []
    for record in records:
        day = record.parsed_date
        if day is not None and window.contains(day):
            selected.append(record)
    return selected


def summarize_by_category(records: list[SavedReceipt]) -> list[CategoryTotal]:
    """
    Sum amounts per category.

    Categories appear in the order they are first met in `records`.
    Missing amounts count as zero; missing categories go to "Uncategorized".
    """
    totals: dict[str, Decimal] = {}
    for record in records:
        label = record.category.value if record.category else UNCATEGORIZED_LABEL
        amount = record.total_amount if record.total_amount is not None else Decimal("0")
        totals[label] = totals.get(label, Decimal("0")) + amount

    return [CategoryTotal(category=label, total=total) for label, total in totals.items()]


def build_history_view(
    records: list[SavedReceipt],
    period: PeriodFilter,
    now: datetime,
) -> HistoryView:
    """
    Build what the history panel shows for a period.

    All keeps the raw records exactly as delivered by the snapshot;
    every other period is reduced to a per-category summary.
    """
    window = get_period_window(period, now)
    title = period_title(period, now, window)

    if window is None:
        return HistoryView(period=period, title=title, records=list(records))

    return HistoryView(
        period=period,
        title=title,
        window=window,
        summary=summarize_by_category(filter_records(records, window)),
    )
