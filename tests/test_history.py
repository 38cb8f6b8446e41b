"""Tests for period windows and category summaries."""

from datetime import date, datetime
from decimal import Decimal

import pytest

from resiboko.history import (
    ALL_TRANSACTIONS_TITLE,
    build_history_view,
    filter_records,
    get_period_window,
    period_title,
    summarize_by_category,
)
from resiboko.history.periods import END_OF_DAY
from resiboko.models.receipt import (
    UNCATEGORIZED_LABEL,
    PeriodFilter,
    SavedReceipt,
    TransactionCategory,
)


THURSDAY = datetime(2025, 3, 6, 14, 30)


def receipt(id, name, amount, day, category):
    return SavedReceipt(
        id=id,
        transaction_name=name,
        total_amount=amount,
        transaction_date=day,
        category=category,
    )


class TestPeriodWindows:

    def test_daily_runs_from_midnight_to_now(self):
        window = get_period_window(PeriodFilter.DAILY, THURSDAY)
        assert window.start == datetime(2025, 3, 6)
        assert window.end == THURSDAY

    def test_weekly_is_monday_to_sunday(self):
        window = get_period_window(PeriodFilter.WEEKLY, THURSDAY)
        assert window.start == datetime(2025, 3, 3)
        assert window.end == datetime.combine(date(2025, 3, 9), END_OF_DAY)

    @pytest.mark.parametrize("now", [
        datetime(2025, 3, 3, 0, 0),
        datetime(2025, 3, 5, 12, 0),
        datetime(2025, 3, 9, 23, 0),
    ])
    def test_weekly_same_week_for_every_day(self, now):
        window = get_period_window(PeriodFilter.WEEKLY, now)
        assert window.start.date() == date(2025, 3, 3)
        assert window.end.date() == date(2025, 3, 9)

    def test_monthly_starts_on_the_first(self):
        window = get_period_window(PeriodFilter.MONTHLY, THURSDAY)
        assert window.start == datetime(2025, 3, 1)
        assert window.end == THURSDAY

    @pytest.mark.parametrize("now, first, last", [
        (datetime(2025, 2, 15), date(2025, 1, 1), date(2025, 3, 31)),
        (datetime(2025, 5, 1), date(2025, 4, 1), date(2025, 6, 30)),
        (datetime(2025, 9, 30), date(2025, 7, 1), date(2025, 9, 30)),
        (datetime(2025, 11, 2), date(2025, 10, 1), date(2025, 12, 31)),
    ])
    def test_quarterly_covers_the_whole_quarter(self, now, first, last):
        window = get_period_window(PeriodFilter.QUARTERLY, now)
        assert window.start == datetime.combine(first, datetime.min.time())
        assert window.end == datetime.combine(last, END_OF_DAY)

    def test_yearly_starts_january_first(self):
        window = get_period_window(PeriodFilter.YEARLY, THURSDAY)
        assert window.start == datetime(2025, 1, 1)
        assert window.end == THURSDAY

    def test_all_has_no_window(self):
        assert get_period_window(PeriodFilter.ALL, THURSDAY) is None


class TestPeriodTitles:

    @pytest.mark.parametrize("period, title", [
        (PeriodFilter.DAILY, "Summary for March 6, 2025"),
        (PeriodFilter.WEEKLY, "Summary for 3/3/2025 - 3/9/2025"),
        (PeriodFilter.MONTHLY, "Summary for March 2025"),
        (PeriodFilter.QUARTERLY, "Summary for Q1 2025"),
        (PeriodFilter.YEARLY, "Summary for 2025"),
        (PeriodFilter.ALL, ALL_TRANSACTIONS_TITLE),
    ])
    def test_titles(self, period, title):
        assert period_title(period, THURSDAY) == title


class TestFiltering:

    def test_boundaries_are_inclusive(self):
        window = get_period_window(PeriodFilter.WEEKLY, THURSDAY)
        records = [
            receipt("a", "Sunday before", 1, "2025-03-02", TransactionCategory.OTHER),
            receipt("b", "Monday", 2, "2025-03-03", TransactionCategory.OTHER),
            receipt("c", "Sunday", 3, "2025-03-09", TransactionCategory.OTHER),
            receipt("d", "Monday after", 4, "2025-03-10", TransactionCategory.OTHER),
        ]
        assert [r.id for r in filter_records(records, window)] == ["b", "c"]

    def test_later_this_month_is_outside_monthly(self):
        window = get_period_window(PeriodFilter.MONTHLY, THURSDAY)
        records = [
            receipt("a", "Today", 1, "2025-03-06", TransactionCategory.OTHER),
            receipt("b", "Later", 2, "2025-03-20", TransactionCategory.OTHER),
        ]
        assert [r.id for r in filter_records(records, window)] == ["a"]

    def test_undated_records_are_excluded(self):
        window = get_period_window(PeriodFilter.YEARLY, THURSDAY)
        records = [
            receipt("a", "No date", 1, None, TransactionCategory.OTHER),
            receipt("b", "Bad date", 1, "March 1", TransactionCategory.OTHER),
        ]
        assert filter_records(records, window) == []


class TestSummaries:

    def test_first_seen_order_and_totals(self):
        records = [
            receipt("a", "Coffee", Decimal("120"), "2025-03-05", TransactionCategory.FOOD_AND_DRINK),
            receipt("b", "Jeepney", Decimal("15"), "2025-03-03", TransactionCategory.TRANSPORTATION),
            receipt("c", "Lunch", Decimal("85.50"), "2025-03-04", TransactionCategory.FOOD_AND_DRINK),
        ]
        summary = summarize_by_category(records)
        assert [(row.category, row.total) for row in summary] == [
            ("Food & Drink", Decimal("205.50")),
            ("Transportation", Decimal("15")),
        ]

    def test_missing_amount_and_category(self):
        records = [
            SavedReceipt(id="a", transaction_name="Mystery", transaction_date="2025-03-05"),
            SavedReceipt(id="b", total_amount=Decimal("10"), transaction_date="2025-03-05"),
        ]
        summary = summarize_by_category(records)
        assert len(summary) == 1
        assert summary[0].category == UNCATEGORIZED_LABEL
        assert summary[0].total == Decimal("10")

    def test_sums_are_exact(self):
        records = [
            receipt(str(i), "Candy", Decimal("0.10"), "2025-03-05", TransactionCategory.FOOD_AND_DRINK)
            for i in range(3)
        ]
        assert summarize_by_category(records)[0].total == Decimal("0.30")


class TestBuildHistoryView:

    def test_weekly_scenario(self, weekly_records):
        view = build_history_view(weekly_records, PeriodFilter.WEEKLY, THURSDAY)

        assert view.is_summary
        assert view.title == "Summary for 3/3/2025 - 3/9/2025"
        assert [(row.category, row.total) for row in view.summary] == [
            ("Transportation", Decimal("15")),
            ("Food & Drink", Decimal("120")),
        ]
        assert view.grand_total == Decimal("135")

    def test_daily_scenario_excludes_other_days(self, weekly_records):
        view = build_history_view(weekly_records, PeriodFilter.DAILY, THURSDAY)
        assert view.is_empty

    def test_all_keeps_records_verbatim(self, weekly_records):
        undated = SavedReceipt(id="r3", transaction_name="Undated")
        records = weekly_records + [undated]

        view = build_history_view(records, PeriodFilter.ALL, THURSDAY)

        assert not view.is_summary
        assert view.window is None
        assert view.title == ALL_TRANSACTIONS_TITLE
        assert [r.id for r in view.records] == ["r1", "r2", "r3"]

    @pytest.mark.parametrize("period", [
        PeriodFilter.DAILY,
        PeriodFilter.WEEKLY,
        PeriodFilter.MONTHLY,
        PeriodFilter.QUARTERLY,
        PeriodFilter.YEARLY,
    ])
    def test_summary_total_matches_filtered_records(self, weekly_records, period):
        view = build_history_view(weekly_records, period, THURSDAY)
        filtered = filter_records(weekly_records, view.window)
        assert view.grand_total == sum(
            (r.total_amount for r in filtered), Decimal("0")
        )

    def test_timezone_aware_now_uses_wall_clock(self, weekly_records):
        from datetime import timezone, timedelta

        manila = timezone(timedelta(hours=8))
        now = datetime(2025, 3, 6, 8, 0, tzinfo=manila)

        view = build_history_view(weekly_records, PeriodFilter.WEEKLY, now)

        assert view.window.start == datetime(2025, 3, 3)
        assert len(view.summary) == 2
