"""
Tests for the aggregation layer.
"""

import pytest
from datetime import date, timedelta
from decimal import Decimal

from spendwise.aggregation import (
    average_daily_spend,
    bank_totals,
    budget_used_percent,
    build_dashboard,
    category_averages,
    category_totals,
    daily_series,
    in_window,
    total_spend,
    trailing_window,
)
from spendwise.models.ledger import (
    NEUTRAL_CATEGORY_COLOR,
    DEFAULT_CATEGORIES,
    LedgerStore,
    Transaction,
)


REFERENCE = date(2024, 5, 30)


def tx(amount, category="Food", days_ago=0, bank_name=None) -> Transaction:
    return Transaction(
        amount=Decimal(str(amount)),
        description="Item",
        category=category,
        date=REFERENCE - timedelta(days=days_ago),
        bank_name=bank_name,
    )


@pytest.fixture
def transactions() -> list[Transaction]:
    return [
        tx(300, "Food", 0),
        tx(120, "Transport", 3),
        tx(600, "Food", 29),
        tx(900, "Rent", 30),
        tx(5000, "Loan", 10, bank_name="HDFC Bank"),
        tx(2500, "EMI", 40, bank_name="SBI"),
        tx(1500, "EMI", 5, bank_name="SBI"),
        tx(45, "Pets", 1),
    ]


class TestWindow:
    """Tests for the trailing window."""

    def test_window_bounds_inclusive(self):
        """Test a 30-day window is the reference day and the 29 before it."""
        assert trailing_window(REFERENCE) == (date(2024, 5, 1), date(2024, 5, 30))

    def test_window_filters(self, transactions):
        """Test that day 29 is in the window and day 30 is out."""
        recent = in_window(transactions, REFERENCE)
        assert total_spend(recent) == Decimal("7565")

    def test_window_must_be_positive(self):
        """Test that an empty window is rejected."""
        with pytest.raises(ValueError):
            trailing_window(REFERENCE, 0)


class TestTotals:
    """Tests for per-category and per-day totals."""

    def test_category_totals_sum_to_total_spend(self, transactions):
        """Test the per-category totals partition total spend."""
        totals = category_totals(transactions, DEFAULT_CATEGORIES)
        assert sum(t.total for t in totals) == total_spend(transactions)
        assert {t.name: t.total for t in totals}["Food"] == Decimal("900")

    def test_category_totals_order_and_colors(self, transactions):
        """Test first-appearance order and neutral colour for unknown names."""
        totals = category_totals(transactions, DEFAULT_CATEGORIES)
        assert [t.name for t in totals] == ["Food", "Transport", "Rent", "Loan", "EMI", "Pets"]
        assert totals[-1].color == NEUTRAL_CATEGORY_COLOR
        assert totals[0].color != NEUTRAL_CATEGORY_COLOR

    def test_daily_series_covers_window(self, transactions):
        """Test the series has one entry per day, oldest first, zero-filled."""
        series = daily_series(transactions, REFERENCE)
        assert len(series) == 30
        assert series[0].day == date(2024, 5, 1)
        assert series[-1].day == REFERENCE
        assert series[-1].amount == Decimal("300")
        assert series[1].amount == Decimal("0")

    def test_daily_series_sums_to_window_total(self, transactions):
        """Test the daily series sums to the windowed spend."""
        series = daily_series(transactions, REFERENCE)
        assert sum(d.amount for d in series) == total_spend(in_window(transactions, REFERENCE))

    def test_future_transactions_outside_window(self):
        """Test that future-dated entries do not appear in the series."""
        series = daily_series([tx(50, days_ago=-1)], REFERENCE)
        assert sum(d.amount for d in series) == Decimal("0")


class TestBreakdowns:
    """Tests for category averages and bank totals."""

    def test_category_averages(self, transactions):
        """Test burn rate is window total over window length, highest first."""
        averages = category_averages(transactions, REFERENCE, DEFAULT_CATEGORIES)
        assert [a.category for a in averages] == ["Loan", "EMI", "Food", "Transport", "Pets"]
        food = next(a for a in averages if a.category == "Food")
        assert food.total == Decimal("900")
        assert food.average == Decimal("30")

    def test_bank_totals(self, transactions):
        """Test only entries with a bank count, highest first."""
        banks = bank_totals(transactions, REFERENCE)
        assert [(b.name, b.total) for b in banks] == [
            ("HDFC Bank", Decimal("5000")),
            ("SBI", Decimal("1500")),
        ]


class TestQuickStats:
    """Tests for the headline figures."""

    def test_average_daily_spend(self, transactions):
        """Test the overall average spreads all spend over the window."""
        assert average_daily_spend([]) == Decimal("0")
        assert average_daily_spend([tx(300)]) == Decimal("10")

    @pytest.mark.parametrize(
        "spent, budget, expected",
        [
            ("25000", "50000", "50.00"),
            ("60000", "50000", "100"),
            ("0", "0", "0"),
            ("10", "0", "100"),
        ],
    )
    def test_budget_used_percent(self, spent, budget, expected):
        """Test budget usage is capped at 100."""
        assert budget_used_percent(Decimal(spent), Decimal(budget)) == Decimal(expected)

    def test_dashboard(self, transactions):
        """Test the dashboard combines every figure consistently."""
        store = LedgerStore(transactions=transactions, budget=Decimal("10000"))
        summary = build_dashboard(store, REFERENCE)

        assert summary.total_spent == Decimal("10965")
        assert summary.over_budget is True
        assert summary.budget_used_percent == Decimal("100")
        assert summary.highest_transaction == Decimal("5000")
        assert summary.active_category_count == 6
        assert len(summary.daily_series) == 30

    def test_empty_dashboard(self):
        """Test an empty ledger yields zeros, not errors."""
        summary = build_dashboard(LedgerStore(budget=Decimal("50000")), REFERENCE)
        assert summary.total_spent == Decimal("0")
        assert summary.highest_transaction == Decimal("0")
        assert summary.category_totals == []
        assert summary.over_budget is False


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
