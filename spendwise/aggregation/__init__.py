"""Aggregation layer package."""

from spendwise.aggregation.summaries import (
    DEFAULT_WINDOW_DAYS,
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

__all__ = [
    "DEFAULT_WINDOW_DAYS",
    "average_daily_spend",
    "bank_totals",
    "budget_used_percent",
    "build_dashboard",
    "category_averages",
    "category_totals",
    "daily_series",
    "in_window",
    "total_spend",
    "trailing_window",
]
