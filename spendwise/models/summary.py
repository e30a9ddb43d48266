"""
Summary Models

Read-only projections produced by the aggregation layer. The UI renders
these directly; nothing here is ever persisted.
"""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field


class CategoryTotal(BaseModel):
    """Total spend for one category."""

    name: str
    total: Decimal
    color: str


class DailySpend(BaseModel):
    """Spend attributed to one calendar day. Days with no spend report zero."""

    day: date
    amount: Decimal = Decimal("0")


class CategoryAverage(BaseModel):
    """
    Trailing-window spend for one category.

    `average` is the window total divided by the window length, a burn rate,
    not an average over active days.
    """

    category: str
    total: Decimal
    average: Decimal
    color: str


class BankTotal(BaseModel):
    """Trailing-window spend paid through one bank or lender."""

    name: str
    total: Decimal


class DashboardSummary(BaseModel):
    """Everything the overview screen shows, computed in one pass."""

    reference_date: date
    window_days: int = Field(ge=1)

    total_spent: Decimal
    budget: Decimal
    budget_used_percent: Decimal = Field(
        ...,
        ge=0,
        le=100,
        description="Spend as a share of budget, capped at 100 for display"
    )
    over_budget: bool

    category_totals: list[CategoryTotal] = Field(default_factory=list)
    daily_series: list[DailySpend] = Field(default_factory=list)
    category_averages: list[CategoryAverage] = Field(default_factory=list)
    bank_totals: list[BankTotal] = Field(default_factory=list)

    # Quick stats
    average_daily_spend: Decimal
    highest_transaction: Decimal
    active_category_count: int = Field(ge=0)
