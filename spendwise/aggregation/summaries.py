"""
Aggregation Layer

Pure, stateless projections over a set of transactions and a reference date.
Nothing here mutates or caches; every function can be called on each render.

All trailing windows are inclusive of the reference date and compare dates
only. A 30-day window ending on 2024-05-30 covers 2024-05-01..2024-05-30, the
same thirty days the daily series reports, so the series always sums to the
windowed total.
"""

from collections.abc import Iterable
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Optional

from spendwise.models.ledger import (
    NEUTRAL_CATEGORY_COLOR,
    CategoryItem,
    LedgerStore,
    Transaction,
)
from spendwise.models.summary import (
    BankTotal,
    CategoryAverage,
    CategoryTotal,
    DailySpend,
    DashboardSummary,
)


DEFAULT_WINDOW_DAYS = 30

_ZERO = Decimal("0")
_HUNDRED = Decimal("100")
_CENTS = Decimal("0.01")


def _to_date(value: date) -> date:
    return value.date() if isinstance(value, datetime) else value


def _color_lookup(categories: Optional[Iterable[CategoryItem]]) -> dict[str, str]:
    return {c.name: c.color for c in categories or ()}


def _group_totals(transactions: Iterable[Transaction], key) -> dict[str, Decimal]:
    """Sum amounts per key, in order of first appearance. None keys are dropped."""
    groups: dict[str, Decimal] = {}
    for t in transactions:
        name = key(t)
        if name is None:
            continue
        groups[name] = groups.get(name, _ZERO) + t.amount
    return groups


def trailing_window(reference: date, days: int = DEFAULT_WINDOW_DAYS) -> tuple[date, date]:
    """First and last day (both inclusive) of a window ending on reference."""
    if days < 1:
        raise ValueError("Window must cover at least one day")
    end = _to_date(reference)
    return end - timedelta(days=days - 1), end


def in_window(
    transactions: Iterable[Transaction],
    reference: date,
    days: int = DEFAULT_WINDOW_DAYS,
) -> list[Transaction]:
    start, end = trailing_window(reference, days)
    return [t for t in transactions if start <= t.date <= end]


def total_spend(transactions: Iterable[Transaction]) -> Decimal:
    return sum((t.amount for t in transactions), _ZERO)


def category_totals(
    transactions: Iterable[Transaction],
    categories: Optional[Iterable[CategoryItem]] = None,
) -> list[CategoryTotal]:
    """
    Total per category over all history.

    Only categories with at least one transaction appear, including names
    of deleted categories still referenced by history.
    """
    colors = _color_lookup(categories)
    return [
        CategoryTotal(name=name, total=total, color=colors.get(name, NEUTRAL_CATEGORY_COLOR))
        for name, total in _group_totals(transactions, lambda t: t.category).items()
    ]


def daily_series(
    transactions: Iterable[Transaction],
    reference: date,
    days: int = DEFAULT_WINDOW_DAYS,
) -> list[DailySpend]:
    """One entry per day of the trailing window, oldest first. Empty days are zero."""
    start, end = trailing_window(reference, days)
    per_day = {start + timedelta(days=offset): _ZERO for offset in range(days)}
    for t in transactions:
        if start <= t.date <= end:
            per_day[t.date] += t.amount
    return [DailySpend(day=day, amount=amount) for day, amount in per_day.items()]


def category_averages(
    transactions: Iterable[Transaction],
    reference: date,
    categories: Optional[Iterable[CategoryItem]] = None,
    days: int = DEFAULT_WINDOW_DAYS,
) -> list[CategoryAverage]:
    """
    Trailing-window total and burn rate per category, highest first.

    average = window total / window length, regardless of how many days
    actually had spend.
    """
    colors = _color_lookup(categories)
    recent = in_window(transactions, reference, days)
    rows = [
        CategoryAverage(
            category=name,
            total=total,
            average=total / days,
            color=colors.get(name, NEUTRAL_CATEGORY_COLOR),
        )
        for name, total in _group_totals(recent, lambda t: t.category).items()
    ]
    return sorted(rows, key=lambda row: row.average, reverse=True)


def bank_totals(
    transactions: Iterable[Transaction],
    reference: date,
    days: int = DEFAULT_WINDOW_DAYS,
) -> list[BankTotal]:
    """Trailing-window total per bank, highest first. Transactions without a bank are ignored."""
    recent = in_window(transactions, reference, days)
    rows = [
        BankTotal(name=name, total=total)
        for name, total in _group_totals(recent, lambda t: t.bank_name).items()
    ]
    return sorted(rows, key=lambda row: row.total, reverse=True)


def average_daily_spend(
    transactions: list[Transaction],
    days: int = DEFAULT_WINDOW_DAYS,
) -> Decimal:
    """Overall spend spread over the window length (zero for an empty ledger)."""
    if not transactions:
        return _ZERO
    return total_spend(transactions) / days


def budget_used_percent(spent: Decimal, budget: Decimal) -> Decimal:
    """Share of the budget consumed, capped at 100."""
    if budget <= 0:
        return _HUNDRED if spent > 0 else _ZERO
    return min(spent / budget * _HUNDRED, _HUNDRED).quantize(_CENTS)


def build_dashboard(
    store: LedgerStore,
    reference: date,
    days: int = DEFAULT_WINDOW_DAYS,
) -> DashboardSummary:
    """Compute every overview figure for one render."""
    reference = _to_date(reference)
    transactions = store.transactions
    categories = store.all_categories
    spent = total_spend(transactions)

    return DashboardSummary(
        reference_date=reference,
        window_days=days,
        total_spent=spent,
        budget=store.budget,
        budget_used_percent=budget_used_percent(spent, store.budget),
        over_budget=spent > store.budget,
        category_totals=category_totals(transactions, categories),
        daily_series=daily_series(transactions, reference, days),
        category_averages=category_averages(transactions, reference, categories, days),
        bank_totals=bank_totals(transactions, reference, days),
        average_daily_spend=average_daily_spend(transactions, days),
        highest_transaction=max((t.amount for t in transactions), default=_ZERO),
        active_category_count=len({t.category for t in transactions}),
    )
