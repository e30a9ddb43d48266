"""
Recurring Obligation Engine

Advances recurring rules forward in time and materializes every missed or
due instance as an ordinary transaction.

DESIGN DECISION: The engine is a pure function over immutable snapshots.
It performs no I/O, never touches the store and never mutates its inputs.
The caller decides what to do with the result (prepend instances, replace
rules, persist). This keeps it testable without any storage.

Per rule the engine is a two-state machine:
- paused: nothing happens
- active: while the cursor is on or before today, emit an instance dated
  at the cursor and step the cursor by the rule's frequency

A rule that has been idle for months catches up with one instance per
elapsed period, not a lump adjustment.

CALENDAR POLICY: Monthly and yearly steps clamp to the last day of the
target month. Jan 31 + 1 month is Feb 29 in a leap year (Feb 28 otherwise),
and Feb 29 + 1 year is Feb 28. The step is computed from the cursor alone,
so a clamped day is carried forward (Jan 31 -> Feb 29 -> Mar 29).
"""

import calendar
from collections.abc import Callable, Iterable, Iterator
from datetime import date, datetime, timedelta
from enum import Enum

from pydantic import BaseModel, Field

from spendwise.models.ledger import (
    RecurringFrequency,
    RecurringRule,
    Transaction,
    new_id,
)


RECURRING_MARKER = "(Recurring)"


class RuleStatus(str, Enum):
    """Where a rule stands relative to a reference date."""
    PAUSED = "paused"
    OVERDUE = "overdue"
    DUE_TODAY = "due_today"
    UPCOMING = "upcoming"


class RecurringAdvance(BaseModel):
    """
    Result of one engine pass.

    `new_transactions` is in rule-processing order, then chronological within
    each rule. It is NOT globally sorted by date across rules.
    """

    updated_rules: list[RecurringRule] = Field(default_factory=list)
    new_transactions: list[Transaction] = Field(default_factory=list)

    @property
    def is_noop(self) -> bool:
        return not self.updated_rules and not self.new_transactions


# =============================================================================
# CALENDAR ARITHMETIC
# =============================================================================

def clamp_day_to_month(year: int, month: int, day: int) -> int:
    """Clamp day to valid range for the given year/month."""
    return min(day, calendar.monthrange(year, month)[1])


def add_months(d: date, n: int) -> date:
    """Add n months to date d, clamping day to month end."""
    month = d.month - 1 + n
    year = d.year + month // 12
    month = month % 12 + 1
    return d.replace(year=year, month=month, day=clamp_day_to_month(year, month, d.day))


def add_years(d: date, n: int) -> date:
    """Add n years to date d. Feb 29 lands on Feb 28 in non-leap years."""
    year = d.year + n
    return d.replace(year=year, day=clamp_day_to_month(year, d.month, d.day))


def step(cursor: date, frequency: RecurringFrequency) -> date:
    """Advance a cursor by exactly one period of the given frequency."""
    if frequency == RecurringFrequency.DAILY:
        return cursor + timedelta(days=1)
    if frequency == RecurringFrequency.WEEKLY:
        return cursor + timedelta(days=7)
    if frequency == RecurringFrequency.MONTHLY:
        return add_months(cursor, 1)
    if frequency == RecurringFrequency.YEARLY:
        return add_years(cursor, 1)
    # Frequencies are validated when a rule is built; reaching this is a bug.
    raise ValueError(f"Unsupported recurring frequency: {frequency!r}")


def as_calendar_date(value: date) -> date:
    """Drop any time-of-day component before date comparisons."""
    if isinstance(value, datetime):
        return value.date()
    return value


def iter_due_dates(
    cursor: date,
    frequency: RecurringFrequency,
    until: date,
) -> Iterator[date]:
    """Yield every scheduled date from cursor up to and including until."""
    current = as_calendar_date(cursor)
    until = as_calendar_date(until)
    while current <= until:
        yield current
        current = step(current, frequency)


# =============================================================================
# ENGINE
# =============================================================================

def instantiate(
    rule: RecurringRule,
    on: date,
    marker: str = RECURRING_MARKER,
    id_factory: Callable[[], str] = new_id,
) -> Transaction:
    """Build the transaction a rule produces for one scheduled date."""
    return Transaction(
        id=id_factory(),
        amount=rule.amount,
        description=f"{rule.description} {marker}",
        category=rule.category,
        date=on,
        bank_name=rule.bank_name,
        recurring_id=rule.id,
    )


def advance_rule(
    rule: RecurringRule,
    today: date,
    marker: str = RECURRING_MARKER,
    id_factory: Callable[[], str] = new_id,
) -> tuple[RecurringRule, list[Transaction]]:
    """
    Catch one rule up to today (inclusive).

    Returns the rule (a new copy with the cursor moved if anything was due,
    otherwise the same object) and the instances generated.
    """
    if not rule.is_active:
        return rule, []

    due = list(iter_due_dates(rule.next_occurrence_date, rule.frequency, today))
    if not due:
        return rule, []

    instances = [instantiate(rule, on, marker, id_factory) for on in due]
    cursor = step(due[-1], rule.frequency)
    return rule.model_copy(update={"next_occurrence_date": cursor}), instances


def advance(
    rules: Iterable[RecurringRule],
    today: date,
    marker: str = RECURRING_MARKER,
    id_factory: Callable[[], str] = new_id,
) -> RecurringAdvance:
    """
    Run one catch-up pass over a rule set.

    Args:
        rules: Current rules (not modified)
        today: Reference date; a rule due exactly today generates today
        marker: Suffix appended to every instance description
        id_factory: Source of fresh transaction ids

    Returns:
        RecurringAdvance with only the rules whose cursor moved and all
        generated instances. Running it again with the same date and the
        updated rules is a no-op.
    """
    result = RecurringAdvance()
    for rule in rules:
        updated, instances = advance_rule(rule, today, marker, id_factory)
        if instances:
            result.updated_rules.append(updated)
            result.new_transactions.extend(instances)
    return result


def apply_advance(
    rules: list[RecurringRule],
    outcome: RecurringAdvance,
) -> list[RecurringRule]:
    """Replace rules by id with their advanced copies, keeping order."""
    replacements = {rule.id: rule for rule in outcome.updated_rules}
    return [replacements.get(rule.id, rule) for rule in rules]


def first_occurrence_after(entry_date: date, frequency: RecurringFrequency) -> date:
    """
    Cursor for a rule created alongside a manual entry.

    The entered transaction is the first instance, so the rule starts one
    period later.
    """
    return step(as_calendar_date(entry_date), frequency)


def rule_status(rule: RecurringRule, today: date) -> RuleStatus:
    """Classify a rule for display."""
    if not rule.is_active:
        return RuleStatus.PAUSED
    today = as_calendar_date(today)
    if rule.next_occurrence_date < today:
        return RuleStatus.OVERDUE
    if rule.next_occurrence_date == today:
        return RuleStatus.DUE_TODAY
    return RuleStatus.UPCOMING
