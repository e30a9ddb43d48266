"""Recurring obligation engine package."""

from spendwise.engine.recurring import (
    RECURRING_MARKER,
    RecurringAdvance,
    RuleStatus,
    add_months,
    add_years,
    advance,
    advance_rule,
    apply_advance,
    first_occurrence_after,
    instantiate,
    iter_due_dates,
    rule_status,
    step,
)

__all__ = [
    "RECURRING_MARKER",
    "RecurringAdvance",
    "RuleStatus",
    "add_months",
    "add_years",
    "advance",
    "advance_rule",
    "apply_advance",
    "first_occurrence_after",
    "instantiate",
    "iter_due_dates",
    "rule_status",
    "step",
]
