"""
Entry Validation

Everything a user types is validated here before it reaches the store.
A rejected entry leaves the ledger untouched; the caller gets every issue
found, not just the first one.

ERRORS block the entry:
- missing description, amount or date
- amount that is not a finite, non-negative number
- credit category (Loan/EMI) without a bank or lender name
- category name that is empty or already taken (case-insensitive)

WARNINGS are shown but do not block:
- unusually large amounts
- category names that are not defined (soft reference, history may dangle)

IMPORTANT: Validation NEVER silently fixes input. The only normalization is
that a bank name is dropped for non-credit categories.
"""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from spendwise.config import LedgerSettings, get_settings
from spendwise.models.ledger import (
    LedgerStore,
    Transaction,
    TransactionDraft,
    ValidationIssue,
    ValidationResult,
    is_credit_category,
)


_COLOR_PATTERN = re.compile(r"^#[0-9a-fA-F]{6}$")

MAX_DESCRIPTION_LENGTH = 500
MAX_BANK_NAME_LENGTH = 200
MAX_CATEGORY_NAME_LENGTH = 50


class EntryValidationError(ValueError):
    """An entry was rejected. `result` holds every issue found."""

    def __init__(self, result: ValidationResult):
        self.result = result
        messages = "; ".join(
            issue.message for issue in result.issues if issue.severity == "error"
        )
        super().__init__(f"Invalid {result.subject}: {messages}")


def _error(field: str, issue_type: str, message: str, fix: Optional[str] = None) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type=issue_type,
        message=message,
        severity="error",
        suggested_fix=fix,
    )


def _warning(field: str, issue_type: str, message: str, fix: Optional[str] = None) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type=issue_type,
        message=message,
        severity="warning",
        suggested_fix=fix,
    )


def parse_amount(raw: Union[str, Decimal, int, float, None]) -> Optional[Decimal]:
    """Parse user-entered money, returning None if it is not a finite number."""
    if raw is None or isinstance(raw, bool):
        return None
    try:
        value = Decimal(str(raw).strip())
    except InvalidOperation:
        return None
    return value if value.is_finite() else None


def parse_entry_date(raw: Union[date, str, None]) -> Optional[date]:
    """Accept a date, a datetime, or YYYY-MM-DD text."""
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return raw.date()
    if isinstance(raw, date):
        return raw
    try:
        return date.fromisoformat(raw.strip())
    except ValueError:
        return None


class EntryValidator:
    """
    Validates user entries against the current ledger.

    The ledger is only read (category lookups, name uniqueness).
    """

    def __init__(self, settings: Optional[LedgerSettings] = None):
        self._settings = settings or get_settings().ledger

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def validate_transaction(
        self,
        draft: TransactionDraft,
        store: LedgerStore,
    ) -> ValidationResult:
        issues = []

        if not draft.description:
            issues.append(_error(
                "description", "missing", "Description is required",
                "Describe what the money was spent on",
            ))
        elif len(draft.description) > MAX_DESCRIPTION_LENGTH:
            issues.append(_error(
                "description", "too_long",
                f"Description must be at most {MAX_DESCRIPTION_LENGTH} characters",
            ))

        amount = parse_amount(draft.amount)
        if not draft.amount:
            issues.append(_error("amount", "missing", "Amount is required"))
        elif amount is None:
            issues.append(_error(
                "amount", "invalid_value",
                f"Amount '{draft.amount}' is not a valid number",
                "Enter digits only, e.g. 150 or 99.50",
            ))
        elif amount < 0:
            issues.append(_error("amount", "invalid_value", "Amount cannot be negative"))
        elif amount > self._settings.max_transaction_amount:
            issues.append(_warning(
                "amount", "suspicious_value",
                f"Amount ({amount:,.2f}) seems unusually high",
                "Please verify this amount is correct",
            ))

        if draft.entry_date is None:
            issues.append(_error("date", "missing", "Date is required"))
        elif parse_entry_date(draft.entry_date) is None:
            issues.append(_error(
                "date", "invalid_format",
                f"Date '{draft.entry_date}' is not a valid YYYY-MM-DD date",
            ))

        if is_credit_category(draft.category) and not draft.bank_name:
            issues.append(_error(
                "bank_name", "missing",
                f"Bank / lender name is required for {draft.category}",
                "Enter the bank or lender, e.g. HDFC Bank",
            ))
        elif is_credit_category(draft.category) and len(draft.bank_name) > MAX_BANK_NAME_LENGTH:
            issues.append(_error(
                "bank_name", "too_long",
                f"Bank / lender name must be at most {MAX_BANK_NAME_LENGTH} characters",
            ))

        if store.find_category(draft.category) is None:
            issues.append(_warning(
                "category", "unknown",
                f"Category '{draft.category}' is not defined",
            ))

        return ValidationResult(subject="transaction", issues=issues)

    def build_transaction(
        self,
        draft: TransactionDraft,
        store: LedgerStore,
        transaction_id: Optional[str] = None,
        recurring_id: Optional[str] = None,
    ) -> Transaction:
        """
        Validate a draft and turn it into a transaction.

        Raises:
            EntryValidationError: If the draft has any error-level issue
        """
        result = self.validate_transaction(draft, store)
        if result.has_errors:
            raise EntryValidationError(result)

        fields = dict(
            amount=parse_amount(draft.amount),
            description=draft.description,
            category=draft.category,
            date=parse_entry_date(draft.entry_date),
            bank_name=draft.bank_name if is_credit_category(draft.category) else None,
            recurring_id=recurring_id,
            receipt_image=draft.receipt_image,
        )
        if transaction_id is not None:
            fields["id"] = transaction_id
        return Transaction(**fields)

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    def validate_category(
        self,
        name: str,
        color: str,
        store: LedgerStore,
    ) -> ValidationResult:
        issues = []
        name = name.strip()

        if not name:
            issues.append(_error("name", "missing", "Category name is required"))
        elif len(name) > MAX_CATEGORY_NAME_LENGTH:
            issues.append(_error(
                "name", "too_long",
                f"Category name must be at most {MAX_CATEGORY_NAME_LENGTH} characters",
            ))
        elif store.find_category(name) is not None:
            issues.append(_error(
                "name", "duplicate",
                f"Category '{name}' already exists",
                "Pick a different name",
            ))

        if not _COLOR_PATTERN.match(color.strip()):
            issues.append(_error(
                "color", "invalid_format",
                f"Colour '{color}' must look like #rrggbb",
            ))

        return ValidationResult(subject="category", issues=issues)

    # -------------------------------------------------------------------------
    # Budget
    # -------------------------------------------------------------------------

    def validate_budget(self, raw: Union[str, Decimal, int, float]) -> ValidationResult:
        issues = []
        value = parse_amount(raw)
        if value is None:
            issues.append(_error(
                "budget", "invalid_value", "Please enter a valid amount",
            ))
        elif value < 0:
            issues.append(_error("budget", "invalid_value", "Budget cannot be negative"))
        return ValidationResult(subject="budget", issues=issues)

    def parse_budget(self, raw: Union[str, Decimal, int, float]) -> Decimal:
        """
        Raises:
            EntryValidationError: If the value is not a non-negative number
        """
        result = self.validate_budget(raw)
        if result.has_errors:
            raise EntryValidationError(result)
        return parse_amount(raw)

    def get_user_friendly_summary(self, result: ValidationResult) -> str:
        """
        Generate a user-friendly summary of validation results.
        """
        if result.is_valid and not result.warnings:
            return "All checks passed."

        lines = []
        if result.has_errors:
            lines.append("Please fix the following:")
            for issue in result.issues:
                if issue.severity == "error":
                    lines.append(f"   • {issue.message}")
                    if issue.suggested_fix:
                        lines.append(f"     {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("Please verify the following:")
            for warning in result.warnings:
                lines.append(f"   • {warning}")

        return "\n".join(lines)
