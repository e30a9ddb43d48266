"""
Core Ledger Models for SpendWise

These models define the schemas for everything the ledger stores and
exchanges with its collaborators. They are designed to:
1. Enforce type safety at runtime
2. Round-trip the persisted/backup JSON shape (camelCase keys)
3. Be immutable snapshots that the engine and merger can copy safely

DESIGN DECISION: Transactions and rules are frozen. An edit is a wholesale
replacement (model_copy / a new instance), never an in-place mutation.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Union
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_serializer,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


NEUTRAL_CATEGORY_COLOR = "#94a3b8"


def new_id() -> str:
    """Create a fresh opaque identifier."""
    return uuid4().hex


def new_custom_category_id() -> str:
    return f"custom_{uuid4().hex[:12]}"


def decimal_to_number(value: Decimal) -> Union[int, float]:
    """
    Render a Decimal as a JSON number.

    Integral values stay integers so that "150" is written as 150, not 150.0.
    """
    if value == value.to_integral_value():
        return int(value)
    return float(value)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class RecurringFrequency(str, Enum):
    """How often a recurring rule comes due."""
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class DefaultCategory(str, Enum):
    """
    Built-in categories.

    These always exist, cannot be deleted, and LOAN/EMI are the two
    credit-like categories that require a bank/lender name at entry.
    """
    FOOD = "Food"
    TRANSPORT = "Transport"
    SHOPPING = "Shopping"
    BILLS = "Bills"
    ENTERTAINMENT = "Entertainment"
    HEALTH = "Health"
    EDUCATION = "Education"
    RENT = "Rent"
    LOAN = "Loan"
    EMI = "EMI"
    OTHER = "Other"


CREDIT_CATEGORIES = frozenset({DefaultCategory.LOAN.value, DefaultCategory.EMI.value})


def is_credit_category(name: str) -> bool:
    """Check whether a category name is one of the credit-like categories."""
    folded = name.strip().casefold()
    return any(folded == credit.casefold() for credit in CREDIT_CATEGORIES)


# =============================================================================
# CORE LEDGER MODELS
# =============================================================================

class Transaction(BaseModel):
    """
    A single expense attributed to a calendar date.

    `recurring_id` is a provenance tag only. Deleting the rule it points to
    never deletes the transaction.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        frozen=True,
    )

    id: str = Field(
        default_factory=new_id,
        min_length=1,
        description="Opaque unique identifier, never reused"
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Amount spent"
    )
    description: str = Field(
        ...,
        description="Free text description"
    )
    category: str = Field(
        ...,
        description="Category name (soft reference)"
    )
    date: date
    bank_name: Optional[str] = Field(
        default=None,
        description="Bank or lender, required at entry for credit categories"
    )
    recurring_id: Optional[str] = Field(
        default=None,
        description="Rule that generated this instance, if any"
    )
    receipt_image: Optional[str] = Field(
        default=None,
        description="Opaque receipt image payload (data URL)"
    )

    @field_validator("bank_name", "recurring_id", "receipt_image")
    @classmethod
    def blank_as_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @field_serializer("amount", when_used="json")
    def serialize_amount(self, value: Decimal) -> Union[int, float]:
        return decimal_to_number(value)


class RecurringRule(BaseModel):
    """
    A template plus a schedule cursor.

    `next_occurrence_date` is the earliest date for which no instance has been
    generated yet. It is the only scheduling state that moves.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        frozen=True,
    )

    id: str = Field(default_factory=new_id, min_length=1)

    # Template copied into every instance
    amount: Decimal = Field(..., ge=0)
    description: str
    category: str
    bank_name: Optional[str] = None

    # Schedule
    frequency: RecurringFrequency
    start_date: date = Field(
        ...,
        description="When the rule began (informational)"
    )
    next_occurrence_date: date = Field(
        ...,
        description="Earliest not-yet-generated due date"
    )
    is_active: bool = Field(
        default=True,
        description="Paused rules never advance or generate"
    )

    @field_validator("frequency", mode="before")
    @classmethod
    def normalize_frequency(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("bank_name")
    @classmethod
    def blank_as_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @field_serializer("amount", when_used="json")
    def serialize_amount(self, value: Decimal) -> Union[int, float]:
        return decimal_to_number(value)


class CategoryItem(BaseModel):
    """A category definition. Built-ins have is_custom=False."""
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
        frozen=True,
    )

    id: str = Field(default_factory=new_custom_category_id, min_length=1)
    name: str = Field(..., min_length=1, max_length=50)
    color: str = Field(default=NEUTRAL_CATEGORY_COLOR, max_length=32)
    is_custom: bool = True


DEFAULT_CATEGORIES: tuple[CategoryItem, ...] = tuple(
    CategoryItem(
        id=f"default_{category.name.lower()}",
        name=category.value,
        color=color,
        is_custom=False,
    )
    for category, color in (
        (DefaultCategory.FOOD, "#f97316"),
        (DefaultCategory.TRANSPORT, "#3b82f6"),
        (DefaultCategory.SHOPPING, "#ec4899"),
        (DefaultCategory.BILLS, "#eab308"),
        (DefaultCategory.ENTERTAINMENT, "#8b5cf6"),
        (DefaultCategory.HEALTH, "#10b981"),
        (DefaultCategory.EDUCATION, "#06b6d4"),
        (DefaultCategory.RENT, "#6366f1"),
        (DefaultCategory.LOAN, "#ef4444"),
        (DefaultCategory.EMI, "#f43f5e"),
        (DefaultCategory.OTHER, NEUTRAL_CATEGORY_COLOR),
    )
)


def _first_duplicate(ids: list[str]) -> Optional[str]:
    seen: set[str] = set()
    for item_id in ids:
        if item_id in seen:
            return item_id
        seen.add(item_id)
    return None


class LedgerStore(BaseModel):
    """
    The authoritative collections of a ledger.

    A pure data container. Operations that change it produce a new store
    (see model_copy) so that callers can hold on to earlier snapshots.

    Transactions are kept newest-insertion first: manual entries and
    generated instances are prepended, imports are appended.
    """

    transactions: list[Transaction] = Field(default_factory=list)
    recurring_rules: list[RecurringRule] = Field(default_factory=list)
    custom_categories: list[CategoryItem] = Field(default_factory=list)
    budget: Decimal = Field(default=Decimal("0"), ge=0)

    @model_validator(mode='after')
    def validate_unique_ids(self) -> 'LedgerStore':
        """Identifiers must be unique within each collection."""
        for label, ids in (
            ("transaction", [t.id for t in self.transactions]),
            ("recurring rule", [r.id for r in self.recurring_rules]),
            ("category", [c.id for c in self.custom_categories]),
        ):
            duplicate = _first_duplicate(ids)
            if duplicate is not None:
                raise ValueError(f"Duplicate {label} id: {duplicate}")
        return self

    @property
    def all_categories(self) -> list[CategoryItem]:
        """Built-in categories followed by custom ones."""
        return [*DEFAULT_CATEGORIES, *self.custom_categories]

    def find_category(self, name: str) -> Optional[CategoryItem]:
        """Look up a category by name, case-insensitively."""
        folded = name.strip().casefold()
        for category in self.all_categories:
            if category.name.casefold() == folded:
                return category
        return None

    def category_color(self, name: str) -> str:
        category = self.find_category(name)
        return category.color if category else NEUTRAL_CATEGORY_COLOR

    def find_transaction(self, transaction_id: str) -> Optional[Transaction]:
        return next((t for t in self.transactions if t.id == transaction_id), None)

    def find_rule(self, rule_id: str) -> Optional[RecurringRule]:
        return next((r for r in self.recurring_rules if r.id == rule_id), None)

    def transactions_for_rule(self, rule_id: str) -> list[Transaction]:
        """Transactions whose provenance tag points at a rule."""
        return [t for t in self.transactions if t.recurring_id == rule_id]

    def is_category_referenced(self, name: str) -> bool:
        """Is a category name used by any transaction or rule?"""
        folded = name.strip().casefold()
        return any(t.category.casefold() == folded for t in self.transactions) or any(
            r.category.casefold() == folded for r in self.recurring_rules
        )


# =============================================================================
# BACKUP / IMPORT MODELS
# =============================================================================

BACKUP_FORMAT_VERSION = 1


class BackupPayload(BaseModel):
    """
    The JSON backup document.

    Every collection is optional on import: a payload that omits a key leaves
    that part of the ledger alone.
    """
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    version: int = BACKUP_FORMAT_VERSION
    timestamp: Optional[datetime] = None
    expenses: Optional[list[Transaction]] = None
    recurring_expenses: Optional[list[RecurringRule]] = None
    custom_categories: Optional[list[CategoryItem]] = None
    monthly_budget: Optional[Decimal] = Field(default=None, ge=0)

    @field_serializer("monthly_budget", when_used="json")
    def serialize_budget(self, value: Optional[Decimal]) -> Optional[Union[int, float]]:
        return decimal_to_number(value) if value is not None else None


class CsvImportResult(BaseModel):
    """Outcome of parsing CSV text into fresh transactions."""

    transactions: list[Transaction] = Field(default_factory=list)
    skipped: int = Field(default=0, ge=0)

    @property
    def accepted(self) -> int:
        return len(self.transactions)


class ImportSummary(BaseModel):
    """What an import added to the ledger."""

    transactions_added: int = Field(default=0, ge=0)
    rules_added: int = Field(default=0, ge=0)
    categories_added: int = Field(default=0, ge=0)
    budget_updated: bool = False
    rows_skipped: int = Field(default=0, ge=0)
    instances_generated: int = Field(
        default=0,
        ge=0,
        description="Catch-up instances produced by newly imported rules"
    )


# =============================================================================
# ENTRY MODELS
# =============================================================================

class TransactionDraft(BaseModel):
    """
    Raw user input for a transaction, before validation.

    Values are kept as entered (amount as text) so that the validator can
    report every problem instead of failing on the first coercion error.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    description: str = ""
    amount: str = ""
    category: str = DefaultCategory.OTHER.value
    entry_date: Optional[Union[date, str]] = None
    bank_name: str = ""
    receipt_image: Optional[str] = None

    @field_validator("amount", mode="before")
    @classmethod
    def amount_as_text(cls, v: Any) -> Any:
        if v is None:
            return ""
        if isinstance(v, (int, float, Decimal)) and not isinstance(v, bool):
            return str(v)
        return v


class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'duplicate')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = None


class ValidationResult(BaseModel):
    """Result of validating one entry (transaction, category or budget)."""

    subject: str = Field(
        ...,
        description="What was validated (e.g., 'transaction', 'category')"
    )
    validated_at: datetime = Field(default_factory=datetime.now)
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def warnings(self) -> list[str]:
        return [issue.message for issue in self.issues if issue.severity == "warning"]
