"""
Data Models Package

This package contains all Pydantic models used by the SpendWise ledger.
All data flowing through the system must conform to these schemas.
"""

from spendwise.models.ledger import (
    BACKUP_FORMAT_VERSION,
    CREDIT_CATEGORIES,
    DEFAULT_CATEGORIES,
    NEUTRAL_CATEGORY_COLOR,
    BackupPayload,
    CategoryItem,
    CsvImportResult,
    DefaultCategory,
    ImportSummary,
    LedgerStore,
    RecurringFrequency,
    RecurringRule,
    Transaction,
    TransactionDraft,
    ValidationIssue,
    ValidationResult,
    is_credit_category,
    new_custom_category_id,
    new_id,
)
from spendwise.models.summary import (
    BankTotal,
    CategoryAverage,
    CategoryTotal,
    DailySpend,
    DashboardSummary,
)
from spendwise.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "BACKUP_FORMAT_VERSION",
    "CREDIT_CATEGORIES",
    "DEFAULT_CATEGORIES",
    "NEUTRAL_CATEGORY_COLOR",
    "BackupPayload",
    "CategoryItem",
    "CsvImportResult",
    "DefaultCategory",
    "ImportSummary",
    "LedgerStore",
    "RecurringFrequency",
    "RecurringRule",
    "Transaction",
    "TransactionDraft",
    "ValidationIssue",
    "ValidationResult",
    "is_credit_category",
    "new_custom_category_id",
    "new_id",
    # Summary models
    "BankTotal",
    "CategoryAverage",
    "CategoryTotal",
    "DailySpend",
    "DashboardSummary",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
