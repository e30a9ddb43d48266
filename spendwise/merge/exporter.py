"""
Export encoders.

Produce the two external formats: the full JSON backup and the
transaction-only CSV. The caller decides where the text goes.
"""

from collections.abc import Iterable
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from spendwise.merge.importer import CSV_HEADER
from spendwise.models.ledger import (
    BACKUP_FORMAT_VERSION,
    BackupPayload,
    LedgerStore,
    Transaction,
)


def build_backup(
    store: LedgerStore,
    exported_at: Optional[datetime] = None,
) -> BackupPayload:
    """Snapshot the whole ledger as a backup document."""
    return BackupPayload(
        version=BACKUP_FORMAT_VERSION,
        timestamp=exported_at or datetime.now(timezone.utc),
        expenses=list(store.transactions),
        recurring_expenses=list(store.recurring_rules),
        custom_categories=list(store.custom_categories),
        monthly_budget=store.budget,
    )


def backup_to_json(payload: BackupPayload) -> str:
    """Encode a backup with camelCase keys, omitting unset optional fields."""
    return payload.model_dump_json(by_alias=True, exclude_none=True, indent=2)


def export_backup(store: LedgerStore, exported_at: Optional[datetime] = None) -> str:
    return backup_to_json(build_backup(store, exported_at))


def single_line(value: str) -> str:
    """Fold line breaks into spaces; the CSV reader splits rows on newlines."""
    return " ".join(value.splitlines())


def quote_csv_field(value: str) -> str:
    """Wrap in double quotes, doubling any quote inside."""
    return '"' + single_line(value).replace('"', '""') + '"'


def format_amount(amount: Decimal) -> str:
    """Plain decimal notation without trailing zeros (150, 99.5)."""
    return format(amount.normalize(), "f")


def transaction_to_csv_row(transaction: Transaction) -> str:
    category = single_line(transaction.category)
    if "," in category or '"' in category:
        category = quote_csv_field(category)
    return ",".join([
        transaction.date.isoformat(),
        quote_csv_field(transaction.description),
        category,
        format_amount(transaction.amount),
        quote_csv_field(transaction.bank_name or ""),
    ])


def export_csv(transactions: Iterable[Transaction]) -> str:
    """
    Encode transactions as CSV.

    Header: Date,Description,Category,Amount,Bank. Description and bank are
    always quoted, amount never is.
    """
    lines = [",".join(CSV_HEADER)]
    lines.extend(transaction_to_csv_row(t) for t in transactions)
    return "\n".join(lines)
