"""
Import Merger

Reconciles externally supplied batches with the current ledger.

JSON BACKUPS are merged conservatively: for transactions, custom categories
and recurring rules, an incoming record is accepted only if its id is not
already present. Existing records are never overwritten. A declared budget
always replaces the current one. A malformed payload fails the whole import
before anything is applied.

CSV FILES carry no ids, so every accepted row becomes a fresh transaction.
Importing the same file twice duplicates its rows. Bad rows are skipped and
counted; the batch as a whole always succeeds.

Both paths are pure: they take a snapshot and return a new one.
"""

import json
import re
from collections.abc import Iterable
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Optional, TypeVar, Union

from pydantic import ValidationError

from spendwise.models.ledger import (
    BackupPayload,
    CategoryItem,
    CsvImportResult,
    DefaultCategory,
    ImportSummary,
    LedgerStore,
    Transaction,
)


CSV_HEADER = ["Date", "Description", "Category", "Amount", "Bank"]
CSV_MIN_FIELDS = 4

# A comma is a separator only if an even number of quotes follows it,
# i.e. it is not inside a quoted field.
_FIELD_SEPARATOR = re.compile(r',(?=(?:[^"]*"[^"]*")*[^"]*$)')

_CSV_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%Y.%m.%d")


class ImportFormatError(ValueError):
    """The import payload could not be understood. Nothing was applied."""
    pass


# =============================================================================
# JSON BACKUP
# =============================================================================

def parse_backup(text: Union[str, bytes]) -> BackupPayload:
    """
    Decode and validate a JSON backup document.

    Raises:
        ImportFormatError: If the text is not JSON, not an object, or any
            record in it fails validation
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ImportFormatError(f"Backup is not valid JSON: {e}") from e

    if not isinstance(data, dict):
        raise ImportFormatError("Backup must be a JSON object")

    try:
        return BackupPayload.model_validate(data)
    except ValidationError as e:
        first = e.errors()[0]
        location = ".".join(str(part) for part in first["loc"])
        raise ImportFormatError(
            f"Backup contains {e.error_count()} invalid values "
            f"(first at {location}: {first['msg']})"
        ) from e


_Record = TypeVar("_Record")


def _unseen(existing_ids: Iterable[str], incoming: Iterable[_Record]) -> list[_Record]:
    """Keep incoming records whose id is not taken, first occurrence wins."""
    seen = set(existing_ids)
    accepted = []
    for record in incoming:
        if record.id in seen:
            continue
        seen.add(record.id)
        accepted.append(record)
    return accepted


def _unseen_names(
    existing: Iterable[CategoryItem],
    incoming: Iterable[CategoryItem],
) -> list[CategoryItem]:
    """Keep incoming categories whose name is free, ignoring case."""
    seen = {c.name.casefold() for c in existing}
    accepted = []
    for category in incoming:
        folded = category.name.casefold()
        if folded in seen:
            continue
        seen.add(folded)
        accepted.append(category)
    return accepted


def merge_import(current: LedgerStore, incoming: BackupPayload) -> LedgerStore:
    """
    Merge a backup into the ledger by identity.

    Accepted records are appended after the existing ones. Only custom
    categories are importable; built-in ones always exist already. A category
    whose name is already taken (ignoring case) is skipped like a known id.
    """
    update = {}

    if incoming.expenses is not None:
        added = _unseen((t.id for t in current.transactions), incoming.expenses)
        update["transactions"] = [*current.transactions, *added]

    if incoming.recurring_expenses is not None:
        added = _unseen((r.id for r in current.recurring_rules), incoming.recurring_expenses)
        update["recurring_rules"] = [*current.recurring_rules, *added]

    if incoming.custom_categories is not None:
        taken = [c.id for c in current.all_categories]
        custom = [c for c in incoming.custom_categories if c.is_custom]
        added = _unseen_names(current.all_categories, _unseen(taken, custom))
        update["custom_categories"] = [*current.custom_categories, *added]

    if incoming.monthly_budget is not None:
        update["budget"] = incoming.monthly_budget

    return current.model_copy(update=update)


def summarize_import(
    before: LedgerStore,
    after: LedgerStore,
    incoming: Optional[BackupPayload] = None,
) -> ImportSummary:
    """Describe what a merge added."""
    return ImportSummary(
        transactions_added=len(after.transactions) - len(before.transactions),
        rules_added=len(after.recurring_rules) - len(before.recurring_rules),
        categories_added=len(after.custom_categories) - len(before.custom_categories),
        budget_updated=incoming is not None and incoming.monthly_budget is not None,
    )


# =============================================================================
# CSV
# =============================================================================

def split_csv_line(line: str) -> list[str]:
    """Split one CSV line on commas that are not inside quotes."""
    return _FIELD_SEPARATOR.split(line)


def _unquote(field: str) -> str:
    value = field.strip()
    if value.startswith('"'):
        value = value[1:]
    if value.endswith('"'):
        value = value[:-1]
    return value.replace('""', '"').strip()


def _parse_csv_date(raw: str) -> Optional[date]:
    for fmt in _CSV_DATE_FORMATS:
        try:
            return datetime.strptime(raw, fmt).date()
        except ValueError:
            continue
    return None


def _parse_csv_amount(raw: str) -> Optional[Decimal]:
    try:
        amount = Decimal(_unquote(raw))
    except InvalidOperation:
        return None
    return amount if amount.is_finite() else None


def parse_csv_row(fields: list[str]) -> Optional[Transaction]:
    """
    Turn split CSV fields into a transaction, or None if the row is unusable.

    Expected columns: Date, Description, Category, Amount[, Bank]
    """
    if len(fields) < CSV_MIN_FIELDS:
        return None

    raw_date = _unquote(fields[0])
    description = _unquote(fields[1])
    category = _unquote(fields[2]) or DefaultCategory.OTHER.value
    amount = _parse_csv_amount(fields[3])
    bank_name = _unquote(fields[4]) if len(fields) > 4 else None

    if not raw_date or not description or amount is None:
        return None

    entry_date = _parse_csv_date(raw_date)
    if entry_date is None:
        return None

    try:
        return Transaction(
            amount=amount,
            description=description,
            category=category,
            date=entry_date,
            bank_name=bank_name,
        )
    except ValidationError:
        return None


def parse_csv(text: str) -> CsvImportResult:
    """
    Parse CSV text exported by this ledger (or shaped like it).

    The first line is a header and is always skipped. Blank lines are
    ignored and not counted. Each accepted row gets a fresh id.
    """
    text = text.lstrip("\ufeff")
    result = CsvImportResult()
    for line in text.split("\n")[1:]:
        line = line.strip()
        if not line:
            continue
        transaction = parse_csv_row(split_csv_line(line))
        if transaction is None:
            result.skipped += 1
        else:
            result.transactions.append(transaction)
    return result


def merge_csv(current: LedgerStore, parsed: CsvImportResult) -> LedgerStore:
    """Append parsed CSV transactions. No deduplication."""
    return current.model_copy(
        update={"transactions": [*current.transactions, *parsed.transactions]}
    )
