"""
Ledger Repository

Loads and saves the ledger as four independent blobs:
- transactions      JSON array of Transaction (camelCase keys)
- recurring rules   JSON array of RecurringRule
- custom categories JSON array of CategoryItem (custom ones only)
- budget            decimal text, e.g. "50000"

A blob that was never written loads as its default. A blob that exists but
cannot be decoded is an error: silently replacing it with a default would
overwrite the user's data on the next save.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional

import structlog
from pydantic import TypeAdapter, ValidationError

from spendwise.config import LedgerSettings, StorageSettings, get_settings
from spendwise.models.ledger import (
    CategoryItem,
    LedgerStore,
    RecurringRule,
    Transaction,
)
from spendwise.services.storage.files import FileBlobStorage
from spendwise.services.storage.interface import (
    BlobStorageInterface,
    CorruptBlobError,
)
from spendwise.services.storage.memory import InMemoryBlobStorage


logger = structlog.get_logger("spendwise.storage")

_TRANSACTIONS = TypeAdapter(list[Transaction])
_RULES = TypeAdapter(list[RecurringRule])
_CATEGORIES = TypeAdapter(list[CategoryItem])


def create_blob_storage(settings: Optional[StorageSettings] = None) -> BlobStorageInterface:
    """Build the blob backend selected by SPENDWISE_STORAGE_BACKEND."""
    settings = settings or get_settings().storage
    if settings.backend == "memory":
        return InMemoryBlobStorage()
    return FileBlobStorage(settings.data_dir)


class LedgerRepository:
    """
    Maps a LedgerStore onto blob storage.

    Each save_* method rewrites exactly one blob.
    """

    def __init__(
        self,
        storage: BlobStorageInterface,
        settings: Optional[StorageSettings] = None,
        ledger_settings: Optional[LedgerSettings] = None,
    ):
        self._storage = storage
        self._settings = settings or get_settings().storage
        self._ledger_settings = ledger_settings or get_settings().ledger

    @property
    def storage(self) -> BlobStorageInterface:
        return self._storage

    # -------------------------------------------------------------------------
    # Load
    # -------------------------------------------------------------------------

    def _load_list(self, key: str, adapter: TypeAdapter) -> list:
        blob = self._storage.get(key)
        if blob is None or not blob.strip():
            return []
        try:
            return adapter.validate_json(blob)
        except ValidationError as e:
            raise CorruptBlobError(key, f"{e.error_count()} invalid value(s)") from e

    def load_transactions(self) -> list[Transaction]:
        return self._load_list(self._settings.expenses_key, _TRANSACTIONS)

    def load_rules(self) -> list[RecurringRule]:
        return self._load_list(self._settings.recurring_key, _RULES)

    def load_categories(self) -> list[CategoryItem]:
        categories = self._load_list(self._settings.categories_key, _CATEGORIES)
        return [c for c in categories if c.is_custom]

    def load_budget(self) -> Decimal:
        key = self._settings.budget_key
        blob = self._storage.get(key)
        if blob is None or not blob.strip():
            return self._ledger_settings.default_budget
        try:
            value = Decimal(blob.strip())
        except InvalidOperation as e:
            raise CorruptBlobError(key, f"'{blob.strip()}' is not a number") from e
        if not value.is_finite() or value < 0:
            raise CorruptBlobError(key, f"'{blob.strip()}' is not a valid budget")
        return value

    def load(self) -> LedgerStore:
        """
        Read the whole ledger.

        Raises:
            CorruptBlobError: If any blob exists but cannot be decoded
            StorageError: If the backend cannot be read
        """
        try:
            store = LedgerStore(
                transactions=self.load_transactions(),
                recurring_rules=self.load_rules(),
                custom_categories=self.load_categories(),
                budget=self.load_budget(),
            )
        except ValidationError as e:
            raise CorruptBlobError("ledger", str(e)) from e

        logger.debug(
            "ledger_loaded",
            transactions=len(store.transactions),
            rules=len(store.recurring_rules),
            custom_categories=len(store.custom_categories),
        )
        return store

    # -------------------------------------------------------------------------
    # Save
    # -------------------------------------------------------------------------

    def save_transactions(self, transactions: list[Transaction]) -> None:
        self._storage.set(
            self._settings.expenses_key,
            _TRANSACTIONS.dump_json(transactions, by_alias=True, exclude_none=True).decode("utf-8"),
        )

    def save_rules(self, rules: list[RecurringRule]) -> None:
        self._storage.set(
            self._settings.recurring_key,
            _RULES.dump_json(rules, by_alias=True, exclude_none=True).decode("utf-8"),
        )

    def save_categories(self, categories: list[CategoryItem]) -> None:
        self._storage.set(
            self._settings.categories_key,
            _CATEGORIES.dump_json(categories, by_alias=True).decode("utf-8"),
        )

    def save_budget(self, budget: Decimal) -> None:
        self._storage.set(self._settings.budget_key, format(budget.normalize(), "f"))

    def save(self, store: LedgerStore) -> None:
        """Write all four blobs."""
        self.save_transactions(store.transactions)
        self.save_rules(store.recurring_rules)
        self.save_categories(store.custom_categories)
        self.save_budget(store.budget)

    def clear(self) -> None:
        """Delete every blob this repository owns."""
        for key in self._settings.all_keys:
            self._storage.delete(key)
        logger.info("ledger_cleared", keys=len(self._settings.all_keys))
