"""
Main Orchestrator for SpendWise

This module ties together all the components and defines the
end-to-end flows of a ledger session:
1. Open (load → catch up recurring rules → persist)
2. Entry (draft → validate → store → persist → catch up if rules changed)
3. Import/Export (text → parse → merge by identity → persist)
4. Overview (store → aggregation → dashboard figures)

DESIGN DECISION: The session is the only place that holds state.
- The engine, merger and aggregation layer are pure functions over snapshots
- Every mutation replaces the in-memory store, then writes the touched blobs
- A failed write is audited and does not undo the in-memory change
- Every step is audited

The session is single-actor: one user, one process, no concurrent writers.
"""

from collections.abc import Callable
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Union
from uuid import UUID

import structlog

from spendwise.aggregation import build_dashboard
from spendwise.audit import AuditLogger, configure_logging, create_correlation_id
from spendwise.config import LedgerSettings, Settings, get_settings
from spendwise.engine import (
    RecurringAdvance,
    RuleStatus,
    advance,
    apply_advance,
    first_occurrence_after,
    rule_status,
)
from spendwise.merge import (
    ImportFormatError,
    export_backup,
    export_csv,
    merge_csv,
    merge_import,
    parse_backup,
    parse_csv,
    summarize_import,
)
from spendwise.models.audit import AuditEventType
from spendwise.models.ledger import (
    NEUTRAL_CATEGORY_COLOR,
    CategoryItem,
    ImportSummary,
    LedgerStore,
    RecurringFrequency,
    RecurringRule,
    Transaction,
    TransactionDraft,
    new_id,
)
from spendwise.models.summary import DashboardSummary
from spendwise.services.storage import (
    AuditStorageInterface,
    InMemoryAuditStorage,
    LedgerRepository,
    NotFoundError,
    StorageError,
    create_blob_storage,
)
from spendwise.validation import EntryValidationError, EntryValidator


logger = structlog.get_logger("spendwise.session")


class BuiltInCategoryError(ValueError):
    """Built-in categories always exist and cannot be deleted."""
    pass


_TRANSACTIONS = "transactions"
_RULES = "rules"
_CATEGORIES = "categories"
_BUDGET = "budget"


class LedgerSession:
    """
    One user's ledger, loaded into memory.

    Flow:
    1. open() → load all four blobs, catch up every active rule
    2. Mutations → validate, replace the store, persist touched blobs
    3. Rule-set changes (create, edit, resume, import) → catch up again
    4. Reads → summaries and exports computed from the current store

    Generated recurring instances and manual entries are prepended to the
    transaction list; imported records are appended.
    """

    def __init__(
        self,
        repository: LedgerRepository,
        audit_logger: Optional[AuditLogger] = None,
        validator: Optional[EntryValidator] = None,
        settings: Optional[LedgerSettings] = None,
        clock: Callable[[], date] = date.today,
        id_factory: Callable[[], str] = new_id,
    ):
        self._settings = settings or get_settings().ledger
        self._repository = repository
        self._audit_logger = audit_logger or AuditLogger()
        self._validator = validator or EntryValidator(self._settings)
        self._clock = clock
        self._id_factory = id_factory
        self._store = LedgerStore(budget=self._settings.default_budget)

    @property
    def store(self) -> LedgerStore:
        """Current snapshot. Never mutated in place."""
        return self._store

    @property
    def transactions(self) -> list[Transaction]:
        return self._store.transactions

    @property
    def recurring_rules(self) -> list[RecurringRule]:
        return self._store.recurring_rules

    @property
    def categories(self) -> list[CategoryItem]:
        return self._store.all_categories

    @property
    def budget(self) -> Decimal:
        return self._store.budget

    def today(self) -> date:
        return self._clock()

    # -------------------------------------------------------------------------
    # Persistence and catch-up
    # -------------------------------------------------------------------------

    def _persist(self, *parts: str, correlation_id: Optional[UUID] = None) -> None:
        """Write the named blobs. Failures are audited, never raised."""
        writers = {
            _TRANSACTIONS: lambda: self._repository.save_transactions(self._store.transactions),
            _RULES: lambda: self._repository.save_rules(self._store.recurring_rules),
            _CATEGORIES: lambda: self._repository.save_categories(self._store.custom_categories),
            _BUDGET: lambda: self._repository.save_budget(self._store.budget),
        }
        for part in parts:
            try:
                writers[part]()
            except StorageError as e:
                self._audit_logger.log_storage_error(
                    key=part,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )

    def _catch_up(self, correlation_id: UUID) -> RecurringAdvance:
        """Generate every instance due up to today and move the rule cursors."""
        today = self.today()
        outcome = advance(
            self._store.recurring_rules,
            today,
            marker=self._settings.recurring_marker,
            id_factory=self._id_factory,
        )
        if outcome.is_noop:
            return outcome

        self._store = self._store.model_copy(update={
            "transactions": [*outcome.new_transactions, *self._store.transactions],
            "recurring_rules": apply_advance(self._store.recurring_rules, outcome),
        })
        self._persist(_TRANSACTIONS, _RULES, correlation_id=correlation_id)
        self._audit_logger.log_recurring_catch_up(
            instances=len(outcome.new_transactions),
            rules_advanced=len(outcome.updated_rules),
            reference_date=today.isoformat(),
            correlation_id=correlation_id,
        )
        return outcome

    def open(self, correlation_id: Optional[UUID] = None) -> RecurringAdvance:
        """
        Load the ledger and catch up recurring rules.

        Raises:
            CorruptBlobError: If stored data exists but cannot be decoded
        """
        correlation_id = correlation_id or create_correlation_id()
        self._store = self._repository.load()
        outcome = self._catch_up(correlation_id)
        logger.info(
            "session_opened",
            transactions=len(self._store.transactions),
            rules=len(self._store.recurring_rules),
            generated=len(outcome.new_transactions),
        )
        return outcome

    def process_recurring(self, correlation_id: Optional[UUID] = None) -> RecurringAdvance:
        """Run a catch-up pass now (e.g. after the date has rolled over)."""
        return self._catch_up(correlation_id or create_correlation_id())

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def _build_transaction(
        self,
        draft: TransactionDraft,
        correlation_id: UUID,
        **kwargs,
    ) -> Transaction:
        try:
            return self._validator.build_transaction(draft, self._store, **kwargs)
        except EntryValidationError as e:
            self._audit_logger.log_validation_failed(
                subject=e.result.subject,
                issues=[issue.model_dump() for issue in e.result.issues],
                correlation_id=correlation_id,
            )
            raise

    def _require_transaction(self, transaction_id: str) -> Transaction:
        transaction = self._store.find_transaction(transaction_id)
        if transaction is None:
            raise NotFoundError(f"Transaction not found: {transaction_id}")
        return transaction

    def add_transaction(
        self,
        draft: TransactionDraft,
        frequency: Optional[RecurringFrequency] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Record a manual entry, optionally starting a recurring rule from it.

        The entry itself is the rule's first instance, so the rule's cursor
        starts one period after the entry date.

        Raises:
            EntryValidationError: If the draft is rejected (ledger unchanged)
        """
        correlation_id = correlation_id or create_correlation_id()
        transaction = self._build_transaction(
            draft, correlation_id, transaction_id=self._id_factory(),
        )
        self._store = self._store.model_copy(update={
            "transactions": [transaction, *self._store.transactions],
        })
        self._persist(_TRANSACTIONS, correlation_id=correlation_id)
        self._audit_logger.log_transaction_added(
            transaction_id=transaction.id,
            description=transaction.description,
            amount=str(transaction.amount),
            correlation_id=correlation_id,
        )

        if frequency is not None:
            frequency = RecurringFrequency(frequency)
            rule = RecurringRule(
                id=self._id_factory(),
                amount=transaction.amount,
                description=transaction.description,
                category=transaction.category,
                bank_name=transaction.bank_name,
                frequency=frequency,
                start_date=transaction.date,
                next_occurrence_date=first_occurrence_after(transaction.date, frequency),
            )
            self._store = self._store.model_copy(update={
                "recurring_rules": [*self._store.recurring_rules, rule],
            })
            self._persist(_RULES, correlation_id=correlation_id)
            self._log_rule(AuditEventType.RULE_CREATED, rule, correlation_id)
            self._catch_up(correlation_id)

        return transaction

    def edit_transaction(
        self,
        transaction_id: str,
        draft: TransactionDraft,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Replace a transaction wholesale, keeping its id and provenance tag.

        Raises:
            NotFoundError: If no transaction has this id
            EntryValidationError: If the draft is rejected
        """
        correlation_id = correlation_id or create_correlation_id()
        existing = self._require_transaction(transaction_id)
        updated = self._build_transaction(
            draft,
            correlation_id,
            transaction_id=existing.id,
            recurring_id=existing.recurring_id,
        )
        self._store = self._store.model_copy(update={
            "transactions": [
                updated if t.id == existing.id else t for t in self._store.transactions
            ],
        })
        self._persist(_TRANSACTIONS, correlation_id=correlation_id)
        self._audit_logger.log_transaction_updated(existing.id, correlation_id)
        return updated

    def delete_transaction(
        self,
        transaction_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Raises:
            NotFoundError: If no transaction has this id
        """
        correlation_id = correlation_id or create_correlation_id()
        self._require_transaction(transaction_id)
        self._store = self._store.model_copy(update={
            "transactions": [t for t in self._store.transactions if t.id != transaction_id],
        })
        self._persist(_TRANSACTIONS, correlation_id=correlation_id)
        self._audit_logger.log_transaction_deleted(transaction_id, correlation_id)

    # -------------------------------------------------------------------------
    # Recurring rules
    # -------------------------------------------------------------------------

    def _log_rule(
        self,
        event_type: AuditEventType,
        rule: RecurringRule,
        correlation_id: UUID,
    ) -> None:
        self._audit_logger.log_rule_changed(
            event_type=event_type,
            rule_id=rule.id,
            frequency=rule.frequency.value,
            next_occurrence=rule.next_occurrence_date.isoformat(),
            correlation_id=correlation_id,
        )

    def _require_rule(self, rule_id: str) -> RecurringRule:
        rule = self._store.find_rule(rule_id)
        if rule is None:
            raise NotFoundError(f"Recurring rule not found: {rule_id}")
        return rule

    def _replace_rule(self, rule: RecurringRule) -> None:
        self._store = self._store.model_copy(update={
            "recurring_rules": [
                rule if r.id == rule.id else r for r in self._store.recurring_rules
            ],
        })

    def edit_rule(
        self,
        rule_id: str,
        draft: TransactionDraft,
        frequency: Optional[RecurringFrequency],
        correlation_id: Optional[UUID] = None,
    ) -> Union[RecurringRule, Transaction]:
        """
        Edit a rule's template and schedule.

        The draft's date becomes the rule's next due date. Passing no
        frequency removes the recurrence: the rule is deleted and the draft
        is recorded as a one-off transaction, which is returned instead.

        Raises:
            NotFoundError: If no rule has this id
            EntryValidationError: If the draft is rejected
        """
        if frequency is None:
            return self.convert_rule_to_transaction(rule_id, draft, correlation_id)

        correlation_id = correlation_id or create_correlation_id()
        existing = self._require_rule(rule_id)
        template = self._build_transaction(draft, correlation_id)
        updated = existing.model_copy(update={
            "amount": template.amount,
            "description": template.description,
            "category": template.category,
            "bank_name": template.bank_name,
            "frequency": RecurringFrequency(frequency),
            "next_occurrence_date": template.date,
        })
        self._replace_rule(updated)
        self._persist(_RULES, correlation_id=correlation_id)
        self._log_rule(AuditEventType.RULE_UPDATED, updated, correlation_id)
        self._catch_up(correlation_id)
        return self._store.find_rule(rule_id)

    def convert_rule_to_transaction(
        self,
        rule_id: str,
        draft: TransactionDraft,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Replace a rule by a one-off transaction built from the draft.

        Instances the rule generated earlier are kept.
        """
        correlation_id = correlation_id or create_correlation_id()
        existing = self._require_rule(rule_id)
        transaction = self._build_transaction(
            draft, correlation_id, transaction_id=self._id_factory(),
        )
        self._store = self._store.model_copy(update={
            "transactions": [transaction, *self._store.transactions],
            "recurring_rules": [r for r in self._store.recurring_rules if r.id != rule_id],
        })
        self._persist(_TRANSACTIONS, _RULES, correlation_id=correlation_id)
        self._log_rule(AuditEventType.RULE_DELETED, existing, correlation_id)
        self._audit_logger.log_transaction_added(
            transaction_id=transaction.id,
            description=transaction.description,
            amount=str(transaction.amount),
            correlation_id=correlation_id,
        )
        return transaction

    def toggle_rule(
        self,
        rule_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> RecurringRule:
        """
        Pause an active rule or resume a paused one.

        A resumed rule keeps its cursor, so every period missed while it was
        paused is generated on resume.
        """
        correlation_id = correlation_id or create_correlation_id()
        existing = self._require_rule(rule_id)
        updated = existing.model_copy(update={"is_active": not existing.is_active})
        self._replace_rule(updated)
        self._persist(_RULES, correlation_id=correlation_id)

        if updated.is_active:
            self._log_rule(AuditEventType.RULE_RESUMED, updated, correlation_id)
            self._catch_up(correlation_id)
        else:
            self._log_rule(AuditEventType.RULE_PAUSED, updated, correlation_id)
        return self._store.find_rule(rule_id)

    def delete_rule(
        self,
        rule_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Remove a rule. Transactions it generated are kept."""
        correlation_id = correlation_id or create_correlation_id()
        existing = self._require_rule(rule_id)
        self._store = self._store.model_copy(update={
            "recurring_rules": [r for r in self._store.recurring_rules if r.id != rule_id],
        })
        self._persist(_RULES, correlation_id=correlation_id)
        self._log_rule(AuditEventType.RULE_DELETED, existing, correlation_id)

    def rule_statuses(self) -> list[tuple[RecurringRule, RuleStatus]]:
        today = self.today()
        return [(rule, rule_status(rule, today)) for rule in self._store.recurring_rules]

    # -------------------------------------------------------------------------
    # Categories and budget
    # -------------------------------------------------------------------------

    def add_category(
        self,
        name: str,
        color: str = NEUTRAL_CATEGORY_COLOR,
        correlation_id: Optional[UUID] = None,
    ) -> CategoryItem:
        """
        Raises:
            EntryValidationError: If the name is empty or taken, or the colour is malformed
        """
        correlation_id = correlation_id or create_correlation_id()
        result = self._validator.validate_category(name, color, self._store)
        if result.has_errors:
            self._audit_logger.log_validation_failed(
                subject=result.subject,
                issues=[issue.model_dump() for issue in result.issues],
                correlation_id=correlation_id,
            )
            raise EntryValidationError(result)

        category = CategoryItem(name=name, color=color, is_custom=True)
        self._store = self._store.model_copy(update={
            "custom_categories": [*self._store.custom_categories, category],
        })
        self._persist(_CATEGORIES, correlation_id=correlation_id)
        self._audit_logger.log_category_changed(
            event_type=AuditEventType.CATEGORY_ADDED,
            category_id=category.id,
            name=category.name,
            correlation_id=correlation_id,
        )
        return category

    def delete_category(
        self,
        category_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Delete a custom category.

        Transactions and rules keep the category name; it simply no longer
        resolves to a definition.

        Returns:
            True if the category was still referenced when deleted

        Raises:
            BuiltInCategoryError: If the id names a built-in category
            NotFoundError: If no custom category has this id
        """
        correlation_id = correlation_id or create_correlation_id()
        if any(c.id == category_id and not c.is_custom for c in self._store.all_categories):
            raise BuiltInCategoryError(f"Built-in category cannot be deleted: {category_id}")

        category = next(
            (c for c in self._store.custom_categories if c.id == category_id), None
        )
        if category is None:
            raise NotFoundError(f"Category not found: {category_id}")

        was_referenced = self._store.is_category_referenced(category.name)
        self._store = self._store.model_copy(update={
            "custom_categories": [
                c for c in self._store.custom_categories if c.id != category_id
            ],
        })
        self._persist(_CATEGORIES, correlation_id=correlation_id)
        self._audit_logger.log_category_changed(
            event_type=AuditEventType.CATEGORY_DELETED,
            category_id=category.id,
            name=category.name,
            correlation_id=correlation_id,
            was_referenced=was_referenced,
        )
        return was_referenced

    def set_budget(
        self,
        raw: Union[str, Decimal, int, float],
        correlation_id: Optional[UUID] = None,
    ) -> Decimal:
        """
        Raises:
            EntryValidationError: If the value is not a non-negative number
        """
        correlation_id = correlation_id or create_correlation_id()
        try:
            budget = self._validator.parse_budget(raw)
        except EntryValidationError as e:
            self._audit_logger.log_validation_failed(
                subject=e.result.subject,
                issues=[issue.model_dump() for issue in e.result.issues],
                correlation_id=correlation_id,
            )
            raise

        previous = self._store.budget
        self._store = self._store.model_copy(update={"budget": budget})
        self._persist(_BUDGET, correlation_id=correlation_id)
        self._audit_logger.log_budget_updated(str(previous), str(budget), correlation_id)
        return budget

    # -------------------------------------------------------------------------
    # Import / export
    # -------------------------------------------------------------------------

    def import_backup(
        self,
        text: Union[str, bytes],
        correlation_id: Optional[UUID] = None,
    ) -> ImportSummary:
        """
        Merge a JSON backup into the ledger.

        Records whose id already exists are skipped, so importing the same
        backup twice changes nothing the second time. Newly imported rules
        are caught up immediately.

        Raises:
            ImportFormatError: If the text is not a valid backup (ledger unchanged)
        """
        correlation_id = correlation_id or create_correlation_id()
        try:
            payload = parse_backup(text)
        except ImportFormatError as e:
            self._audit_logger.log_backup_import_failed(str(e), correlation_id)
            raise

        before = self._store
        self._store = merge_import(before, payload)
        summary = summarize_import(before, self._store, payload)
        self._persist(_TRANSACTIONS, _RULES, _CATEGORIES, _BUDGET, correlation_id=correlation_id)

        if summary.rules_added:
            outcome = self._catch_up(correlation_id)
            summary = summary.model_copy(update={
                "instances_generated": len(outcome.new_transactions),
            })

        self._audit_logger.log_backup_imported(summary.model_dump(), correlation_id)
        return summary

    def import_csv(
        self,
        text: str,
        correlation_id: Optional[UUID] = None,
    ) -> ImportSummary:
        """Append every well-formed CSV row as a fresh transaction."""
        correlation_id = correlation_id or create_correlation_id()
        parsed = parse_csv(text)
        self._store = merge_csv(self._store, parsed)
        if parsed.accepted:
            self._persist(_TRANSACTIONS, correlation_id=correlation_id)
        self._audit_logger.log_csv_imported(parsed.accepted, parsed.skipped, correlation_id)
        return ImportSummary(
            transactions_added=parsed.accepted,
            rows_skipped=parsed.skipped,
        )

    def export_backup(
        self,
        exported_at: Optional[datetime] = None,
        correlation_id: Optional[UUID] = None,
    ) -> str:
        correlation_id = correlation_id or create_correlation_id()
        text = export_backup(self._store, exported_at)
        self._audit_logger.log_data_exported("json", len(self._store.transactions), correlation_id)
        return text

    def export_csv(self, correlation_id: Optional[UUID] = None) -> str:
        correlation_id = correlation_id or create_correlation_id()
        text = export_csv(self._store.transactions)
        self._audit_logger.log_data_exported("csv", len(self._store.transactions), correlation_id)
        return text

    def clear_all(self, correlation_id: Optional[UUID] = None) -> None:
        """Delete every stored blob and reset to an empty ledger."""
        correlation_id = correlation_id or create_correlation_id()
        try:
            self._repository.clear()
        except StorageError as e:
            self._audit_logger.log_storage_error(
                key="all",
                error_message=str(e),
                correlation_id=correlation_id,
            )
        self._store = LedgerStore(budget=self._settings.default_budget)
        self._audit_logger.log_data_cleared(correlation_id)

    # -------------------------------------------------------------------------
    # Overview
    # -------------------------------------------------------------------------

    def dashboard(self, reference: Optional[date] = None) -> DashboardSummary:
        """Summary figures for the trailing window ending at reference (default today)."""
        return build_dashboard(
            self._store,
            reference or self.today(),
            self._settings.trailing_window_days,
        )


def create_session(
    settings: Optional[Settings] = None,
    audit_storage: Optional[AuditStorageInterface] = None,
    clock: Callable[[], date] = date.today,
) -> LedgerSession:
    """
    Factory function to create and open a ledger session.

    Args:
        settings: Root settings; defaults to get_settings()
        audit_storage: Where audit events are appended; defaults to memory
        clock: Source of "today"

    Returns:
        An opened LedgerSession (recurring rules already caught up)
    """
    settings = settings or get_settings()
    configure_logging(settings.app.log_level)

    ledger_settings = settings.ledger
    repository = LedgerRepository(
        create_blob_storage(settings.storage),
        settings=settings.storage,
        ledger_settings=ledger_settings,
    )
    session = LedgerSession(
        repository=repository,
        audit_logger=AuditLogger(audit_storage or InMemoryAuditStorage()),
        settings=ledger_settings,
        clock=clock,
    )
    session.open()
    return session
