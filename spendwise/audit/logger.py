"""
Audit Logger

DESIGN DECISION: Every significant change to the ledger is logged.
This provides:
1. Complete traceability of what a session did to the data
2. Debugging capability
3. User can see history of their imports, edits and catch-ups

The audit logger:
- Is synchronous, like the rest of the ledger
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
from typing import Optional
from uuid import UUID, uuid4

import structlog

from spendwise.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from spendwise.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route spendwise logs to stderr at the given level."""
    logging.basicConfig(format="%(message)s")
    logging.getLogger("spendwise").setLevel(level)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. An audit store, if one is configured (for user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("spendwise.audit")

    @property
    def storage(self) -> Optional[AuditStorageInterface]:
        return self._storage

    def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value in ("error", "critical"):
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    def log_transaction_added(
        self,
        transaction_id: str,
        description: str,
        amount: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.transaction_added(
            transaction_id=transaction_id,
            description=description,
            amount=amount,
            correlation_id=correlation_id,
        ))

    def log_transaction_updated(self, transaction_id: str, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.transaction_updated(transaction_id, correlation_id))

    def log_transaction_deleted(self, transaction_id: str, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.transaction_deleted(transaction_id, correlation_id))

    # -------------------------------------------------------------------------
    # Recurring rules
    # -------------------------------------------------------------------------

    def log_rule_changed(
        self,
        event_type: AuditEventType,
        rule_id: str,
        frequency: str,
        next_occurrence: str,
        correlation_id: UUID,
    ) -> None:
        """Log a rule lifecycle change (created, updated, paused, resumed, deleted)."""
        self.log(AuditEventBuilder.rule_changed(
            event_type=event_type,
            rule_id=rule_id,
            frequency=frequency,
            next_occurrence=next_occurrence,
            correlation_id=correlation_id,
        ))

    def log_recurring_catch_up(
        self,
        instances: int,
        rules_advanced: int,
        reference_date: str,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.recurring_catch_up(
            instances=instances,
            rules_advanced=rules_advanced,
            reference_date=reference_date,
            correlation_id=correlation_id,
        ))

    # -------------------------------------------------------------------------
    # Categories and budget
    # -------------------------------------------------------------------------

    def log_category_changed(
        self,
        event_type: AuditEventType,
        category_id: str,
        name: str,
        correlation_id: UUID,
        was_referenced: bool = False,
    ) -> None:
        self.log(AuditEventBuilder.category_changed(
            event_type=event_type,
            category_id=category_id,
            name=name,
            correlation_id=correlation_id,
            was_referenced=was_referenced,
        ))

    def log_budget_updated(self, previous: str, current: str, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.budget_updated(previous, current, correlation_id))

    # -------------------------------------------------------------------------
    # Import / export
    # -------------------------------------------------------------------------

    def log_backup_imported(self, summary: dict, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.backup_imported(summary, correlation_id))

    def log_backup_import_failed(self, error_message: str, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.backup_import_failed(error_message, correlation_id))

    def log_csv_imported(self, accepted: int, skipped: int, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.csv_imported(accepted, skipped, correlation_id))

    def log_data_exported(
        self,
        export_format: str,
        record_count: int,
        correlation_id: UUID,
    ) -> None:
        self.log(AuditEventBuilder.data_exported(export_format, record_count, correlation_id))

    def log_data_cleared(self, correlation_id: UUID) -> None:
        self.log(AuditEventBuilder.data_cleared(correlation_id))

    # -------------------------------------------------------------------------
    # Failures
    # -------------------------------------------------------------------------

    def log_validation_failed(
        self,
        subject: str,
        issues: list[dict],
        correlation_id: UUID,
    ) -> None:
        """Log validation failure."""
        self.log(AuditEventBuilder.validation_failed(subject, issues, correlation_id))

    def log_storage_error(
        self,
        key: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        self.log(AuditEventBuilder.storage_error(key, error_message, correlation_id))

    def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., an import).
    Pass it through all subsequent operations.
    """
    return uuid4()
