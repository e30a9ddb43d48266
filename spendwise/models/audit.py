"""
Audit Models for SpendWise

Every mutation of the ledger is logged for audit purposes.
This provides:
1. Traceability of where each transaction came from
2. Debugging information when an import or a catch-up misbehaves
3. Ability to reconstruct what a session did

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every ledger operation has its own event type.
    """
    # Transactions
    TRANSACTION_ADDED = "transaction_added"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"

    # Recurring rules
    RULE_CREATED = "rule_created"
    RULE_UPDATED = "rule_updated"
    RULE_PAUSED = "rule_paused"
    RULE_RESUMED = "rule_resumed"
    RULE_DELETED = "rule_deleted"
    RECURRING_CATCH_UP = "recurring_catch_up"

    # Categories and budget
    CATEGORY_ADDED = "category_added"
    CATEGORY_DELETED = "category_deleted"
    BUDGET_UPDATED = "budget_updated"

    # Import / export
    BACKUP_IMPORTED = "backup_imported"
    BACKUP_IMPORT_FAILED = "backup_import_failed"
    CSV_IMPORTED = "csv_imported"
    DATA_EXPORTED = "data_exported"
    DATA_CLEARED = "data_cleared"

    # Validation
    VALIDATION_FAILED = "validation_failed"

    # System events
    STORAGE_ERROR = "storage_error"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.now,
        description="When the event occurred"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'rule', 'category')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., everything one import did)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_row(self) -> list[str]:
        """
        Flatten to a list of strings for tabular export.

        Columns: [event_id, timestamp, event_type, severity, entity_type,
        entity_id, correlation_id, description, details_json, error_message,
        is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_added(tx_id, "Coffee", "150", cid)
        event = AuditEventBuilder.recurring_catch_up(3, 1, cid)
    """

    @staticmethod
    def transaction_added(
        transaction_id: str,
        description: str,
        amount: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_ADDED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction added: {description[:200]} - {amount}",
            details={
                "description": description,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_updated(
        transaction_id: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_UPDATED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction replaced by user edit",
            is_user_action=True,
        )

    @staticmethod
    def transaction_deleted(
        transaction_id: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_DELETED,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description="Transaction deleted",
            is_user_action=True,
        )

    @staticmethod
    def rule_changed(
        event_type: AuditEventType,
        rule_id: str,
        frequency: str,
        next_occurrence: str,
        correlation_id: UUID
    ) -> AuditEvent:
        """Rule created/updated/paused/resumed/deleted share one shape."""
        verb = event_type.value.removeprefix("rule_")
        return AuditEvent(
            event_type=event_type,
            entity_type="rule",
            entity_id=rule_id,
            correlation_id=correlation_id,
            description=f"Recurring rule {verb} ({frequency}, next {next_occurrence})",
            details={
                "frequency": frequency,
                "next_occurrence_date": next_occurrence,
            },
            is_user_action=True,
        )

    @staticmethod
    def recurring_catch_up(
        instances: int,
        rules_advanced: int,
        reference_date: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.RECURRING_CATCH_UP,
            entity_type="rule",
            correlation_id=correlation_id,
            description=(
                f"Generated {instances} recurring instances "
                f"from {rules_advanced} rules"
            ),
            details={
                "instances": instances,
                "rules_advanced": rules_advanced,
                "reference_date": reference_date,
            },
        )

    @staticmethod
    def category_changed(
        event_type: AuditEventType,
        category_id: str,
        name: str,
        correlation_id: UUID,
        was_referenced: bool = False,
    ) -> AuditEvent:
        verb = "added" if event_type == AuditEventType.CATEGORY_ADDED else "deleted"
        return AuditEvent(
            event_type=event_type,
            entity_type="category",
            entity_id=category_id,
            correlation_id=correlation_id,
            description=f"Custom category {verb}: {name}",
            details={
                "name": name,
                "was_referenced": was_referenced,
            },
            is_user_action=True,
        )

    @staticmethod
    def budget_updated(
        previous: str,
        current: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_UPDATED,
            entity_type="budget",
            correlation_id=correlation_id,
            description=f"Budget changed from {previous} to {current}",
            details={
                "previous": previous,
                "current": current,
            },
            is_user_action=True,
        )

    @staticmethod
    def backup_imported(
        summary: dict,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_IMPORTED,
            entity_type="import",
            correlation_id=correlation_id,
            description=(
                f"Backup imported: {summary.get('transactions_added', 0)} "
                "transactions added"
            ),
            details=summary,
            is_user_action=True,
        )

    @staticmethod
    def backup_import_failed(
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BACKUP_IMPORT_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="import",
            correlation_id=correlation_id,
            description="Backup import rejected, ledger unchanged",
            error_message=error_message,
            is_user_action=True,
        )

    @staticmethod
    def csv_imported(
        accepted: int,
        skipped: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.CSV_IMPORTED,
            severity=AuditSeverity.WARNING if skipped else AuditSeverity.INFO,
            entity_type="import",
            correlation_id=correlation_id,
            description=f"CSV imported: {accepted} accepted, {skipped} skipped",
            details={
                "accepted": accepted,
                "skipped": skipped,
            },
            is_user_action=True,
        )

    @staticmethod
    def data_exported(
        export_format: str,
        record_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_EXPORTED,
            entity_type="export",
            correlation_id=correlation_id,
            description=f"Exported {record_count} transactions as {export_format}",
            details={
                "format": export_format,
                "record_count": record_count,
            },
            is_user_action=True,
        )

    @staticmethod
    def data_cleared(correlation_id: UUID) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DATA_CLEARED,
            severity=AuditSeverity.WARNING,
            correlation_id=correlation_id,
            description="All ledger data cleared",
            is_user_action=True,
        )

    @staticmethod
    def validation_failed(
        subject: str,
        issues: list[dict],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type=subject,
            correlation_id=correlation_id,
            description=f"{subject.capitalize()} validation failed with {len(issues)} issues",
            details={
                "issues": issues,
            },
            is_user_action=True,
        )

    @staticmethod
    def storage_error(
        key: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            entity_type="blob",
            entity_id=key,
            correlation_id=correlation_id,
            description=f"Could not persist '{key}', in-memory state kept",
            error_message=error_message,
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
