"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Keep the engine, merger and aggregation free of I/O
2. Use in-memory storage for testing
3. Swap the file backend for a browser store, a database or a sync service
4. Keep business logic decoupled from storage implementation

The ledger persists four independent blobs keyed by logical name
(transactions, recurring rules, custom categories, budget). The interface
is therefore a plain key-value store of text. A missing key is not an
error; callers treat it as "use the default".
"""

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from spendwise.models.audit import AuditEvent


class BlobStorageInterface(ABC):
    """
    Abstract interface for text blob storage.

    Any storage implementation must implement these methods.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """
        Read a blob.

        Args:
            key: Logical blob name

        Returns:
            The stored text, or None if the key has never been written

        Raises:
            StorageError: If the backend cannot be read
        """
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """
        Write a blob, replacing any previous value.

        Raises:
            StorageWriteError: If the value could not be written
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """
        Remove a blob. Deleting a missing key is a no-op.
        """
        pass

    @abstractmethod
    def keys(self) -> list[str]:
        """
        List the keys currently stored.
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (e.g., one import).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class CorruptBlobError(StorageError):
    """A stored blob exists but cannot be decoded."""

    def __init__(self, key: str, reason: str):
        self.key = key
        super().__init__(f"Stored data for '{key}' is unreadable: {reason}")


class StorageWriteError(StorageError):
    """A blob could not be written."""
    pass
