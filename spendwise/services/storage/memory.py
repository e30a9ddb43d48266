"""
In-Memory Storage

Dict-backed implementations of the storage interfaces. Used for tests and
for sessions that should not touch the disk (SPENDWISE_STORAGE_BACKEND=memory).
"""

from typing import Optional
from uuid import UUID

from spendwise.models.audit import AuditEvent
from spendwise.services.storage.interface import (
    AuditStorageInterface,
    BlobStorageInterface,
)


class InMemoryBlobStorage(BlobStorageInterface):
    """Blobs live in a dict for the lifetime of the object."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._blobs: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._blobs.get(key)

    def set(self, key: str, value: str) -> None:
        self._blobs[key] = value

    def delete(self, key: str) -> None:
        self._blobs.pop(key, None)

    def keys(self) -> list[str]:
        return sorted(self._blobs)


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        return [e for e in self._events if e.correlation_id == correlation_id]

    def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return list(reversed(self._events))[:limit]
