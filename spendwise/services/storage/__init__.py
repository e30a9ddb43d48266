"""Ledger storage package."""

from spendwise.services.storage.interface import (
    AuditStorageInterface,
    BlobStorageInterface,
    CorruptBlobError,
    NotFoundError,
    StorageError,
    StorageWriteError,
)
from spendwise.services.storage.memory import InMemoryAuditStorage, InMemoryBlobStorage
from spendwise.services.storage.files import FileBlobStorage
from spendwise.services.storage.repository import LedgerRepository, create_blob_storage

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "BlobStorageInterface",
    # Errors
    "CorruptBlobError",
    "NotFoundError",
    "StorageError",
    "StorageWriteError",
    # Backends
    "FileBlobStorage",
    "InMemoryAuditStorage",
    "InMemoryBlobStorage",
    # Repository
    "LedgerRepository",
    "create_blob_storage",
]
