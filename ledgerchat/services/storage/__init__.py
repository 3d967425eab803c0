"""
Storage Services Package

Provides abstract interfaces and in-memory implementations for the
record store, the pending action store and the audit log. Production
hosts inject their own implementations of the same interfaces.
"""

from ledgerchat.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    NotFoundError,
    PendingActionStoreInterface,
    RecordStoreInterface,
    StorageError,
)
from ledgerchat.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryPendingActionStore,
    InMemoryRecordStore,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "PendingActionStoreInterface",
    "RecordStoreInterface",
    # Exceptions
    "DuplicateError",
    "NotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryPendingActionStore",
    "InMemoryRecordStore",
]
