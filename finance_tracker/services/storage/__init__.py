"""
Storage Services Package

Provides the abstract document store interface and its implementations.
Firestore is the production backend; the in-memory store backs tests and
local runs.
"""

from finance_tracker.services.storage.interface import (
    SERVER_TIMESTAMP,
    DocumentStore,
    DuplicateError,
    NetworkError,
    NotFoundError,
    OrderBy,
    QueryFilter,
    StorageError,
    StoredDocument,
    StoreTransaction,
    TransactionConflictError,
)
from finance_tracker.services.storage.memory import InMemoryDocumentStore
from finance_tracker.services.storage.firestore import (
    FirestoreClient,
    FirestoreDocumentStore,
)

__all__ = [
    # Interfaces
    "DocumentStore",
    "OrderBy",
    "QueryFilter",
    "SERVER_TIMESTAMP",
    "StoredDocument",
    "StoreTransaction",
    # Exceptions
    "DuplicateError",
    "NetworkError",
    "NotFoundError",
    "StorageError",
    "TransactionConflictError",
    # Implementations
    "FirestoreClient",
    "FirestoreDocumentStore",
    "InMemoryDocumentStore",
]
