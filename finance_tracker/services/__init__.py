"""Services package."""

from finance_tracker.services.storage import (
    DocumentStore,
    DuplicateError,
    FirestoreClient,
    FirestoreDocumentStore,
    InMemoryDocumentStore,
    NetworkError,
    NotFoundError,
    StorageError,
    TransactionConflictError,
)

__all__ = [
    "DocumentStore",
    "DuplicateError",
    "FirestoreClient",
    "FirestoreDocumentStore",
    "InMemoryDocumentStore",
    "NetworkError",
    "NotFoundError",
    "StorageError",
    "TransactionConflictError",
]
