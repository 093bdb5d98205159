"""
Abstract Document Store Interface

DESIGN DECISION: The ledger and registries talk to an abstract document
store rather than to a database SDK. This allows us to:
1. Run against Firestore in production
2. Use in-memory storage for testing
3. Keep business logic decoupled from storage implementation

The interface is intentionally small - just the primitives the core needs:
point reads, a transactional read-modify-write, filtered queries,
single-document mutations and change subscriptions.

Paths are slash-separated, alternating collection and document ids:
``users/<uid>`` is a document, ``users/<uid>/transactions`` a collection.
"""

import operator
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar
from uuid import uuid4

T = TypeVar("T")

SnapshotCallback = Callable[[Optional[dict[str, Any]]], None]
Unsubscribe = Callable[[], None]


class _ServerTimestamp:
    """Sentinel replaced by the backend's commit time."""

    _instance: Optional["_ServerTimestamp"] = None

    def __new__(cls) -> "_ServerTimestamp":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()

FILTER_OPERATORS: dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
}


@dataclass(frozen=True)
class QueryFilter:
    """A single ``field <op> value`` condition."""

    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in FILTER_OPERATORS:
            raise ValueError(f"Unsupported filter operator: {self.op}")

    def matches(self, data: dict[str, Any]) -> bool:
        if self.field not in data:
            return False
        return FILTER_OPERATORS[self.op](data[self.field], self.value)


@dataclass(frozen=True)
class OrderBy:
    """Sort key for a query."""

    field: str
    descending: bool = False


@dataclass
class StoredDocument:
    """A document returned by a query: its id, full path and data."""

    id: str
    path: str
    data: dict[str, Any] = field(default_factory=dict)


class StoreTransaction(ABC):
    """
    Handle passed to a ``run_transaction`` callback.

    Reads see the transaction's own pending writes. Writes are buffered
    and applied together when the callback returns; if the callback raises,
    nothing is written.
    """

    @abstractmethod
    async def get(self, path: str) -> Optional[dict[str, Any]]:
        """Read a document inside the transaction, or None if it is absent."""
        pass

    @abstractmethod
    def set(self, path: str, data: dict[str, Any]) -> None:
        """Create or replace a document when the transaction commits."""
        pass

    @abstractmethod
    def update(self, path: str, fields: dict[str, Any]) -> None:
        """Merge fields into an existing document when the transaction commits."""
        pass


class DocumentStore(ABC):
    """
    Abstract interface for document storage operations.

    Any storage implementation (Firestore, in-memory, etc.)
    must implement these methods.
    """

    @abstractmethod
    async def get(self, path: str) -> Optional[dict[str, Any]]:
        """
        Read a single document.

        Returns:
            The document data, or None if it does not exist

        Raises:
            NetworkError: If the backend is unreachable
        """
        pass

    @abstractmethod
    async def set(self, path: str, data: dict[str, Any]) -> None:
        """Create or replace a document (non-transactional)."""
        pass

    @abstractmethod
    async def add(self, collection_path: str, data: dict[str, Any]) -> str:
        """
        Append a document with a generated id to a collection.

        Returns:
            The new document id
        """
        pass

    @abstractmethod
    async def update_fields(self, path: str, fields: dict[str, Any]) -> None:
        """
        Merge fields into an existing document (non-transactional).

        Raises:
            NotFoundError: If the document does not exist
        """
        pass

    @abstractmethod
    async def append_to_list_field(
        self,
        path: str,
        field_name: str,
        value: Any,
    ) -> None:
        """
        Append a value to a list field unless an equal value is present.

        Raises:
            NotFoundError: If the document does not exist
        """
        pass

    @abstractmethod
    async def query(
        self,
        collection_path: str,
        filters: Sequence[QueryFilter] = (),
        order_by: Optional[OrderBy] = None,
        limit: Optional[int] = None,
    ) -> list[StoredDocument]:
        """
        Query the documents directly inside a collection.

        Documents missing a filtered or ordered field are excluded.
        """
        pass

    @abstractmethod
    async def run_transaction(
        self,
        fn: Callable[[StoreTransaction], Awaitable[T]],
    ) -> T:
        """
        Run ``fn`` as one atomic read-modify-write unit.

        The store re-runs ``fn`` when a concurrent commit touched a
        document it read. Exceptions raised by ``fn`` abort the unit
        without writing anything and propagate unchanged.

        Raises:
            TransactionConflictError: If no attempt could commit
            NetworkError: If the backend is unreachable
        """
        pass

    @abstractmethod
    def subscribe(self, path: str, callback: SnapshotCallback) -> Unsubscribe:
        """
        Push every committed change of a document to ``callback``.

        The callback receives the new data, or None when the document
        does not exist. Returns a function that stops the subscription.
        """
        pass

    def new_id(self) -> str:
        """Allocate a document id."""
        return uuid4().hex[:20]


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class TransactionConflictError(StorageError):
    """An atomic unit could not commit after the store's retries."""
    pass


class NetworkError(StorageError):
    """Could not reach the storage backend."""
    pass
