"""
In-Memory Document Store

A complete DocumentStore kept in process memory. Used by the test suite
and for local runs without Firestore credentials.

Transactions use optimistic concurrency, the same model Firestore uses:
every document carries a version, a transaction remembers the version of
each document it read, and the commit is refused if any of those versions
moved. A refused commit re-runs the whole callback against fresh data.

Every read awaits once, like a network round trip, so concurrent tasks
genuinely interleave between read and commit.
"""

import asyncio
import copy
import itertools
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional, Sequence, TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_random,
)
from tenacity.wait import wait_base

from finance_tracker.services.storage.interface import (
    SERVER_TIMESTAMP,
    DocumentStore,
    NotFoundError,
    OrderBy,
    QueryFilter,
    SnapshotCallback,
    StoredDocument,
    StoreTransaction,
    TransactionConflictError,
    Unsubscribe,
)
from finance_tracker.services.storage.paths import parent_collection

T = TypeVar("T")

logger = structlog.get_logger(__name__)


class _CommitConflict(Exception):
    """A document read by the transaction changed before commit."""

    def __init__(self, path: str):
        super().__init__(f"Concurrent modification of {path}")
        self.path = path


@dataclass
class _Document:
    data: dict[str, Any]
    version: int


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryTransaction(StoreTransaction):
    """Buffers writes and records read versions for one attempt."""

    def __init__(self, store: "InMemoryDocumentStore"):
        self._store = store
        self.read_versions: dict[str, int] = {}
        self.pending: dict[str, dict[str, Any]] = {}

    def _track_read(self, path: str) -> Optional[_Document]:
        document = self._store._documents.get(path)
        self.read_versions.setdefault(path, document.version if document else 0)
        return document

    async def get(self, path: str) -> Optional[dict[str, Any]]:
        if path in self.pending:
            return copy.deepcopy(self.pending[path])
        await asyncio.sleep(0)
        document = self._track_read(path)
        return copy.deepcopy(document.data) if document else None

    def set(self, path: str, data: dict[str, Any]) -> None:
        self.pending[path] = copy.deepcopy(data)

    def update(self, path: str, fields: dict[str, Any]) -> None:
        if path not in self.pending:
            document = self._track_read(path)
            if document is None:
                raise NotFoundError(f"Document not found: {path}")
            self.pending[path] = copy.deepcopy(document.data)
        self.pending[path].update(copy.deepcopy(fields))


class InMemoryDocumentStore(DocumentStore):
    """
    DocumentStore backed by a dict of path -> document.

    Args:
        max_attempts: How many times a conflicting transaction is tried
        retry_wait: tenacity wait strategy between attempts
        clock: Source of commit timestamps for SERVER_TIMESTAMP
    """

    def __init__(
        self,
        max_attempts: int = 5,
        retry_wait: Optional[wait_base] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._documents: dict[str, _Document] = {}
        self._subscribers: dict[str, list[SnapshotCallback]] = {}
        self._versions = itertools.count(1)
        self._max_attempts = max_attempts
        self._retry_wait = retry_wait or wait_random(0, 0.005)
        self._clock = clock
        self.commit_count = 0

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    def _resolve(self, data: dict[str, Any], now: datetime) -> dict[str, Any]:
        """Replace SERVER_TIMESTAMP sentinels with the commit time."""
        return {
            key: now if value is SERVER_TIMESTAMP else value
            for key, value in data.items()
        }

    def _write(self, path: str, data: dict[str, Any]) -> None:
        self._documents[path] = _Document(
            data=copy.deepcopy(data),
            version=next(self._versions),
        )

    def _notify(self, paths: Sequence[str]) -> None:
        for path in paths:
            document = self._documents.get(path)
            for callback in list(self._subscribers.get(path, [])):
                try:
                    callback(copy.deepcopy(document.data) if document else None)
                except Exception:
                    # The write is already committed; a broken listener
                    # must not turn it into a reported failure.
                    logger.exception("subscriber_callback_failed", path=path)

    def _commit(self, txn: InMemoryTransaction) -> None:
        """
        Validate read versions and apply pending writes.

        Contains no await, so no other task can run between the version
        check and the last write.
        """
        for path, version in txn.read_versions.items():
            document = self._documents.get(path)
            current = document.version if document else 0
            if current != version:
                raise _CommitConflict(path)

        now = self._clock()
        for path, data in txn.pending.items():
            self._write(path, self._resolve(data, now))
        self.commit_count += 1
        self._notify(list(txn.pending))

    # -------------------------------------------------------------------------
    # DocumentStore
    # -------------------------------------------------------------------------

    async def get(self, path: str) -> Optional[dict[str, Any]]:
        await asyncio.sleep(0)
        document = self._documents.get(path)
        return copy.deepcopy(document.data) if document else None

    async def set(self, path: str, data: dict[str, Any]) -> None:
        await asyncio.sleep(0)
        self._write(path, self._resolve(data, self._clock()))
        self._notify([path])

    async def add(self, collection_path: str, data: dict[str, Any]) -> str:
        document_id = self.new_id()
        await self.set(f"{collection_path}/{document_id}", data)
        return document_id

    async def update_fields(self, path: str, fields: dict[str, Any]) -> None:
        await asyncio.sleep(0)
        document = self._documents.get(path)
        if document is None:
            raise NotFoundError(f"Document not found: {path}")
        merged = dict(document.data)
        merged.update(self._resolve(fields, self._clock()))
        self._write(path, merged)
        self._notify([path])

    async def append_to_list_field(
        self,
        path: str,
        field_name: str,
        value: Any,
    ) -> None:
        await asyncio.sleep(0)
        document = self._documents.get(path)
        if document is None:
            raise NotFoundError(f"Document not found: {path}")
        merged = dict(document.data)
        items = list(merged.get(field_name) or [])
        if value not in items:
            items.append(copy.deepcopy(value))
        merged[field_name] = items
        self._write(path, merged)
        self._notify([path])

    async def query(
        self,
        collection_path: str,
        filters: Sequence[QueryFilter] = (),
        order_by: Optional[OrderBy] = None,
        limit: Optional[int] = None,
    ) -> list[StoredDocument]:
        await asyncio.sleep(0)
        matches = [
            StoredDocument(
                id=path.rsplit("/", 1)[1],
                path=path,
                data=copy.deepcopy(document.data),
            )
            for path, document in self._documents.items()
            if parent_collection(path) == collection_path
            and all(f.matches(document.data) for f in filters)
        ]

        if order_by is not None:
            matches = [m for m in matches if order_by.field in m.data]
            matches.sort(
                key=lambda m: m.data[order_by.field],
                reverse=order_by.descending,
            )

        if limit is not None:
            matches = matches[:limit]
        return matches

    async def run_transaction(
        self,
        fn: Callable[[StoreTransaction], Awaitable[T]],
    ) -> T:
        def _log_retry(retry_state: RetryCallState) -> None:
            logger.info(
                "transaction_retry",
                attempt=retry_state.attempt_number,
                error=str(retry_state.outcome.exception()),
            )

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self._max_attempts),
                wait=self._retry_wait,
                retry=retry_if_exception_type(_CommitConflict),
                before_sleep=_log_retry,
                reraise=True,
            ):
                with attempt:
                    txn = InMemoryTransaction(self)
                    result = await fn(txn)
                    self._commit(txn)
        except _CommitConflict as e:
            logger.warning(
                "transaction_aborted",
                attempts=self._max_attempts,
                path=e.path,
            )
            raise TransactionConflictError(
                f"Transaction failed after {self._max_attempts} attempts: {e}"
            ) from e
        return result

    def subscribe(self, path: str, callback: SnapshotCallback) -> Unsubscribe:
        self._subscribers.setdefault(path, []).append(callback)
        # Like a Firestore listener, deliver the current state first.
        document = self._documents.get(path)
        callback(copy.deepcopy(document.data) if document else None)

        def unsubscribe() -> None:
            callbacks = self._subscribers.get(path, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe
