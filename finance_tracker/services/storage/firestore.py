"""
Google Cloud Firestore Storage Implementation

DESIGN DECISION: Firestore is the production backend because it gives us
exactly the primitives the ledger depends on:
1. Multi-document transactions with optimistic concurrency and automatic
   retry on conflicting commits
2. Server-assigned commit timestamps
3. Filtered, ordered, limited collection queries
4. Push-based document listeners

TRADEOFFS:
- Transactions must do all reads before any write (the ledger does)
- Listener callbacks run on a background thread owned by the SDK
- Retry of aborted transactions is the SDK's; we only translate the
  final failure into TransactionConflictError

The implementation follows the abstract interface, so business logic never
imports the SDK.
"""

from contextlib import contextmanager
from typing import Any, Awaitable, Callable, Iterator, Optional, Sequence, TypeVar

import structlog
from google.api_core import exceptions as gcp_exceptions
from google.cloud import firestore
from google.cloud.firestore_v1.base_query import FieldFilter
from google.oauth2.service_account import Credentials
from tenacity import retry, stop_after_attempt, wait_exponential

from finance_tracker.config import FirestoreSettings, get_settings
from finance_tracker.services.storage.interface import (
    SERVER_TIMESTAMP,
    DocumentStore,
    NetworkError,
    NotFoundError,
    OrderBy,
    QueryFilter,
    SnapshotCallback,
    StorageError,
    StoredDocument,
    StoreTransaction,
    TransactionConflictError,
    Unsubscribe,
)

T = TypeVar("T")

SCOPES = [
    "https://www.googleapis.com/auth/cloud-platform",
    "https://www.googleapis.com/auth/datastore",
]

# Message prefix of the SDK's "retries exhausted" ValueError.
_EXCEEDED_ATTEMPTS_PREFIX = "Failed to commit transaction"

logger = structlog.get_logger(__name__)


@contextmanager
def _translate_errors(action: str) -> Iterator[None]:
    """Map Google API errors onto the storage exception hierarchy."""
    try:
        yield
    except StorageError:
        raise
    except gcp_exceptions.NotFound as e:
        raise NotFoundError(f"{action}: {e}") from e
    except gcp_exceptions.Aborted as e:
        raise TransactionConflictError(f"{action}: {e}") from e
    except (
        gcp_exceptions.ServiceUnavailable,
        gcp_exceptions.DeadlineExceeded,
        gcp_exceptions.RetryError,
    ) as e:
        raise NetworkError(f"{action}: {e}") from e
    except gcp_exceptions.GoogleAPIError as e:
        raise StorageError(f"{action}: {e}") from e


def _to_firestore(data: dict[str, Any]) -> dict[str, Any]:
    """Swap our timestamp sentinel for the SDK's."""
    return {
        key: firestore.SERVER_TIMESTAMP if value is SERVER_TIMESTAMP else value
        for key, value in data.items()
    }


class FirestoreClient:
    """
    Low-level Firestore client wrapper.

    Handles authentication and provides retry logic for client creation.
    Holds an async client for reads and writes, plus a sync client whose
    only job is document listeners (the async client has none).
    """

    def __init__(self, settings: Optional[FirestoreSettings] = None):
        self._settings = settings or get_settings().firestore
        self._credentials: Optional[Credentials] = None
        self._client: Optional[firestore.AsyncClient] = None
        self._listener_client: Optional[firestore.Client] = None

    @property
    def max_transaction_attempts(self) -> int:
        return self._settings.max_transaction_attempts

    def _load_credentials(self) -> Credentials:
        if self._credentials is None:
            try:
                self._credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=SCOPES,
                )
            except FileNotFoundError:
                raise StorageError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
        return self._credentials

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    def connect(self) -> firestore.AsyncClient:
        """
        Create the async Firestore client.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            credentials = self._load_credentials()
            try:
                self._client = firestore.AsyncClient(
                    project=self._settings.project_id,
                    credentials=credentials,
                    database=self._settings.database,
                )
            except gcp_exceptions.GoogleAPIError as e:
                raise NetworkError(f"Failed to connect to Firestore: {e}")
        return self._client

    def listener_client(self) -> firestore.Client:
        """Get the sync client used for on_snapshot listeners."""
        if self._listener_client is None:
            self._listener_client = firestore.Client(
                project=self._settings.project_id,
                credentials=self._load_credentials(),
                database=self._settings.database,
            )
        return self._listener_client


class FirestoreTransaction(StoreTransaction):
    """StoreTransaction over a Firestore AsyncTransaction."""

    def __init__(
        self,
        client: firestore.AsyncClient,
        transaction: firestore.AsyncTransaction,
    ):
        self._client = client
        self._transaction = transaction

    async def get(self, path: str) -> Optional[dict[str, Any]]:
        snapshot = await self._client.document(path).get(
            transaction=self._transaction
        )
        return snapshot.to_dict() if snapshot.exists else None

    def set(self, path: str, data: dict[str, Any]) -> None:
        self._transaction.set(self._client.document(path), _to_firestore(data))

    def update(self, path: str, fields: dict[str, Any]) -> None:
        self._transaction.update(
            self._client.document(path),
            _to_firestore(fields),
        )


class FirestoreDocumentStore(DocumentStore):
    """
    Firestore implementation of the document store.

    Documents map one-to-one onto Firestore documents at the same path.
    """

    def __init__(self, client: Optional[FirestoreClient] = None):
        self._client = client or FirestoreClient()

    async def get(self, path: str) -> Optional[dict[str, Any]]:
        with _translate_errors(f"Failed to read {path}"):
            snapshot = await self._client.connect().document(path).get()
        return snapshot.to_dict() if snapshot.exists else None

    async def set(self, path: str, data: dict[str, Any]) -> None:
        with _translate_errors(f"Failed to write {path}"):
            await self._client.connect().document(path).set(_to_firestore(data))

    async def add(self, collection_path: str, data: dict[str, Any]) -> str:
        with _translate_errors(f"Failed to add to {collection_path}"):
            _, reference = await self._client.connect().collection(
                collection_path
            ).add(_to_firestore(data))
        return reference.id

    async def update_fields(self, path: str, fields: dict[str, Any]) -> None:
        with _translate_errors(f"Failed to update {path}"):
            await self._client.connect().document(path).update(
                _to_firestore(fields)
            )

    async def append_to_list_field(
        self,
        path: str,
        field_name: str,
        value: Any,
    ) -> None:
        with _translate_errors(f"Failed to append to {path}.{field_name}"):
            await self._client.connect().document(path).update(
                {field_name: firestore.ArrayUnion([value])}
            )

    async def query(
        self,
        collection_path: str,
        filters: Sequence[QueryFilter] = (),
        order_by: Optional[OrderBy] = None,
        limit: Optional[int] = None,
    ) -> list[StoredDocument]:
        query = self._client.connect().collection(collection_path)
        for condition in filters:
            query = query.where(
                filter=FieldFilter(condition.field, condition.op, condition.value)
            )
        if order_by is not None:
            query = query.order_by(
                order_by.field,
                direction="DESCENDING" if order_by.descending else "ASCENDING",
            )
        if limit is not None:
            query = query.limit(limit)

        with _translate_errors(f"Failed to query {collection_path}"):
            return [
                StoredDocument(
                    id=snapshot.id,
                    path=snapshot.reference.path,
                    data=snapshot.to_dict() or {},
                )
                async for snapshot in query.stream()
            ]

    async def run_transaction(
        self,
        fn: Callable[[StoreTransaction], Awaitable[T]],
    ) -> T:
        client = self._client.connect()
        transaction = client.transaction(
            max_attempts=self._client.max_transaction_attempts
        )

        @firestore.async_transactional
        async def _run(transaction: firestore.AsyncTransaction) -> T:
            return await fn(FirestoreTransaction(client, transaction))

        with _translate_errors("Transaction failed"):
            try:
                return await _run(transaction)
            except ValueError as e:
                if str(e).startswith(_EXCEEDED_ATTEMPTS_PREFIX):
                    logger.warning(
                        "transaction_aborted",
                        attempts=self._client.max_transaction_attempts,
                    )
                    raise TransactionConflictError(str(e)) from e
                raise

    def subscribe(self, path: str, callback: SnapshotCallback) -> Unsubscribe:
        reference = self._client.listener_client().document(path)

        def _on_snapshot(snapshots, changes, read_time) -> None:
            for snapshot in snapshots:
                callback(snapshot.to_dict() if snapshot.exists else None)

        watch = reference.on_snapshot(_on_snapshot)
        return watch.unsubscribe
