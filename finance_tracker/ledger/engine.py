"""
Ledger Engine

Owns the per-user aggregate totals and the transaction history they are
derived from.

CRITICAL: The aggregate fields on a user document are only ever written by
``record_transaction``, inside one store transaction together with the new
transaction record. Every attempt re-reads the totals, so concurrent
inserts from several devices cannot lose updates. Conflict retry belongs
to the store's transaction primitive; the engine holds no locks.

Flow of a transaction insert:
1. Read the user document (NotFoundError if absent; never created here)
2. Compute the new totals from the amount and type
3. Write the transaction record with a server-assigned ``createdAt``
4. Write the new totals
Steps 1-4 commit together or not at all.
"""

from datetime import datetime, timezone
from typing import Callable, Optional
from uuid import UUID

import structlog
from pydantic import ValidationError as PydanticValidationError

from finance_tracker.audit import AuditLogger
from finance_tracker.config import AppSettings, get_settings
from finance_tracker.models.ledger import (
    AggregateTotals,
    Transaction,
    TransactionInput,
    UserAccount,
)
from finance_tracker.models.money import format_currency
from finance_tracker.models.validation import ValidationIssue
from finance_tracker.services.storage import (
    SERVER_TIMESTAMP,
    DocumentStore,
    DuplicateError,
    NotFoundError,
    OrderBy,
    QueryFilter,
    StorageError,
    StoreTransaction,
)
from finance_tracker.services.storage.interface import Unsubscribe
from finance_tracker.services.storage.paths import (
    transaction_path,
    transactions_path,
    user_path,
)
from finance_tracker.validation import ValidationError

logger = structlog.get_logger(__name__)


class LedgerEngine:
    """
    Records transactions and reads transaction history.

    Usage:
        engine = LedgerEngine(store, audit_logger)
        tx = await engine.record_transaction(user_id, transaction_input)
    """

    def __init__(
        self,
        store: DocumentStore,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().app

    # -------------------------------------------------------------------------
    # Users
    # -------------------------------------------------------------------------

    async def create_user(self, user_id: str, email: str) -> UserAccount:
        """
        Create the user document with zero totals and no wallets.

        Raises:
            DuplicateError: If the user document already exists
        """
        path = user_path(user_id)

        async def _create(txn: StoreTransaction) -> None:
            if await txn.get(path) is not None:
                raise DuplicateError(f"User already exists: {user_id}")
            txn.set(path, {
                "email": email,
                "createdAt": SERVER_TIMESTAMP,
                **AggregateTotals().to_fields(),
                "wallets": [],
            })

        await self._store.run_transaction(_create)
        logger.info("user_created", user_id=user_id)

        if self._audit_logger:
            await self._audit_logger.log_user_created(user_id, email)
        return await self.get_user(user_id)

    async def get_user(self, user_id: str) -> UserAccount:
        """
        Read the user document.

        Raises:
            ValidationError: If the input cannot be stored as given
            NotFoundError: If the user document does not exist
        """
        data = await self._store.get(user_path(user_id))
        if data is None:
            raise NotFoundError(f"User not found: {user_id}")
        return UserAccount.from_document(user_id, data)

    def subscribe_to_user(
        self,
        user_id: str,
        on_update: Callable[[Optional[UserAccount]], None],
    ) -> Unsubscribe:
        """
        Push the user's totals and wallets on every committed change.

        ``on_update`` receives None while the document does not exist.
        """
        def _deliver(data: Optional[dict]) -> None:
            on_update(UserAccount.from_document(user_id, data) if data else None)

        return self._store.subscribe(user_path(user_id), _deliver)

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def record_transaction(
        self,
        user_id: str,
        transaction_input: TransactionInput,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Insert a transaction and update the aggregate totals atomically.

        The returned transaction has ``created_at`` unset; the store fills
        it in at commit time.

        Raises:
            NotFoundError: If the user document does not exist
            TransactionConflictError: If the store could not commit
            NetworkError: If the backend is unreachable
        """
        user = user_path(user_id)
        try:
            transaction = Transaction(
                id=self._store.new_id(),
                **transaction_input.model_dump(),
            )
        except PydanticValidationError as e:
            error = ValidationError.from_pydantic(e)
            await self._reject("transaction", error, user_id=user_id)
            raise error from e
        record = transaction.to_document()
        record["createdAt"] = SERVER_TIMESTAMP

        async def _apply(txn: StoreTransaction) -> AggregateTotals:
            data = await txn.get(user)
            if data is None:
                raise NotFoundError(f"User not found: {user_id}")

            totals = AggregateTotals.from_document(data).apply(
                transaction.type,
                transaction.amount_minor,
            )
            txn.set(transaction_path(user_id, transaction.id), record)
            txn.update(user, totals.to_fields())
            return totals

        try:
            totals = await self._store.run_transaction(_apply)
        except StorageError as e:
            logger.warning(
                "transaction_not_recorded",
                user_id=user_id,
                error_type=type(e).__name__,
                error=str(e),
            )
            if self._audit_logger:
                await self._audit_logger.log_transaction_failed(
                    user_id, e, correlation_id
                )
            raise

        logger.info(
            "transaction_recorded",
            user_id=user_id,
            transaction_id=transaction.id,
            type=transaction.type.value,
            total_balance=totals.balance,
        )
        if self._audit_logger:
            await self._audit_logger.log_transaction_recorded(
                user_id=user_id,
                transaction_id=transaction.id,
                kind=transaction.type.value,
                amount=format_currency(
                    transaction.amount, self._settings.currency_symbol
                ),
                correlation_id=correlation_id,
            )
        return transaction

    async def fetch_recent_transactions(
        self,
        user_id: str,
        count: Optional[int] = None,
    ) -> list[Transaction]:
        """
        The ``count`` most recent transactions by ``date``, newest first.

        An empty list means the user has no transactions; store errors
        propagate.
        """
        if count is None:
            count = self._settings.recent_transactions_limit
        if count < 1:
            error = ValidationError([ValidationIssue(
                field="count",
                issue_type="out_of_range",
                message=f"count must be at least 1, got {count}",
            )])
            await self._reject("history_request", error, user_id=user_id)
            raise error

        documents = await self._store.query(
            transactions_path(user_id),
            order_by=OrderBy("date", descending=True),
            limit=count,
        )
        return [Transaction.from_document(doc.id, doc.data) for doc in documents]

    async def fetch_transactions_in_range(
        self,
        user_id: str,
        start: datetime,
        end: datetime,
    ) -> list[Transaction]:
        """
        All transactions dated within ``[start, end]``, newest first.

        Naive bounds are read as UTC, like transaction dates.
        """
        if start.tzinfo is None:
            start = start.replace(tzinfo=timezone.utc)
        if end.tzinfo is None:
            end = end.replace(tzinfo=timezone.utc)
        if start > end:
            error = ValidationError([ValidationIssue(
                field="start",
                issue_type="out_of_range",
                message="Range start is after range end",
            )])
            await self._reject("history_request", error, user_id=user_id)
            raise error

        documents = await self._store.query(
            transactions_path(user_id),
            filters=[
                QueryFilter("date", ">=", start),
                QueryFilter("date", "<=", end),
            ],
            order_by=OrderBy("date", descending=True),
        )
        return [Transaction.from_document(doc.id, doc.data) for doc in documents]

    async def _reject(self, form: str, error: ValidationError, user_id: str) -> None:
        logger.warning(
            "ledger_input_rejected",
            user_id=user_id,
            form=form,
            issues=len(error.issues),
            error=str(error),
        )
        if self._audit_logger:
            await self._audit_logger.log_validation_failed(
                form, error.to_dicts(), user_id=user_id,
            )
