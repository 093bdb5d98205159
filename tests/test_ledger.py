"""
Tests for the ledger engine

Covers the aggregate invariant (balance == income - expenses) under
sequential and concurrent inserts, atomicity when a commit fails, and the
read paths used by the home feed and statistics.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from tenacity import wait_none

from finance_tracker.audit import AuditLogger
from finance_tracker.ledger import LedgerEngine
from finance_tracker.models import TransactionInput, TransactionType
from finance_tracker.services.storage import (
    DuplicateError,
    InMemoryDocumentStore,
    NetworkError,
    NotFoundError,
    TransactionConflictError,
)
from finance_tracker.services.storage.paths import (
    AUDIT_LOG_COLLECTION,
    transactions_path,
)
from finance_tracker.validation import ValidationError

from tests.conftest import FIXED_NOW, make_input


class InterleavingStore(InMemoryDocumentStore):
    """Yields between a transaction's reads and its commit."""

    def __init__(self, **kwargs):
        super().__init__(retry_wait=wait_none(), **kwargs)
        self.attempts = 0

    async def run_transaction(self, fn):
        async def slow(txn):
            self.attempts += 1
            result = await fn(txn)
            await asyncio.sleep(0)
            return result

        return await super().run_transaction(slow)


class AbortingStore(InMemoryDocumentStore):
    """Fails every commit after the callback has run."""

    def _commit(self, txn):
        raise NetworkError("simulated abort")


def _totals(user):
    return user.total_balance, user.total_income, user.total_expenses


class TestUsers:
    """Tests for user document creation and reads."""

    def test_create_user_starts_at_zero(self, ledger):
        """Test a new user has zero totals and no wallets."""
        user = asyncio.run(ledger.create_user("u1", "juan@example.com"))
        assert _totals(user) == (0, 0, 0)
        assert user.wallets == []
        assert user.created_at == FIXED_NOW

    def test_create_user_refuses_overwrite(self, ledger):
        """Test that signing up twice keeps the existing totals."""
        async def run():
            await ledger.create_user("u1", "juan@example.com")
            await ledger.record_transaction("u1", make_input(100, TransactionType.INCOME))
            with pytest.raises(DuplicateError):
                await ledger.create_user("u1", "juan@example.com")
            return await ledger.get_user("u1")

        assert asyncio.run(run()).total_balance == Decimal("100.00")

    def test_get_missing_user(self, ledger):
        """Test that reading an unknown user raises NotFoundError."""
        with pytest.raises(NotFoundError):
            asyncio.run(ledger.get_user("ghost"))

    def test_subscribe_to_user(self, ledger):
        """Test that committed inserts are pushed to listeners."""
        updates = []

        async def run():
            await ledger.create_user("u1", "juan@example.com")
            unsubscribe = ledger.subscribe_to_user("u1", updates.append)
            await ledger.record_transaction("u1", make_input(100, TransactionType.INCOME))
            unsubscribe()
            await ledger.record_transaction("u1", make_input(40))

        asyncio.run(run())
        assert len(updates) == 2
        assert updates[0].total_balance == 0
        assert _totals(updates[1]) == (100, 100, 0)


class TestRecordTransaction:
    """Tests for the atomic insert."""

    def test_example_scenario(self, ledger):
        """Test totals after income 100, expense 30, expense 20."""
        async def run():
            await ledger.create_user("u1", "juan@example.com")
            snapshots = []
            for amount, kind in [
                (100, TransactionType.INCOME),
                (30, TransactionType.EXPENSE),
                (20, TransactionType.EXPENSE),
            ]:
                await ledger.record_transaction("u1", make_input(amount, kind))
                snapshots.append(_totals(await ledger.get_user("u1")))
            return snapshots

        assert asyncio.run(run()) == [(100, 100, 0), (70, 100, 30), (50, 100, 50)]

    def test_writes_one_record_with_server_timestamp(self, ledger, store):
        """Test the stored transaction document."""
        async def run():
            await ledger.create_user("u1", "juan@example.com")
            tx = await ledger.record_transaction(
                "u1",
                make_input("12.50", note="Lunch", wallet_id="wallet_1"),
            )
            docs = await store.query(transactions_path("u1"))
            return tx, docs

        tx, docs = asyncio.run(run())
        assert len(docs) == 1
        assert docs[0].id == tx.id
        assert docs[0].data["amount"] == 1250
        assert docs[0].data["walletId"] == "wallet_1"
        assert docs[0].data["createdAt"] == FIXED_NOW
        assert tx.created_at is None

    def test_sub_cent_sums_are_exact(self, ledger):
        """Test many small amounts without rounding drift."""
        async def run():
            await ledger.create_user("u1", "juan@example.com")
            for _ in range(30):
                await ledger.record_transaction("u1", make_input("0.10", TransactionType.INCOME))
                await ledger.record_transaction("u1", make_input("0.20"))
            return await ledger.get_user("u1")

        user = asyncio.run(run())
        assert user.total_income == Decimal("3.00")
        assert user.total_expenses == Decimal("6.00")
        assert user.total_balance == Decimal("-3.00")

    def test_missing_user_is_not_created(self, ledger, store):
        """Test that recording for an unknown user writes nothing."""
        with pytest.raises(NotFoundError):
            asyncio.run(ledger.record_transaction("ghost", make_input(10)))
        assert asyncio.run(store.get("users/ghost")) is None
        assert asyncio.run(store.query(transactions_path("ghost"))) == []

    def test_failed_commit_leaves_no_trace(self, settings):
        """Test that an abort between read and commit persists nothing."""
        store = AbortingStore()
        ledger = LedgerEngine(store, AuditLogger(store), settings)

        async def run():
            await store.set("users/u1", {
                "email": "juan@example.com",
                "totalBalance": 1000,
                "totalIncome": 1000,
                "totalExpenses": 0,
                "wallets": [],
            })
            with pytest.raises(NetworkError):
                await ledger.record_transaction("u1", make_input(10))
            return (
                await ledger.get_user("u1"),
                await store.query(transactions_path("u1")),
                await store.query(AUDIT_LOG_COLLECTION),
            )

        user, transactions, audit = asyncio.run(run())
        assert _totals(user) == (Decimal("10.00"), Decimal("10.00"), 0)
        assert transactions == []
        assert [doc.data["eventType"] for doc in audit] == ["transaction_failed"]

    def test_oversized_amount_is_rejected_before_writing(self, ledger, store):
        """Test an amount too large for minor units is a validation error."""
        oversized = TransactionInput.model_construct(
            amount=Decimal("1E+27"),
            category="Food",
            note="",
            date=FIXED_NOW,
            type=TransactionType.EXPENSE,
            wallet_id=None,
            receipt_image=None,
        )

        async def run():
            await ledger.create_user("u1", "juan@example.com")
            with pytest.raises(ValidationError) as error:
                await ledger.record_transaction("u1", oversized)
            return (
                error.value,
                await ledger.get_user("u1"),
                await store.query(transactions_path("u1")),
                await store.query(AUDIT_LOG_COLLECTION),
            )

        error, user, transactions, audit = asyncio.run(run())
        assert [issue.field for issue in error.issues] == ["amount"]
        assert _totals(user) == (0, 0, 0)
        assert transactions == []
        assert [doc.data["eventType"] for doc in audit] == [
            "user_created", "validation_failed",
        ]


class TestConcurrency:
    """Tests for concurrent inserts against one user."""

    def test_concurrent_inserts_lose_no_updates(self, settings):
        """Test that interleaved inserts all land in the totals."""
        store = InterleavingStore(max_attempts=50)
        ledger = LedgerEngine(store, settings=settings)
        amounts = [
            (Decimal(str(5 + i)), TransactionType.INCOME if i % 3 == 0 else TransactionType.EXPENSE)
            for i in range(12)
        ]

        async def run():
            await ledger.create_user("u1", "juan@example.com")
            await asyncio.gather(*(
                ledger.record_transaction("u1", make_input(amount, kind))
                for amount, kind in amounts
            ))
            return await ledger.get_user("u1")

        user = asyncio.run(run())
        income = sum(a for a, k in amounts if k == TransactionType.INCOME)
        expenses = sum(a for a, k in amounts if k == TransactionType.EXPENSE)

        assert user.total_income == income
        assert user.total_expenses == expenses
        assert user.total_balance == income - expenses
        # More attempts than inserts means commits really did conflict.
        assert store.attempts > len(amounts) + 1

    def test_conflict_after_retries_propagates(self, settings):
        """Test that a loser with no retries left fails without writing."""
        store = InterleavingStore(max_attempts=1)
        ledger = LedgerEngine(store, settings=settings)

        async def run():
            await ledger.create_user("u1", "juan@example.com")
            results = await asyncio.gather(
                ledger.record_transaction("u1", make_input(30)),
                ledger.record_transaction("u1", make_input(20)),
                return_exceptions=True,
            )
            return (
                results,
                await ledger.get_user("u1"),
                await store.query(transactions_path("u1")),
            )

        results, user, docs = asyncio.run(run())
        failures = [r for r in results if isinstance(r, TransactionConflictError)]
        assert len(failures) == 1
        assert len(docs) == 1
        assert user.total_expenses == Decimal(docs[0].data["amount"]) / 100


class TestReads:
    """Tests for the recent and range read paths."""

    def _seed(self, ledger):
        async def run():
            await ledger.create_user("u1", "juan@example.com")
            for day, amount in [(20, 10), (18, 20), (22, 30), (5, 40)]:
                await ledger.record_transaction(
                    "u1",
                    make_input(amount, date=datetime(2026, 10, day, 9, tzinfo=timezone.utc)),
                )
        asyncio.run(run())

    def test_recent_is_newest_first(self, ledger):
        """Test the home feed order and limit."""
        self._seed(ledger)
        recent = asyncio.run(ledger.fetch_recent_transactions("u1", 3))
        assert [t.date.day for t in recent] == [22, 20, 18]

    def test_recent_default_count(self, ledger):
        """Test that the configured default limit applies."""
        self._seed(ledger)
        assert len(asyncio.run(ledger.fetch_recent_transactions("u1"))) == 4

    def test_recent_for_user_without_transactions(self, ledger):
        """Test an empty feed."""
        assert asyncio.run(ledger.fetch_recent_transactions("nobody", 5)) == []

    def test_recent_rejects_non_positive_count(self, ledger):
        """Test count validation."""
        with pytest.raises(ValidationError):
            asyncio.run(ledger.fetch_recent_transactions("u1", 0))

    def test_rejected_count_is_audited(self, ledger, store):
        """Test a bad history request leaves a validation_failed event."""
        with pytest.raises(ValidationError):
            asyncio.run(ledger.fetch_recent_transactions("u1", -3))
        audit = asyncio.run(store.query(AUDIT_LOG_COLLECTION))
        assert [doc.data["eventType"] for doc in audit] == ["validation_failed"]
        assert audit[0].data["details"]["issues"][0]["field"] == "count"
        assert audit[0].data["userId"] == "u1"

    def test_range_is_inclusive_and_descending(self, ledger):
        """Test both bounds are included."""
        self._seed(ledger)
        start = datetime(2026, 10, 18, 9, tzinfo=timezone.utc)
        end = datetime(2026, 10, 22, 9, tzinfo=timezone.utc)
        found = asyncio.run(ledger.fetch_transactions_in_range("u1", start, end))
        assert [t.date.day for t in found] == [22, 20, 18]

    def test_range_read_is_idempotent(self, ledger):
        """Test identical reads with no writes in between."""
        self._seed(ledger)
        start = FIXED_NOW - timedelta(days=30)

        async def run():
            first = await ledger.fetch_transactions_in_range("u1", start, FIXED_NOW)
            second = await ledger.fetch_transactions_in_range("u1", start, FIXED_NOW)
            return first, second

        first, second = asyncio.run(run())
        assert first == second
        assert len(first) == 4

    def test_range_rejects_inverted_bounds(self, ledger):
        """Test that start must not be after end."""
        with pytest.raises(ValidationError):
            asyncio.run(ledger.fetch_transactions_in_range(
                "u1", FIXED_NOW, FIXED_NOW - timedelta(days=1)
            ))


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
