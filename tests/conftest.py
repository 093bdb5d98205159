"""Shared fixtures: an in-memory store, settings pinned to UTC, and a ledger."""

from datetime import datetime, timezone
from decimal import Decimal

import pytest
from tenacity import wait_none

from finance_tracker.audit import AuditLogger
from finance_tracker.config import AppSettings
from finance_tracker.ledger import LedgerEngine
from finance_tracker.models import Transaction, TransactionInput, TransactionType
from finance_tracker.services.storage import InMemoryDocumentStore

FIXED_NOW = datetime(2026, 10, 22, 12, 0, tzinfo=timezone.utc)


def make_input(amount, kind=TransactionType.EXPENSE, date=FIXED_NOW, **extra) -> TransactionInput:
    return TransactionInput(
        amount=Decimal(str(amount)),
        category=extra.pop("category", "Food"),
        date=date,
        type=kind,
        **extra,
    )


def make_transaction(tx_id, amount, kind=TransactionType.EXPENSE, date=FIXED_NOW) -> Transaction:
    return Transaction(id=tx_id, **make_input(amount, kind, date).model_dump())


@pytest.fixture
def settings():
    return AppSettings(timezone="UTC")


@pytest.fixture
def store():
    return InMemoryDocumentStore(retry_wait=wait_none(), clock=lambda: FIXED_NOW)


@pytest.fixture
def audit_logger(store):
    return AuditLogger(store)


@pytest.fixture
def ledger(store, audit_logger, settings):
    return LedgerEngine(store, audit_logger, settings)
