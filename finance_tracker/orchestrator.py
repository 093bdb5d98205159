"""
Application wiring for Finance Tracker

This module builds the object graph the UI talks to:
store -> audit logger -> ledger engine -> statistics aggregator,
plus the wallet, bill and profile registries and the input validator.

DESIGN DECISION: Every component receives the same DocumentStore.
Only the ledger engine writes aggregate totals; the registries never
touch them, whichever store backs the graph.
"""

from typing import NamedTuple, Optional

import structlog

from finance_tracker.audit import AuditLogger
from finance_tracker.config import AppSettings, get_settings, validate_all_settings
from finance_tracker.ledger import LedgerEngine
from finance_tracker.registry import BillRegistry, ProfileRegistry, WalletRegistry
from finance_tracker.services.storage import (
    DocumentStore,
    FirestoreClient,
    FirestoreDocumentStore,
    InMemoryDocumentStore,
    StorageError,
)
from finance_tracker.statistics import StatisticsAggregator
from finance_tracker.validation import InputValidator

logger = structlog.get_logger(__name__)


class AppComponents(NamedTuple):
    store: DocumentStore
    audit_logger: AuditLogger
    ledger: LedgerEngine
    statistics: StatisticsAggregator
    wallets: WalletRegistry
    bills: BillRegistry
    profiles: ProfileRegistry
    validator: InputValidator


def _connect_firestore() -> FirestoreDocumentStore:
    settings = get_settings()
    client = FirestoreClient(settings.firestore)
    client.connect()
    return FirestoreDocumentStore(client)


def _select_store(use_firestore: bool) -> DocumentStore:
    if not use_firestore:
        return InMemoryDocumentStore()

    checks = validate_all_settings()
    if not checks["firestore"]:
        logger.warning(
            "firestore_not_configured",
            error=checks.get("firestore_error"),
            fallback="in_memory",
        )
        return InMemoryDocumentStore()

    try:
        return _connect_firestore()
    except (StorageError, ValueError) as e:
        logger.warning(
            "firestore_unavailable",
            error=str(e),
            fallback="in_memory",
        )
        return InMemoryDocumentStore()


def create_app_components(
    use_firestore: bool = True,
    store: Optional[DocumentStore] = None,
    app_settings: Optional[AppSettings] = None,
) -> AppComponents:
    """
    Factory function to create all application components.

    Args:
        use_firestore: Whether to connect to Firestore.
                       Set to False for tests and local runs.
        store: Use this store instead of creating one
        app_settings: Override the environment's application settings

    If Firestore is requested but not configured or not reachable, the
    components are built on an in-memory store instead and a warning is
    logged.
    """
    app_settings = app_settings or get_settings().app
    if store is None:
        store = _select_store(use_firestore)

    audit_logger = AuditLogger(store)
    ledger = LedgerEngine(store, audit_logger, app_settings)

    logger.info(
        "app_components_created",
        environment=app_settings.app_environment,
        store=type(store).__name__,
        timezone=app_settings.timezone,
    )
    return AppComponents(
        store=store,
        audit_logger=audit_logger,
        ledger=ledger,
        statistics=StatisticsAggregator(ledger, audit_logger, app_settings),
        wallets=WalletRegistry(store, audit_logger),
        bills=BillRegistry(store, audit_logger, app_settings.currency_symbol),
        profiles=ProfileRegistry(store, audit_logger),
        validator=InputValidator(app_settings),
    )
