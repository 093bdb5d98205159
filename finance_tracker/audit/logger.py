"""
Audit Logger

DESIGN DECISION: Every mutation of a user's money data is logged.
This provides:
1. Complete traceability
2. Debugging capability
3. User can see history of their interactions

The audit logger:
- Is async to not block main flow
- Gracefully handles persistence failures (an audit write never fails a
  ledger operation that already committed)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from finance_tracker.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from finance_tracker.services.storage import DocumentStore
from finance_tracker.services.storage.paths import AUDIT_LOG_COLLECTION


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. The document store's ``auditLog`` collection (for persistence)
    """

    def __init__(
        self,
        storage: Optional[DocumentStore] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Document store for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("finance_tracker.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                await self._storage.add(AUDIT_LOG_COLLECTION, event.to_document())
                return True
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_user_created(self, user_id: str, email: str) -> None:
        """Log sign-up document creation."""
        await self.log(AuditEventBuilder.user_created(user_id=user_id, email=email))

    async def log_profile_updated(self, user_id: str, fields: list[str]) -> None:
        await self.log(AuditEventBuilder.profile_updated(user_id=user_id, fields=fields))

    async def log_transaction_recorded(
        self,
        user_id: str,
        transaction_id: str,
        kind: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a committed transaction insert."""
        event = AuditEventBuilder.transaction_recorded(
            user_id=user_id,
            transaction_id=transaction_id,
            kind=kind,
            amount=amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_transaction_failed(
        self,
        user_id: str,
        error: Exception,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a transaction insert that did not commit."""
        event = AuditEventBuilder.transaction_failed(
            user_id=user_id,
            error_type=type(error).__name__,
            error_message=str(error),
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_wallet_added(self, user_id: str, wallet_id: str, name: str) -> None:
        await self.log(AuditEventBuilder.wallet_added(user_id, wallet_id, name))

    async def log_wallet_updated(self, user_id: str, wallet_id: str, name: str) -> None:
        await self.log(AuditEventBuilder.wallet_updated(user_id, wallet_id, name))

    async def log_wallet_deleted(self, user_id: str, wallet_id: str) -> None:
        await self.log(AuditEventBuilder.wallet_deleted(user_id, wallet_id))

    async def log_bill_added(
        self,
        user_id: str,
        bill_id: str,
        name: str,
        amount: str,
    ) -> None:
        await self.log(AuditEventBuilder.bill_added(user_id, bill_id, name, amount))

    async def log_statistics_computed(
        self,
        user_id: str,
        period: str,
        transaction_count: int,
    ) -> None:
        event = AuditEventBuilder.statistics_computed(
            user_id=user_id,
            period=period,
            transaction_count=transaction_count,
        )
        await self.log(event)

    async def log_validation_failed(
        self,
        form: str,
        issues: list[dict],
        user_id: Optional[str] = None,
    ) -> None:
        """Log rejected user input."""
        await self.log(AuditEventBuilder.validation_failed(
            form=form, issues=issues, user_id=user_id,
        ))


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., saving a transaction).
    Pass it through all subsequent operations.
    """
    return uuid4()
