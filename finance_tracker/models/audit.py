"""
Audit Models for Finance Tracker

Every mutation of a user's money data is logged for audit purposes.
This provides:
1. Complete traceability of all ledger and registry writes
2. Debugging information when things go wrong
3. Ability to reconstruct history

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Accounts
    USER_CREATED = "user_created"
    PROFILE_UPDATED = "profile_updated"

    # Ledger
    TRANSACTION_RECORDED = "transaction_recorded"
    TRANSACTION_FAILED = "transaction_failed"

    # Registry
    WALLET_ADDED = "wallet_added"
    WALLET_UPDATED = "wallet_updated"
    WALLET_DELETED = "wallet_deleted"
    BILL_ADDED = "bill_added"

    # Read side
    STATISTICS_COMPUTED = "statistics_computed"

    # Input
    VALIDATION_FAILED = "validation_failed"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=_utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Context - whose data, and which record
    user_id: Optional[str] = Field(
        default=None,
        description="Owner of the affected data"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'wallet', 'bill')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., one screen action)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_document(self) -> dict[str, Any]:
        """Convert to the shape stored in the ``auditLog`` collection."""
        return {
            "eventId": str(self.event_id),
            "timestamp": self.timestamp,
            "eventType": self.event_type.value,
            "severity": self.severity.value,
            "userId": self.user_id,
            "entityType": self.entity_type,
            "entityId": self.entity_id,
            "correlationId": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "errorCode": self.error_code,
            "errorMessage": self.error_message,
            "isUserAction": self.is_user_action,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.transaction_recorded(user_id, tx_id, "expense", "30.00")
        event = AuditEventBuilder.wallet_deleted(user_id, wallet_id)
    """

    @staticmethod
    def user_created(user_id: str, email: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.USER_CREATED,
            user_id=user_id,
            entity_type="user",
            entity_id=user_id,
            description=f"User document created for {email}",
            details={"email": email},
            is_user_action=True,
        )

    @staticmethod
    def profile_updated(user_id: str, fields: list[str]) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROFILE_UPDATED,
            user_id=user_id,
            entity_type="user",
            entity_id=user_id,
            description=f"Profile updated: {', '.join(fields) or 'no fields'}",
            details={"fields": fields},
            is_user_action=True,
        )

    @staticmethod
    def transaction_recorded(
        user_id: str,
        transaction_id: str,
        kind: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_RECORDED,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction recorded: {kind} {amount}",
            details={
                "type": kind,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def transaction_failed(
        user_id: str,
        error_type: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSACTION_FAILED,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            entity_type="transaction",
            correlation_id=correlation_id,
            description=f"Transaction not recorded: {error_type}",
            error_code=error_type,
            error_message=error_message,
        )

    @staticmethod
    def wallet_added(user_id: str, wallet_id: str, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WALLET_ADDED,
            user_id=user_id,
            entity_type="wallet",
            entity_id=wallet_id,
            description=f"Wallet added: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def wallet_updated(user_id: str, wallet_id: str, name: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WALLET_UPDATED,
            user_id=user_id,
            entity_type="wallet",
            entity_id=wallet_id,
            description=f"Wallet updated: {name}",
            details={"name": name},
            is_user_action=True,
        )

    @staticmethod
    def wallet_deleted(user_id: str, wallet_id: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WALLET_DELETED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="wallet",
            entity_id=wallet_id,
            description="Wallet deleted; transactions that reference it are kept",
            is_user_action=True,
        )

    @staticmethod
    def bill_added(user_id: str, bill_id: str, name: str, amount: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BILL_ADDED,
            user_id=user_id,
            entity_type="bill",
            entity_id=bill_id,
            description=f"Bill added: {name} - {amount}",
            details={
                "name": name,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def statistics_computed(
        user_id: str,
        period: str,
        transaction_count: int,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STATISTICS_COMPUTED,
            severity=AuditSeverity.DEBUG,
            user_id=user_id,
            entity_type="statistics",
            description=f"Statistics computed for {period} over {transaction_count} transactions",
            details={
                "period": period,
                "transaction_count": transaction_count,
            },
        )

    @staticmethod
    def validation_failed(
        form: str,
        issues: list[dict],
        user_id: Optional[str] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type=form,
            description=f"{form.capitalize()} input rejected with {len(issues)} issues",
            details={"issues": issues},
            is_user_action=True,
        )
