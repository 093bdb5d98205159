"""
Data Models Package

This package contains all Pydantic models used in the Finance Tracker.
All data flowing through the ledger and registries must conform to these schemas.
"""

from finance_tracker.models.ledger import (
    DELETED_WALLET_LABEL,
    AggregateTotals,
    Bill,
    BillFrequency,
    BillInput,
    EmbeddedIcon,
    ProfileUpdate,
    SymbolicIcon,
    Transaction,
    TransactionInput,
    TransactionType,
    UserAccount,
    Wallet,
    WalletIcon,
    WalletInput,
    parse_icon,
)
from finance_tracker.models.money import (
    format_currency,
    from_minor_units,
    to_minor_units,
)
from finance_tracker.models.statistics import (
    ReportingPeriod,
    StatisticsReport,
    TransactionSection,
)
from finance_tracker.models.validation import ValidationIssue
from finance_tracker.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "DELETED_WALLET_LABEL",
    "AggregateTotals",
    "Bill",
    "BillFrequency",
    "BillInput",
    "EmbeddedIcon",
    "ProfileUpdate",
    "SymbolicIcon",
    "Transaction",
    "TransactionInput",
    "TransactionType",
    "UserAccount",
    "Wallet",
    "WalletIcon",
    "WalletInput",
    "parse_icon",
    # Money
    "format_currency",
    "from_minor_units",
    "to_minor_units",
    # Statistics models
    "ReportingPeriod",
    "StatisticsReport",
    "TransactionSection",
    # Validation models
    "ValidationIssue",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
