"""
Statistics Models

Output shapes of the statistics aggregator. Everything here is derived
data: it is recomputed on demand and never persisted.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, Field

from finance_tracker.models.ledger import Transaction


class ReportingPeriod(str, Enum):
    """Reporting periods offered on the statistics screen."""
    DAY = "Day"
    WEEK = "Week"
    MONTH = "Month"
    YEAR = "Year"


class StatisticsReport(BaseModel):
    """
    Everything the statistics screen renders for one period.

    ``bucket_totals`` are raw expense sums; ``normalized`` rescales them to
    0-100 for bar heights. ``active_index`` marks the bucket containing
    "now", not the largest bucket.
    """

    period: ReportingPeriod
    range_start: datetime
    range_end: datetime
    generated_at: datetime

    labels: list[str]
    bucket_totals: list[Decimal]
    normalized: list[float]
    active_index: int = Field(ge=0)

    total_expense: Decimal = Field(ge=0)
    top_spending: list[Transaction] = Field(default_factory=list)
    transaction_count: int = Field(ge=0)

    @property
    def has_expenses(self) -> bool:
        return self.total_expense > 0


class TransactionSection(BaseModel):
    """A day header ("Today", "Yesterday", "October 24") and its rows."""

    title: str
    transactions: list[Transaction] = Field(default_factory=list)
