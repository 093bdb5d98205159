"""
Statistics Aggregator

Read-side transform from a transaction set to the statistics screen:
bucketed expense series, normalized bar heights, the bucket for "now",
total expense and the top expenses.

Nothing is cached. A report is recomputed whenever the period or the
underlying transactions change.
"""

from datetime import datetime, timezone
from typing import Callable, Optional

import structlog

from finance_tracker.audit import AuditLogger
from finance_tracker.config import AppSettings, get_settings
from finance_tracker.ledger import LedgerEngine
from finance_tracker.models.ledger import Transaction
from finance_tracker.models.money import from_minor_units
from finance_tracker.models.statistics import ReportingPeriod, StatisticsReport
from finance_tracker.statistics.buckets import (
    PERIOD_LABELS,
    active_bucket_index,
    bucket_expenses,
    normalize,
    reporting_range,
    top_spending,
    total_expense,
)

logger = structlog.get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class StatisticsAggregator:
    """
    Builds statistics reports for a user.

    Usage:
        aggregator = StatisticsAggregator(ledger)
        report = await aggregator.build_report(user_id, ReportingPeriod.WEEK)
    """

    def __init__(
        self,
        ledger: LedgerEngine,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self._ledger = ledger
        self._audit_logger = audit_logger
        self._settings = settings or get_settings().app
        self._clock = clock

    def summarize(
        self,
        transactions: list[Transaction],
        period: ReportingPeriod,
        now: datetime,
        range_start: datetime,
        range_end: datetime,
    ) -> StatisticsReport:
        """Aggregate an already fetched transaction set. No I/O."""
        tz = self._settings.tzinfo
        buckets = bucket_expenses(transactions, period, tz)

        return StatisticsReport(
            period=period,
            range_start=range_start,
            range_end=range_end,
            generated_at=now,
            labels=list(PERIOD_LABELS[period]),
            bucket_totals=[from_minor_units(value) for value in buckets],
            normalized=normalize(buckets),
            active_index=active_bucket_index(now, period, tz),
            total_expense=from_minor_units(total_expense(transactions)),
            top_spending=top_spending(transactions, self._settings.top_spending_limit),
            transaction_count=len(transactions),
        )

    async def build_report(
        self,
        user_id: str,
        period: ReportingPeriod,
    ) -> StatisticsReport:
        """
        Fetch the period's transactions and aggregate them.

        Store errors propagate; a failed fetch never yields an empty
        report.
        """
        now = self._clock()
        start, end = reporting_range(period, now, self._settings.tzinfo)
        transactions = await self._ledger.fetch_transactions_in_range(
            user_id, start, end
        )
        report = self.summarize(transactions, period, now, start, end)

        logger.debug(
            "statistics_computed",
            user_id=user_id,
            period=period.value,
            transaction_count=report.transaction_count,
        )
        if self._audit_logger:
            await self._audit_logger.log_statistics_computed(
                user_id, period.value, report.transaction_count
            )
        return report
