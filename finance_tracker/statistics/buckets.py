"""
Bucketing for the statistics chart.

Each reporting period has a fixed number of buckets:

    Day    6   four-hour blocks, hour // 4
    Week   7   weekday, Monday = 0
    Month  5   (day - 1) // 7, days 29-31 share the last bucket
    Year  12   calendar month, January = 0

All functions here are pure; instants are converted to the given timezone
before the bucket key is taken. Amounts are summed in minor units.
"""

from datetime import date, datetime, time, timedelta, tzinfo
from typing import Iterable

from finance_tracker.models.ledger import Transaction, TransactionType
from finance_tracker.models.statistics import ReportingPeriod

PERIOD_LABELS: dict[ReportingPeriod, list[str]] = {
    ReportingPeriod.DAY: ["4h", "8h", "12h", "16h", "20h", "24h"],
    ReportingPeriod.WEEK: ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"],
    ReportingPeriod.MONTH: ["W1", "W2", "W3", "W4", "W5"],
    ReportingPeriod.YEAR: ["J", "F", "M", "A", "M", "J", "J", "A", "S", "O", "N", "D"],
}


def bucket_count(period: ReportingPeriod) -> int:
    return len(PERIOD_LABELS[period])


def bucket_index(moment: datetime, period: ReportingPeriod, tz: tzinfo) -> int:
    """Bucket that ``moment`` falls into, in local time of ``tz``."""
    local = moment.astimezone(tz)
    if period == ReportingPeriod.DAY:
        return local.hour // 4
    if period == ReportingPeriod.WEEK:
        return local.weekday()
    if period == ReportingPeriod.MONTH:
        return min((local.day - 1) // 7, 4)
    return local.month - 1


def _expenses(transactions: Iterable[Transaction]) -> list[Transaction]:
    return [t for t in transactions if t.type == TransactionType.EXPENSE]


def bucket_expenses(
    transactions: Iterable[Transaction],
    period: ReportingPeriod,
    tz: tzinfo,
) -> list[int]:
    """Sum expense amounts per bucket. Income is ignored."""
    buckets = [0] * bucket_count(period)
    for transaction in _expenses(transactions):
        buckets[bucket_index(transaction.date, period, tz)] += transaction.amount_minor
    return buckets


def normalize(values: list[int]) -> list[float]:
    """
    Rescale to 0-100 against the largest value.

    The denominator is floored at 1, so an all-zero series stays all
    zero.
    """
    peak = max(values + [1])
    return [value / peak * 100 for value in values]


def active_bucket_index(now: datetime, period: ReportingPeriod, tz: tzinfo) -> int:
    """The bucket containing the current instant, highlighted on the chart."""
    return bucket_index(now, period, tz)


def total_expense(transactions: Iterable[Transaction]) -> int:
    """Raw sum of expense amounts, in minor units."""
    return sum(t.amount_minor for t in _expenses(transactions))


def top_spending(transactions: Iterable[Transaction], limit: int = 5) -> list[Transaction]:
    """Largest expenses first. Equal amounts keep their input order."""
    ranked = sorted(_expenses(transactions), key=lambda t: t.amount, reverse=True)
    return ranked[:limit]


def reporting_range(
    period: ReportingPeriod,
    now: datetime,
    tz: tzinfo,
) -> tuple[datetime, datetime]:
    """
    Fetch window for a period, ending at the last instant of today.

    Day starts at midnight today, Week on this week's Monday, Month on the
    1st and Year on January 1st.
    """
    today = now.astimezone(tz).date()
    if period == ReportingPeriod.DAY:
        first = today
    elif period == ReportingPeriod.WEEK:
        first = today - timedelta(days=today.weekday())
    elif period == ReportingPeriod.MONTH:
        first = today.replace(day=1)
    else:
        first = date(today.year, 1, 1)

    start = datetime.combine(first, time.min, tzinfo=tz)
    end = datetime.combine(today, time.max, tzinfo=tz)
    return start, end
