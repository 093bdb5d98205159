"""Statistics package: chart buckets, day grouping and report building."""

from finance_tracker.statistics.aggregator import StatisticsAggregator
from finance_tracker.statistics.buckets import (
    PERIOD_LABELS,
    active_bucket_index,
    bucket_count,
    bucket_expenses,
    bucket_index,
    normalize,
    reporting_range,
    top_spending,
    total_expense,
)
from finance_tracker.statistics.grouping import group_by_day, section_title

__all__ = [
    "PERIOD_LABELS",
    "StatisticsAggregator",
    "active_bucket_index",
    "bucket_count",
    "bucket_expenses",
    "bucket_index",
    "group_by_day",
    "normalize",
    "reporting_range",
    "section_title",
    "top_spending",
    "total_expense",
]
