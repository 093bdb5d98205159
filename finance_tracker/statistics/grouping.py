"""Day sections for transaction lists."""

from datetime import date, timedelta, tzinfo
from typing import Iterable, Optional

from finance_tracker.config import get_settings
from finance_tracker.models.ledger import Transaction
from finance_tracker.models.statistics import TransactionSection


def section_title(day: date, today: date) -> str:
    """Header for a day: Today, Yesterday, or e.g. October 24."""
    if day == today:
        return "Today"
    if day == today - timedelta(days=1):
        return "Yesterday"
    title = f"{day:%B} {day.day}"
    if day.year != today.year:
        title = f"{title}, {day.year}"
    return title


def group_by_day(
    transactions: Iterable[Transaction],
    today: date,
    tz: Optional[tzinfo] = None,
) -> list[TransactionSection]:
    """
    Split transactions into one section per local calendar day.

    Sections appear in the order their first transaction appears, and
    transactions keep their input order within a section. Days are read
    in ``tz``, by default the configured app timezone.
    """
    if tz is None:
        tz = get_settings().app.tzinfo
    sections: dict[date, TransactionSection] = {}
    for transaction in transactions:
        day = transaction.date.astimezone(tz).date()
        if day not in sections:
            sections[day] = TransactionSection(title=section_title(day, today))
        sections[day].transactions.append(transaction)
    return list(sections.values())
