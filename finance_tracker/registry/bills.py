"""
Bill Registry

Bills are append-only records under ``users/<uid>/bills``. A bill's due
date is computed once, when it is created; nothing rolls it forward after
the period elapses, and ``isPaid`` is never toggled.
"""

import calendar
from datetime import date
from typing import Optional

from finance_tracker.audit import AuditLogger
from finance_tracker.models.ledger import Bill, BillInput
from finance_tracker.models.money import format_currency
from finance_tracker.services.storage import SERVER_TIMESTAMP, DocumentStore, OrderBy
from finance_tracker.services.storage.paths import bills_path


def _clamped(year: int, month: int, day: int) -> date:
    return date(year, month, min(day, calendar.monthrange(year, month)[1]))


def compute_due_date(day_of_month: int, today: date) -> date:
    """
    First due date for a bill due on ``day_of_month``.

    The day in the current month, or in the next month if it has already
    passed. Days past the end of a month land on its last day
    (31 in April -> April 30).
    """
    due = _clamped(today.year, today.month, day_of_month)
    if due < today:
        if today.month == 12:
            due = _clamped(today.year + 1, 1, day_of_month)
        else:
            due = _clamped(today.year, today.month + 1, day_of_month)
    return due


class BillRegistry:
    """Adds and lists a user's bills."""

    def __init__(
        self,
        store: DocumentStore,
        audit_logger: Optional[AuditLogger] = None,
        currency_symbol: str = "₱",
    ):
        self._store = store
        self._audit_logger = audit_logger
        self._currency_symbol = currency_symbol

    async def add_bill(self, user_id: str, bill_input: BillInput) -> Bill:
        """Append a bill. Returns the stored bill with its new id."""
        bill = Bill(id="pending", **bill_input.model_dump())
        data = bill.to_document()
        data["createdAt"] = SERVER_TIMESTAMP

        bill_id = await self._store.add(bills_path(user_id), data)
        bill = bill.model_copy(update={"id": bill_id})

        if self._audit_logger:
            await self._audit_logger.log_bill_added(
                user_id=user_id,
                bill_id=bill_id,
                name=bill.name,
                amount=format_currency(bill.amount, self._currency_symbol),
            )
        return bill

    async def list_upcoming_bills(self, user_id: str) -> list[Bill]:
        """All bills, closest due date first."""
        documents = await self._store.query(
            bills_path(user_id),
            order_by=OrderBy("dueDate"),
        )
        return [Bill.from_document(doc.id, doc.data) for doc in documents]
