"""
Input Validation

DESIGN DECISION: Raw form input is checked before any store call.
A ValidationError carries every issue found, not just the first, so the
caller can show them all at once.

Checks happen in two stages, as for any user-entered money data:

STAGE 1 - FORMAT:
- Required fields present
- Amounts parse as numbers (a comma is accepted as decimal separator)
- Day of month is a whole number

STAGE 2 - RANGE:
- Amounts positive, finite, at most two decimal places
- Amounts below the configured sanity ceiling
- Day of month between 1 and 31

IMPORTANT: Validation never silently fixes a malformed amount.
The one tolerated default is a blank or unreadable wallet balance, which
is read as zero.
"""

from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from pydantic import ValidationError as PydanticValidationError

from finance_tracker.config import AppSettings, get_settings
from finance_tracker.models.ledger import (
    BillFrequency,
    BillInput,
    TransactionInput,
    TransactionType,
    WalletIcon,
    WalletInput,
)
from finance_tracker.models.money import MAX_AMOUNT
from finance_tracker.models.validation import ValidationIssue
from finance_tracker.registry.bills import compute_due_date

RawAmount = Union[str, int, float, Decimal, None]
_CENT = Decimal("0.01")


class ValidationError(Exception):
    """User input was rejected; ``issues`` lists every problem found."""

    def __init__(self, issues: list[ValidationIssue]):
        self.issues = issues
        messages = [issue.message for issue in issues if issue.severity == "error"]
        super().__init__("; ".join(messages) or "Invalid input")

    @classmethod
    def from_pydantic(cls, error: PydanticValidationError) -> "ValidationError":
        """Wrap a model construction error."""
        return cls(_issues_from_pydantic(error))

    def to_dicts(self) -> list[dict]:
        return [issue.model_dump() for issue in self.issues]


def _issue(
    field: str,
    issue_type: str,
    message: str,
    suggested_fix: Optional[str] = None,
) -> ValidationIssue:
    return ValidationIssue(
        field=field,
        issue_type=issue_type,
        message=message,
        severity="error",
        suggested_fix=suggested_fix,
    )


def _issues_from_pydantic(error: PydanticValidationError) -> list[ValidationIssue]:
    return [
        _issue(
            field=".".join(str(part) for part in detail["loc"]) or "input",
            issue_type=detail["type"],
            message=detail["msg"],
        )
        for detail in error.errors()
    ]


class InputValidator:
    """
    Turns raw form values into validated input models.

    Every ``validate_*`` method either returns a model that the ledger or a
    registry can use directly, or raises ValidationError.
    """

    def __init__(self, settings: Optional[AppSettings] = None):
        self._settings = settings or get_settings().app

    # -------------------------------------------------------------------------
    # Amounts
    # -------------------------------------------------------------------------

    def _check_amount(
        self,
        raw: RawAmount,
        field: str,
    ) -> tuple[Optional[Decimal], list[ValidationIssue]]:
        if raw is None or (isinstance(raw, str) and not raw.strip()):
            return None, [_issue(
                field, "missing",
                "Please enter an amount.",
            )]

        if isinstance(raw, str):
            text = raw.strip().replace(",", ".")
        else:
            text = str(raw)

        try:
            amount = Decimal(text)
        except InvalidOperation:
            return None, [_issue(
                field, "invalid_format",
                f"'{raw}' is not a number.",
                suggested_fix="Use digits with an optional decimal point, e.g. 120.50",
            )]

        if not amount.is_finite() or amount <= 0:
            return None, [_issue(
                field, "invalid_value",
                "Please enter a valid positive number.",
            )]

        ceiling = min(Decimal(str(self._settings.max_transaction_amount)), MAX_AMOUNT)
        if amount > ceiling:
            return None, [_issue(
                field, "out_of_range",
                f"Amount {amount} is larger than the allowed maximum of {ceiling}.",
                suggested_fix="Please verify this amount is correct",
            )]

        quantized = amount.quantize(_CENT)
        if amount != quantized:
            return None, [_issue(
                field, "invalid_precision",
                f"Amount {amount} has more than two decimal places.",
                suggested_fix="Round the amount to the nearest cent",
            )]
        return quantized, []

    def parse_amount(self, raw: RawAmount, field: str = "amount") -> Decimal:
        """Parse a user-entered positive amount or raise ValidationError."""
        amount, issues = self._check_amount(raw, field)
        if issues:
            raise ValidationError(issues)
        return amount

    @staticmethod
    def parse_balance(raw: RawAmount) -> Decimal:
        """
        Parse a declared wallet balance.

        Blank or unreadable input counts as zero; negative balances
        (e.g. a credit card) are allowed. A balance too large to store
        is rejected.
        """
        if raw is None:
            return Decimal("0")
        text = raw.strip().replace(",", ".") if isinstance(raw, str) else str(raw)
        try:
            balance = Decimal(text)
        except InvalidOperation:
            return Decimal("0")
        if not balance.is_finite():
            return Decimal("0")
        if abs(balance) > MAX_AMOUNT:
            raise ValidationError([_issue(
                "balance", "out_of_range",
                f"Balance {balance} is larger than the allowed maximum of {MAX_AMOUNT}.",
                suggested_fix="Please verify this balance is correct",
            )])
        return balance.quantize(_CENT)

    # -------------------------------------------------------------------------
    # Forms
    # -------------------------------------------------------------------------

    def validate_transaction(
        self,
        amount: RawAmount,
        category: Optional[str],
        kind: Union[TransactionType, str],
        date: datetime,
        note: str = "",
        wallet_id: Optional[str] = None,
        receipt_image: Optional[str] = None,
    ) -> TransactionInput:
        """Validate the add-transaction form."""
        parsed, issues = self._check_amount(amount, "amount")

        if not category or not category.strip():
            issues.append(_issue(
                "category", "missing",
                "Please choose a category.",
            ))

        kind_value = kind.value if isinstance(kind, TransactionType) else kind
        if kind_value not in {t.value for t in TransactionType}:
            issues.append(_issue(
                "type", "invalid_value",
                f"Transaction type must be 'income' or 'expense', not '{kind}'.",
            ))

        if issues:
            raise ValidationError(issues)

        try:
            return TransactionInput(
                amount=parsed,
                category=category,
                note=note or "",
                date=date,
                type=TransactionType(kind_value),
                wallet_id=wallet_id or None,
                receipt_image=receipt_image,
            )
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e)

    def validate_wallet(
        self,
        name: Optional[str],
        icon: Optional[WalletIcon] = None,
        balance: RawAmount = None,
    ) -> WalletInput:
        """Validate the add/edit-wallet form."""
        if not name or not name.strip():
            raise ValidationError([_issue(
                "name", "missing",
                "Please enter a wallet name.",
            )])

        try:
            return WalletInput(
                name=name,
                icon=icon,
                balance=self.parse_balance(balance),
            )
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e)

    @staticmethod
    def parse_day_of_month(raw: Union[str, int, None]) -> int:
        """Parse a bill's due day, which must be 1-31."""
        try:
            day = int(str(raw).strip())
        except (TypeError, ValueError):
            day = None

        if day is None or day < 1 or day > 31:
            raise ValidationError([_issue(
                "day_of_month", "out_of_range",
                "Invalid day of month",
                suggested_fix="Enter a day between 1 and 31",
            )])
        return day

    def validate_bill(
        self,
        name: Optional[str],
        amount: RawAmount,
        day_of_month: Union[str, int, None],
        frequency: Union[BillFrequency, str] = BillFrequency.MONTHLY,
        category: Optional[str] = None,
        today: Optional[date] = None,
    ) -> BillInput:
        """
        Validate the add-bill form and compute the first due date.

        The due date is midnight (configured timezone) of the next
        occurrence of ``day_of_month``; see ``compute_due_date``.
        """
        issues = []
        if not name or not name.strip():
            issues.append(_issue(
                "name", "missing",
                "Please fill in all required fields",
            ))

        parsed, amount_issues = self._check_amount(amount, "amount")
        issues.extend(amount_issues)

        day = None
        try:
            day = self.parse_day_of_month(day_of_month)
        except ValidationError as e:
            issues.extend(e.issues)

        frequency_value = (
            frequency.value if isinstance(frequency, BillFrequency) else frequency
        )
        if frequency_value not in {f.value for f in BillFrequency}:
            issues.append(_issue(
                "frequency", "invalid_value",
                f"Frequency must be Weekly, Monthly or Yearly, not '{frequency}'.",
            ))

        if issues:
            raise ValidationError(issues)

        tz = self._settings.tzinfo
        today = today or datetime.now(tz).date()
        due = compute_due_date(day, today)

        try:
            return BillInput(
                name=name,
                amount=parsed,
                due_date=datetime.combine(due, time.min, tzinfo=tz),
                frequency=BillFrequency(frequency_value),
                category=category or None,
            )
        except PydanticValidationError as e:
            raise ValidationError.from_pydantic(e)


def summarize_issues(error: ValidationError) -> str:
    """
    Generate a user-friendly summary of a rejected form.

    This is the text of the alert shown to the user.
    """
    lines = ["Please fix the following:"]
    for issue in error.issues:
        lines.append(f"   • {issue.message}")
        if issue.suggested_fix:
            lines.append(f"     💡 {issue.suggested_fix}")
    return "\n".join(lines)
