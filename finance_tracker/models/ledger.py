"""
Core Data Models for Finance Tracker

These models define the strict schemas for all records the ledger and the
registries read and write. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Convert to and from the stored document shape in one place

DESIGN DECISION: Models use snake_case attributes; documents use the
camelCase keys the mobile client already reads. Amounts are stored as
integer minor units (see ``finance_tracker.models.money``).
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from finance_tracker.models.money import MAX_AMOUNT, from_minor_units, to_minor_units


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a transaction relative to the user's balance."""
    INCOME = "income"
    EXPENSE = "expense"


class BillFrequency(str, Enum):
    """
    How often a bill recurs.

    Stored for display only. Due dates are computed once at creation and
    never rolled forward.
    """
    WEEKLY = "Weekly"
    MONTHLY = "Monthly"
    YEARLY = "Yearly"


DELETED_WALLET_LABEL = "Deleted wallet"
DEFAULT_ICON_NAME = "wallet"
DEFAULT_ICON_COLOR = "#A3E635"


def _ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes as UTC so stored instants are comparable."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


# =============================================================================
# AGGREGATES
# =============================================================================

class AggregateTotals(BaseModel):
    """
    The derived totals on a user document, in minor units.

    Only ``apply`` produces new totals; there is no way to set a balance
    directly.
    """
    model_config = ConfigDict(frozen=True)

    balance: int = 0
    income: int = 0
    expenses: int = 0

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> "AggregateTotals":
        """Read totals from a user document, treating missing fields as zero."""
        return cls(
            balance=int(data.get("totalBalance") or 0),
            income=int(data.get("totalIncome") or 0),
            expenses=int(data.get("totalExpenses") or 0),
        )

    def apply(self, kind: TransactionType, amount_minor: int) -> "AggregateTotals":
        """Return the totals after one transaction of ``amount_minor``."""
        if kind == TransactionType.INCOME:
            return AggregateTotals(
                balance=self.balance + amount_minor,
                income=self.income + amount_minor,
                expenses=self.expenses,
            )
        return AggregateTotals(
            balance=self.balance - amount_minor,
            income=self.income,
            expenses=self.expenses + amount_minor,
        )

    def to_fields(self) -> dict[str, int]:
        return {
            "totalBalance": self.balance,
            "totalIncome": self.income,
            "totalExpenses": self.expenses,
        }


# =============================================================================
# WALLET ICONS
# =============================================================================

class SymbolicIcon(BaseModel):
    """A named vector icon drawn in a color."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["symbolic"] = "symbolic"
    name: str = Field(..., min_length=1, max_length=50)
    color: str = Field(default=DEFAULT_ICON_COLOR, min_length=1, max_length=30)

    def serialize(self) -> str:
        return f"{self.name}:{self.color}"


class EmbeddedIcon(BaseModel):
    """A user-picked image, referenced by data URI or URL."""
    model_config = ConfigDict(frozen=True)

    kind: Literal["embedded"] = "embedded"
    image_ref: str = Field(..., min_length=1)

    def serialize(self) -> str:
        return self.image_ref


WalletIcon = Annotated[
    Union[SymbolicIcon, EmbeddedIcon],
    Field(discriminator="kind"),
]

_EMBEDDED_PREFIXES = ("data:", "http://", "https://")


def parse_icon(raw: Optional[str]) -> Optional[Union[SymbolicIcon, EmbeddedIcon]]:
    """
    Decode the stored icon string.

    Stored icons are either ``"<name>:<color>"`` or an image reference
    (data URI or URL). A bare name gets the default color.
    """
    if not raw:
        return None
    if raw.startswith(_EMBEDDED_PREFIXES):
        return EmbeddedIcon(image_ref=raw)
    if ":" in raw:
        name, color = raw.split(":", 1)
        return SymbolicIcon(
            name=name or DEFAULT_ICON_NAME,
            color=color or DEFAULT_ICON_COLOR,
        )
    return SymbolicIcon(name=raw)


# =============================================================================
# WALLET
# =============================================================================

class WalletInput(BaseModel):
    """Fields a user supplies when creating or editing a wallet."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=100)
    icon: Optional[WalletIcon] = None
    balance: Decimal = Field(
        default=Decimal("0"),
        ge=-MAX_AMOUNT,
        le=MAX_AMOUNT,
        decimal_places=2,
        allow_inf_nan=False,
    )


class Wallet(BaseModel):
    """
    A wallet embedded in the user document's ``wallets`` list.

    CRITICAL: ``balance`` is whatever the user declared. It is never
    derived from transactions tagged with this wallet.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    icon: Optional[WalletIcon] = None
    balance: Decimal = Field(
        default=Decimal("0"),
        ge=-MAX_AMOUNT,
        le=MAX_AMOUNT,
        decimal_places=2,
        allow_inf_nan=False,
    )
    created_at: Optional[datetime] = None

    def to_document(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "balance": to_minor_units(self.balance),
            "createdAt": self.created_at,
        }
        if self.icon is not None:
            data["icon"] = self.icon.serialize()
        return data

    @classmethod
    def from_document(cls, data: dict[str, Any]) -> "Wallet":
        return cls(
            id=data["id"],
            name=data["name"],
            icon=parse_icon(data.get("icon")),
            balance=from_minor_units(data.get("balance") or 0),
            created_at=data.get("createdAt"),
        )


# =============================================================================
# TRANSACTION
# =============================================================================

class TransactionInput(BaseModel):
    """
    A transaction as submitted by the user, before it is recorded.

    ``date`` is user-assignable and may differ from the creation time.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Decimal = Field(
        ...,
        gt=0,
        le=MAX_AMOUNT,
        decimal_places=2,
        allow_inf_nan=False,
        description="Positive amount in major units"
    )
    category: str = Field(..., min_length=1, max_length=100)
    note: str = Field(default="", max_length=1000)
    date: datetime
    type: TransactionType
    wallet_id: Optional[str] = None
    receipt_image: Optional[str] = Field(
        default=None,
        description="Opaque reference to a receipt image"
    )

    @field_validator('date')
    @classmethod
    def normalize_date(cls, v: datetime) -> datetime:
        return _ensure_aware(v)

    @property
    def amount_minor(self) -> int:
        return to_minor_units(self.amount)


class Transaction(TransactionInput):
    """
    A recorded transaction.

    Immutable once written: there is no update or delete path, which is
    what keeps the aggregate totals derivable from history.
    """
    id: str
    created_at: Optional[datetime] = Field(
        default=None,
        description="Assigned by the store when the insert commits"
    )

    def to_document(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "amount": self.amount_minor,
            "category": self.category,
            "note": self.note,
            "date": self.date,
            "type": self.type.value,
        }
        if self.wallet_id is not None:
            data["walletId"] = self.wallet_id
        if self.receipt_image is not None:
            data["receiptImage"] = self.receipt_image
        return data

    @classmethod
    def from_document(cls, document_id: str, data: dict[str, Any]) -> "Transaction":
        return cls(
            id=document_id,
            amount=from_minor_units(data["amount"]),
            category=data["category"],
            note=data.get("note") or "",
            date=data["date"],
            type=TransactionType(data["type"]),
            wallet_id=data.get("walletId"),
            receipt_image=data.get("receiptImage"),
            created_at=data.get("createdAt"),
        )


# =============================================================================
# USER
# =============================================================================

class UserAccount(BaseModel):
    """The user document: identity, aggregate totals and embedded wallets."""

    user_id: str
    email: str
    created_at: Optional[datetime] = None
    total_balance: Decimal = Decimal("0.00")
    total_income: Decimal = Decimal("0.00")
    total_expenses: Decimal = Decimal("0.00")
    wallets: list[Wallet] = Field(default_factory=list)

    # Profile
    name: Optional[str] = None
    phone: Optional[str] = None
    photo_url: Optional[str] = None
    updated_at: Optional[datetime] = None

    @model_validator(mode='after')
    def validate_totals(self) -> 'UserAccount':
        """The balance must equal income minus expenses."""
        if self.total_balance != self.total_income - self.total_expenses:
            raise ValueError(
                "Inconsistent aggregates: balance must equal income - expenses"
            )
        return self

    @classmethod
    def from_document(cls, user_id: str, data: dict[str, Any]) -> "UserAccount":
        totals = AggregateTotals.from_document(data)
        return cls(
            user_id=user_id,
            email=data.get("email", ""),
            created_at=data.get("createdAt"),
            total_balance=from_minor_units(totals.balance),
            total_income=from_minor_units(totals.income),
            total_expenses=from_minor_units(totals.expenses),
            wallets=[Wallet.from_document(w) for w in data.get("wallets") or []],
            name=data.get("name"),
            phone=data.get("phone"),
            photo_url=data.get("photoURL"),
            updated_at=data.get("updatedAt"),
        )


class ProfileUpdate(BaseModel):
    """
    Profile fields a user may edit.

    Deliberately has no aggregate fields, so a profile write can never
    overwrite the totals.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=30)
    photo_url: Optional[str] = None

    def to_fields(self) -> dict[str, Any]:
        fields: dict[str, Any] = {}
        if self.name is not None:
            fields["name"] = self.name
        if self.phone is not None:
            fields["phone"] = self.phone
        if self.photo_url is not None:
            fields["photoURL"] = self.photo_url
        return fields


# =============================================================================
# BILL
# =============================================================================

class BillInput(BaseModel):
    """A bill as entered by the user."""
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=200)
    amount: Decimal = Field(
        ...,
        gt=0,
        le=MAX_AMOUNT,
        decimal_places=2,
        allow_inf_nan=False,
    )
    due_date: datetime
    frequency: BillFrequency = BillFrequency.MONTHLY
    category: Optional[str] = Field(default=None, max_length=100)

    @field_validator('due_date')
    @classmethod
    def normalize_due_date(cls, v: datetime) -> datetime:
        return _ensure_aware(v)


class Bill(BillInput):
    """
    A stored bill.

    ``is_paid`` is written as False and never toggled.
    """
    id: str
    is_paid: bool = False
    created_at: Optional[datetime] = None

    def to_document(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "amount": to_minor_units(self.amount),
            "dueDate": self.due_date,
            "frequency": self.frequency.value,
            "isPaid": self.is_paid,
        }
        if self.category is not None:
            data["category"] = self.category
        return data

    @classmethod
    def from_document(cls, document_id: str, data: dict[str, Any]) -> "Bill":
        return cls(
            id=document_id,
            name=data["name"],
            amount=from_minor_units(data["amount"]),
            due_date=data["dueDate"],
            frequency=BillFrequency(data["frequency"]),
            is_paid=bool(data.get("isPaid", False)),
            category=data.get("category"),
            created_at=data.get("createdAt"),
        )
