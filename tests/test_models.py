"""
Tests for Finance Tracker models

Test strategy:
1. Unit tests for the pydantic models and money helpers
2. Document conversion checked against the stored camelCase shape
3. No store or network access
"""

import pytest
from datetime import datetime, timezone
from decimal import Decimal

from finance_tracker.models import (
    AggregateTotals,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
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
    WalletInput,
    format_currency,
    from_minor_units,
    parse_icon,
    to_minor_units,
)


class TestMoney:
    """Tests for minor-unit conversion and formatting."""

    def test_to_minor_units(self):
        """Test major amounts become integer cents."""
        assert to_minor_units(Decimal("12.34")) == 1234
        assert to_minor_units(Decimal("100")) == 10000
        assert to_minor_units(Decimal("0.01")) == 1

    def test_from_minor_units(self):
        """Test cents come back as two-place Decimals."""
        assert from_minor_units(1234) == Decimal("12.34")
        assert str(from_minor_units(5000)) == "50.00"
        assert from_minor_units(-3000) == Decimal("-30.00")

    def test_repeated_small_amounts_stay_exact(self):
        """Test that summing minor units has no drift."""
        total = sum(to_minor_units(Decimal("0.10")) for _ in range(1000))
        assert from_minor_units(total) == Decimal("100.00")

    def test_format_currency(self):
        """Test display formatting with symbol and grouping."""
        assert format_currency(Decimal("1234.5")) == "₱1,234.50"
        assert format_currency(Decimal("-30")) == "-₱30.00"
        assert format_currency(Decimal("7"), symbol="$") == "$7.00"


class TestAggregateTotals:
    """Tests for the aggregate totals value object."""

    def test_income_raises_balance_and_income(self):
        """Test applying an income."""
        totals = AggregateTotals().apply(TransactionType.INCOME, 10000)
        assert (totals.balance, totals.income, totals.expenses) == (10000, 10000, 0)

    def test_expense_lowers_balance_and_raises_expenses(self):
        """Test applying an expense."""
        totals = AggregateTotals(balance=10000, income=10000).apply(
            TransactionType.EXPENSE, 3000
        )
        assert (totals.balance, totals.income, totals.expenses) == (7000, 10000, 3000)

    def test_missing_document_fields_read_as_zero(self):
        """Test reading totals from a sparse user document."""
        totals = AggregateTotals.from_document({"email": "a@b.c"})
        assert totals == AggregateTotals()

    def test_to_fields_uses_document_keys(self):
        """Test the field names written to the user document."""
        fields = AggregateTotals(balance=5, income=10, expenses=5).to_fields()
        assert fields == {"totalBalance": 5, "totalIncome": 10, "totalExpenses": 5}

    def test_totals_are_frozen(self):
        """Test that totals cannot be assigned directly."""
        totals = AggregateTotals()
        with pytest.raises(ValueError):
            totals.balance = 100


class TestWalletIcons:
    """Tests for the tagged wallet icon."""

    def test_parse_symbolic_with_color(self):
        """Test the name:color form."""
        icon = parse_icon("credit-card:#FF5733")
        assert isinstance(icon, SymbolicIcon)
        assert icon.name == "credit-card"
        assert icon.color == "#FF5733"

    def test_parse_bare_name_gets_default_color(self):
        """Test a name with no color."""
        icon = parse_icon("bank")
        assert isinstance(icon, SymbolicIcon)
        assert icon.name == "bank"
        assert icon.color

    def test_parse_data_uri_is_embedded(self):
        """Test that image data is not split on its colon."""
        icon = parse_icon("data:image/png;base64,iVBORw0KGgo=")
        assert isinstance(icon, EmbeddedIcon)
        assert icon.image_ref.startswith("data:image/png")

    def test_parse_url_is_embedded(self):
        """Test image URLs."""
        assert isinstance(parse_icon("https://cdn.example.com/w.png"), EmbeddedIcon)

    def test_parse_empty_is_none(self):
        """Test wallets without an icon."""
        assert parse_icon(None) is None
        assert parse_icon("") is None

    def test_serialize_matches_stored_form(self):
        """Test icons serialize back to the stored string."""
        assert SymbolicIcon(name="cash", color="#000").serialize() == "cash:#000"
        assert EmbeddedIcon(image_ref="data:x").serialize() == "data:x"

    def test_wallet_document_round_trip(self):
        """Test a wallet survives conversion to and from its document."""
        wallet = Wallet(
            id="wallet_1",
            name="  Savings  ",
            icon=SymbolicIcon(name="piggy-bank", color="#123456"),
            balance=Decimal("250.75"),
        )
        document = wallet.to_document()
        assert document["name"] == "Savings"
        assert document["balance"] == 25075
        assert document["icon"] == "piggy-bank:#123456"
        assert Wallet.from_document(document) == wallet

    def test_wallet_balance_bounds(self):
        """Test declared balances may be negative but not unbounded."""
        assert WalletInput(name="Card", balance=Decimal("-999999999999.99")).balance < 0
        for raw in ("1E+27", "-1E+27"):
            with pytest.raises(ValueError):
                WalletInput(name="Card", balance=Decimal(raw))


class TestTransactionModels:
    """Tests for transaction input and stored transaction."""

    def test_rejects_zero_amount(self):
        """Test that amounts must be positive."""
        with pytest.raises(ValueError):
            TransactionInput(
                amount=Decimal("0"),
                category="Food",
                date=datetime(2026, 10, 1, tzinfo=timezone.utc),
                type=TransactionType.EXPENSE,
            )

    def test_rejects_non_finite_amount(self):
        """Test that NaN and infinity are rejected."""
        for raw in ("NaN", "Infinity"):
            with pytest.raises(ValueError):
                TransactionInput(
                    amount=Decimal(raw),
                    category="Food",
                    date=datetime(2026, 10, 1, tzinfo=timezone.utc),
                    type=TransactionType.EXPENSE,
                )

    def test_rejects_sub_cent_amount(self):
        """Test that amounts carry at most two decimal places."""
        with pytest.raises(ValueError):
            TransactionInput(
                amount=Decimal("1.005"),
                category="Food",
                date=datetime(2026, 10, 1, tzinfo=timezone.utc),
                type=TransactionType.EXPENSE,
            )

    def test_rejects_amount_too_large_to_store(self):
        """Test the upper bound keeps minor-unit conversion exact."""
        with pytest.raises(ValueError):
            TransactionInput(
                amount=Decimal("1E+27"),
                category="Food",
                date=datetime(2026, 10, 1, tzinfo=timezone.utc),
                type=TransactionType.EXPENSE,
            )
        largest = TransactionInput(
            amount=Decimal("999999999999.99"),
            category="Food",
            date=datetime(2026, 10, 1, tzinfo=timezone.utc),
            type=TransactionType.EXPENSE,
        )
        assert largest.amount_minor == 99999999999999

    def test_rejects_unknown_type(self):
        """Test that type is one of income or expense."""
        with pytest.raises(ValueError):
            TransactionInput(
                amount=Decimal("5"),
                category="Food",
                date=datetime(2026, 10, 1, tzinfo=timezone.utc),
                type="transfer",
            )

    def test_naive_date_is_utc(self):
        """Test naive dates are treated as UTC."""
        tx = TransactionInput(
            amount=Decimal("5"),
            category="Food",
            date=datetime(2026, 10, 1, 9, 30),
            type=TransactionType.INCOME,
        )
        assert tx.date.tzinfo == timezone.utc

    def test_document_shape(self):
        """Test the stored transaction document."""
        tx = Transaction(
            id="t1",
            amount=Decimal("30.00"),
            category="Transport",
            note="Taxi",
            date=datetime(2026, 10, 20, 8, 0, tzinfo=timezone.utc),
            type=TransactionType.EXPENSE,
            wallet_id="wallet_1",
        )
        document = tx.to_document()
        assert document["amount"] == 3000
        assert document["type"] == "expense"
        assert document["walletId"] == "wallet_1"
        assert "receiptImage" not in document

        restored = Transaction.from_document("t1", document)
        assert restored.amount == Decimal("30.00")
        assert restored.wallet_id == "wallet_1"


class TestUserAccount:
    """Tests for the user document model."""

    def test_from_document(self):
        """Test reading a user with totals in minor units."""
        user = UserAccount.from_document("u1", {
            "email": "juan@example.com",
            "totalBalance": 5000,
            "totalIncome": 10000,
            "totalExpenses": 5000,
            "wallets": [{"id": "w1", "name": "Cash", "balance": 100}],
            "photoURL": "https://example.com/p.png",
        })
        assert user.total_balance == Decimal("50.00")
        assert user.wallets[0].name == "Cash"
        assert user.photo_url == "https://example.com/p.png"

    def test_inconsistent_totals_rejected(self):
        """Test the balance invariant on the model."""
        with pytest.raises(ValueError):
            UserAccount(
                user_id="u1",
                email="x@example.com",
                total_balance=Decimal("10"),
                total_income=Decimal("10"),
                total_expenses=Decimal("5"),
            )

    def test_profile_update_only_writes_given_fields(self):
        """Test profile updates never include aggregate fields."""
        fields = ProfileUpdate(name="Juan", photo_url="https://x/y.png").to_fields()
        assert fields == {"name": "Juan", "photoURL": "https://x/y.png"}


class TestBillModel:
    """Tests for the bill model."""

    def test_document_shape(self):
        """Test the stored bill document."""
        bill = Bill(
            id="b1",
            name="Electricity",
            amount=Decimal("1500"),
            due_date=datetime(2026, 10, 25, tzinfo=timezone.utc),
            category="Utilities",
        )
        document = bill.to_document()
        assert document["amount"] == 150000
        assert document["frequency"] == "Monthly"
        assert document["isPaid"] is False
        assert Bill.from_document("b1", document).frequency == BillFrequency.MONTHLY

    def test_rejects_amount_too_large_to_store(self):
        """Test the bill amount upper bound."""
        with pytest.raises(ValueError):
            BillInput(
                name="Mortgage",
                amount=Decimal("1E+27"),
                due_date=datetime(2026, 10, 25, tzinfo=timezone.utc),
            )


class TestAuditModels:
    """Tests for audit event models."""

    def test_transaction_recorded_event(self):
        """Test the event built for a committed transaction."""
        event = AuditEventBuilder.transaction_recorded(
            user_id="u1",
            transaction_id="t1",
            kind="expense",
            amount="₱30.00",
        )
        assert event.event_type == AuditEventType.TRANSACTION_RECORDED
        assert event.severity == AuditSeverity.INFO
        assert event.entity_id == "t1"
        assert event.is_user_action is True

    def test_wallet_deleted_is_warning(self):
        """Test that wallet deletion is flagged."""
        event = AuditEventBuilder.wallet_deleted("u1", "wallet_1")
        assert event.severity == AuditSeverity.WARNING

    def test_validation_failed_event(self):
        """Test rejected input is recorded as a warning with its issues."""
        issues = [{"field": "amount", "issue_type": "less_than_equal", "message": "too large"}]
        event = AuditEventBuilder.validation_failed("transaction", issues, user_id="u1")
        assert event.event_type == AuditEventType.VALIDATION_FAILED
        assert event.severity == AuditSeverity.WARNING
        assert event.to_document()["details"] == {"issues": issues}
        assert event.user_id == "u1"

    def test_to_document_uses_camel_case(self):
        """Test the stored audit document."""
        document = AuditEventBuilder.user_created("u1", "a@b.c").to_document()
        assert document["eventType"] == "user_created"
        assert document["userId"] == "u1"
        assert isinstance(document["eventId"], str)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
