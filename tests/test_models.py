"""
Tests for SmartFinance

Test strategy:
1. Unit tests for individual components (models, decoding, dashboard)
2. Integration tests for the ledger and session (with in-memory/fake services)
3. No real API calls in tests (use fakes)
"""

import pytest
from datetime import date, datetime

from pydantic import ValidationError

from smartfinance.audit import AuditLogger
from smartfinance.models.advisory import MarketSnapshot
from smartfinance.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from smartfinance.models.ledger import (
    ACCOUNT_COLORS,
    DEFAULT_CATEGORIES,
    UNKNOWN_ACCOUNT_NAME,
    Account,
    Identity,
    IdentityMode,
    LedgerMode,
    LedgerSnapshot,
    Transaction,
    TransactionType,
)


class TestLedgerModels:
    """Tests for ledger Pydantic models."""

    def test_account_creation(self):
        """Test Account model creation with a generated id."""
        account = Account(name="Main Cash", balance=50000)
        assert account.name == "Main Cash"
        assert account.balance == 50000
        assert account.color == ACCOUNT_COLORS[0]
        assert account.id

    def test_account_ids_are_unique(self):
        """Test that each new account gets its own identifier."""
        first = Account(name="A", balance=0)
        second = Account(name="B", balance=0)
        assert first.id != second.id

    def test_account_strips_whitespace(self):
        """Test that whitespace is stripped from the account name."""
        account = Account(name="  Savings  ", balance=0)
        assert account.name == "Savings"

    def test_account_rejects_empty_name(self):
        """Test that an empty name is rejected."""
        with pytest.raises(ValidationError):
            Account(name="   ", balance=0)

    def test_account_allows_negative_balance(self):
        """Test that balances are signed."""
        account = Account(name="Credit Card", balance=-1200)
        assert account.balance == -1200

    def test_account_is_frozen(self):
        """Test that accounts cannot be mutated in place."""
        account = Account(name="Main Cash", balance=100)
        with pytest.raises(ValidationError):
            account.balance = 200

    def test_transaction_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValidationError):
            Transaction(
                account_id="1",
                amount=-50,
                type=TransactionType.EXPENSE,
                date=date(2024, 10, 1),
            )

    def test_transaction_signed_amount(self):
        """Test that the type carries the sign."""
        income = Transaction(account_id="1", amount=100, type="INCOME", date=date(2024, 10, 1))
        expense = Transaction(account_id="1", amount=100, type="EXPENSE", date=date(2024, 10, 1))
        assert income.signed_amount == 100
        assert expense.signed_amount == -100

    def test_account_apply(self):
        """Test the 50000 - 120 + 45000 walk-through."""
        account = Account(name="Main Cash", balance=50000)
        coffee = Transaction(account_id=account.id, amount=120, type="EXPENSE", date=date(2024, 10, 1))
        salary = Transaction(account_id=account.id, amount=45000, type="INCOME", date=date(2024, 10, 2))

        after_coffee = account.apply(coffee)
        assert after_coffee.balance == 49880
        assert after_coffee.apply(salary).balance == 94880
        assert account.balance == 50000

    def test_transaction_accepts_iso_timestamp(self):
        """Test that stored timestamps are reduced to their day."""
        tx = Transaction.model_validate({
            "accountId": "1",
            "amount": 10,
            "type": "EXPENSE",
            "date": "2024-10-05T08:30:00.000Z",
        })
        assert tx.date == date(2024, 10, 5)

    def test_transaction_accepts_datetime(self):
        """Test that datetime values are reduced to their day."""
        tx = Transaction(account_id="1", amount=10, type="EXPENSE", date=datetime(2024, 10, 5, 8, 30))
        assert tx.date == date(2024, 10, 5)

    def test_transaction_to_record_uses_stored_names(self):
        """Test serialization to the persisted field names."""
        tx = Transaction(
            id="t9",
            account_id="acc",
            amount=12.5,
            type=TransactionType.EXPENSE,
            category="Food",
            note="Lunch",
            date=date(2024, 10, 5),
        )
        record = tx.to_record()
        assert record["accountId"] == "acc"
        assert record["type"] == "EXPENSE"
        assert record["date"] == "2024-10-05"
        assert "account_id" not in record

    def test_transaction_null_note(self):
        """Test that a stored null note becomes an empty string."""
        tx = Transaction.model_validate({
            "accountId": "1",
            "amount": 10,
            "type": "INCOME",
            "note": None,
            "date": "2024-10-05",
        })
        assert tx.note == ""
        assert tx.category == "Other"


class TestIdentity:
    """Tests for Identity."""

    def test_guest_identity(self):
        """Test the synthetic guest identity."""
        guest = Identity.guest()
        assert guest.is_guest
        assert guest.mode == IdentityMode.GUEST
        assert guest.display_name == "Guest"

    def test_authenticated_display_name(self):
        """Test that the display name comes from the email."""
        identity = Identity(uid="u1", email="alex@example.com")
        assert not identity.is_guest
        assert identity.display_name == "alex"


class TestLedgerSnapshot:
    """Tests for the read-only ledger view."""

    def test_empty_snapshot_is_inactive(self):
        """Test the default snapshot."""
        snapshot = LedgerSnapshot()
        assert snapshot.mode == LedgerMode.INACTIVE
        assert snapshot.total_balance == 0

    def test_lookups(self):
        """Test account lookups, including dangling references."""
        account = Account(id="a", name="Main Cash", balance=100)
        tx = Transaction(account_id="a", amount=5, type="EXPENSE", date=date(2024, 10, 1))
        orphan = Transaction(account_id="gone", amount=5, type="EXPENSE", date=date(2024, 10, 1))
        snapshot = LedgerSnapshot(
            mode=LedgerMode.LOCAL,
            accounts=(account, Account(name="Bank", balance=50)),
            transactions=(tx, orphan),
        )

        assert snapshot.total_balance == 150
        assert snapshot.account_name("a") == "Main Cash"
        assert snapshot.account_name("gone") == UNKNOWN_ACCOUNT_NAME
        assert snapshot.transactions_for("a") == [tx]


class TestMarketSnapshot:
    """Tests for the market snapshot schema."""

    def test_accepts_camel_case(self):
        """Test parsing the keys the model is asked to produce."""
        snapshot = MarketSnapshot.model_validate({
            "topTraded": [{"name": "TSMC", "volume": 1000, "change": "+1%"}],
            "hotSectors": ["Semiconductors"],
            "summary": "Quiet day.",
        })
        assert snapshot.top_traded[0].volume == "1000"
        assert snapshot.hot_sectors == ["Semiconductors"]
        assert snapshot.sources == []

    def test_missing_field_rejected(self):
        """Test that a missing required field is an error."""
        with pytest.raises(ValidationError):
            MarketSnapshot.model_validate({"topTraded": [], "summary": "x"})


class TestAuditModels:
    """Tests for audit models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.ACCOUNT_CREATED,
            description="Account created",
        )
        assert event.event_type == AuditEventType.ACCOUNT_CREATED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        """Test conversion to a structured log dict."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_RECORDED,
            owner_id="u1",
            entity_type="transaction",
            entity_id="t1",
            description="Transaction recorded",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "transaction_recorded"
        assert log_dict["owner_id"] == "u1"
        assert log_dict["entity_id"] == "t1"

    def test_audit_event_builder_signed_in(self):
        """Test AuditEventBuilder.signed_in for a new account."""
        event = AuditEventBuilder.signed_in("u1", "alex@example.com", created=True)
        assert event.event_type == AuditEventType.SIGNED_UP
        assert event.is_user_action
        assert event.details["email"] == "alex@example.com"

    def test_audit_event_builder_auth_failed(self):
        """Test AuditEventBuilder.auth_failed."""
        event = AuditEventBuilder.auth_failed("sign_in", "Incorrect email or password.")
        assert event.event_type == AuditEventType.AUTH_FAILED
        assert event.severity == AuditSeverity.WARNING
        assert event.error_message == "Incorrect email or password."

    def test_audit_logger_history_is_bounded(self):
        """Test that the logger keeps only the newest events, newest first."""
        audit_logger = AuditLogger(history_size=3)
        for i in range(5):
            audit_logger.log_signed_out(f"u{i}")

        events = audit_logger.recent_events()
        assert len(events) == 3
        assert [e.owner_id for e in events] == ["u4", "u3", "u2"]


class TestCategories:
    """Tests for the default category list."""

    def test_default_categories(self):
        """Test that the expected categories exist and 'Other' is last."""
        assert "Food" in DEFAULT_CATEGORIES
        assert "Salary" in DEFAULT_CATEGORIES
        assert DEFAULT_CATEGORIES[-1] == "Other"
        assert len(set(DEFAULT_CATEGORIES)) == len(DEFAULT_CATEGORIES)
