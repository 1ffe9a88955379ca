"""Tests for dashboard aggregation."""

from datetime import date

from smartfinance.models.ledger import (
    Account,
    LedgerMode,
    LedgerSnapshot,
    Transaction,
    TransactionType,
)
from smartfinance.queries import build_dashboard, expense_breakdown, savings_rate


TODAY = date(2024, 10, 15)


def _tx(amount, tx_type, category, day, month=10):
    return Transaction(
        account_id="1",
        amount=amount,
        type=tx_type,
        category=category,
        date=date(2024, month, day),
    )


def _snapshot():
    accounts = tuple(Account(id=str(i), name=f"Account {i}", balance=100 * i) for i in range(1, 6))
    transactions = (
        _tx(50000, TransactionType.INCOME, "Salary", 14),
        _tx(300, TransactionType.EXPENSE, "Transport", 13),
        _tx(700, TransactionType.EXPENSE, "Food", 12),
        _tx(1000, TransactionType.EXPENSE, "Gym", 11),
        _tx(2000, TransactionType.EXPENSE, "Food", 10),
        _tx(9999, TransactionType.EXPENSE, "Rent", 30, month=9),
    )
    return LedgerSnapshot(mode=LedgerMode.LOCAL, owner_id="guest", accounts=accounts, transactions=transactions)


class TestDashboard:
    """Month figures computed from a snapshot."""

    def test_month_totals_and_savings_rate(self):
        """Test that only the current month counts."""
        summary = build_dashboard(_snapshot(), TODAY)

        assert summary.total_balance == 1500
        assert summary.month_income == 50000
        assert summary.month_expense == 4000
        assert summary.savings_rate == 92
        assert summary.net_cashflow == 46000

    def test_category_breakdown_order(self):
        """Test default-category order with custom categories after."""
        breakdown = expense_breakdown(_snapshot().transactions, TODAY)

        assert [c.category for c in breakdown] == ["Food", "Transport", "Gym"]
        assert breakdown[0].amount == 2700
        assert breakdown[0].percent == 67.5

    def test_recent_and_featured(self):
        """Test the truncated lists."""
        summary = build_dashboard(_snapshot(), TODAY)

        assert len(summary.recent_transactions) == 5
        assert summary.recent_transactions[0].category == "Salary"
        assert [a.id for a in summary.featured_accounts] == ["1", "2", "3", "4"]

    def test_empty_snapshot(self):
        """Test an inactive ledger."""
        summary = build_dashboard(LedgerSnapshot(), TODAY)

        assert summary.total_balance == 0
        assert summary.savings_rate == 0
        assert summary.top_expense_categories == []

    def test_savings_rate_rounding(self):
        """Test half-up rounding and the no-income case."""
        assert savings_rate(0, 500) == 0
        assert savings_rate(200, 199) == 1
        assert savings_rate(1000, 995) == 1
        assert savings_rate(100, 150) == -50
