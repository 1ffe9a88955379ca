"""
Dashboard Queries

DESIGN DECISION: Aggregation is DETERMINISTIC and works only on the
snapshot it is given. It never touches a backend, so the figures always
match what the ledger currently shows.
"""

import math
from collections import defaultdict
from datetime import date
from typing import Iterable, Optional

from smartfinance.models.dashboard import CategoryBreakdown, DashboardSummary
from smartfinance.models.ledger import (
    DEFAULT_CATEGORIES,
    LedgerSnapshot,
    Transaction,
    TransactionType,
)


TOP_CATEGORY_COUNT = 5
RECENT_TRANSACTION_COUNT = 5
FEATURED_ACCOUNT_COUNT = 4


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _in_month(tx: Transaction, today: date) -> bool:
    return tx.date.year == today.year and tx.date.month == today.month


def month_totals(
    transactions: Iterable[Transaction],
    today: date,
) -> tuple[float, float]:
    """(income, expense) for the calendar month containing `today`."""
    income = 0.0
    expense = 0.0
    for tx in transactions:
        if not _in_month(tx, today):
            continue
        if tx.type == TransactionType.INCOME:
            income += tx.amount
        else:
            expense += tx.amount
    return income, expense


def savings_rate(income: float, expense: float) -> int:
    """Rounded percent of income kept; 0 when there was no income."""
    if income <= 0:
        return 0
    return _round_half_up((income - expense) / income * 100)


def expense_breakdown(
    transactions: Iterable[Transaction],
    today: date,
    limit: int = TOP_CATEGORY_COUNT,
) -> list[CategoryBreakdown]:
    """
    Monthly expense per category.

    Ordered by the default category list, with custom categories after
    in order of first appearance.
    """
    totals: dict[str, float] = defaultdict(float)
    seen: list[str] = []
    for tx in transactions:
        if tx.type != TransactionType.EXPENSE or not _in_month(tx, today):
            continue
        if tx.category not in totals:
            seen.append(tx.category)
        totals[tx.category] += tx.amount

    ordered = [c for c in DEFAULT_CATEGORIES if c in totals]
    ordered += [c for c in seen if c not in DEFAULT_CATEGORIES]

    month_expense = sum(totals.values())
    breakdown = []
    for category in ordered[:limit]:
        amount = totals[category]
        percent = amount / month_expense * 100 if month_expense > 0 else 0.0
        breakdown.append(
            CategoryBreakdown(category=category, amount=amount, percent=min(percent, 100.0))
        )
    return breakdown


def build_dashboard(
    snapshot: LedgerSnapshot,
    today: Optional[date] = None,
) -> DashboardSummary:
    """Summary figures for the dashboard view of `snapshot`."""
    today = today or date.today()
    income, expense = month_totals(snapshot.transactions, today)

    return DashboardSummary(
        total_balance=snapshot.total_balance,
        month_income=income,
        month_expense=expense,
        savings_rate=savings_rate(income, expense),
        top_expense_categories=expense_breakdown(snapshot.transactions, today),
        recent_transactions=list(snapshot.transactions[:RECENT_TRANSACTION_COUNT]),
        featured_accounts=list(snapshot.accounts[:FEATURED_ACCOUNT_COUNT]),
    )
