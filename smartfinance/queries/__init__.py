"""Dashboard query package."""

from smartfinance.queries.dashboard import (
    build_dashboard,
    expense_breakdown,
    month_totals,
    savings_rate,
)

__all__ = ["build_dashboard", "expense_breakdown", "month_totals", "savings_rate"]
