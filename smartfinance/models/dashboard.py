"""Aggregated figures shown on the dashboard and report views."""

from pydantic import BaseModel, Field

from smartfinance.models.ledger import Account, Transaction


class CategoryBreakdown(BaseModel):
    """Expense total for one category in the current month."""

    category: str
    amount: float = Field(ge=0)
    percent: float = Field(ge=0.0, le=100.0, description="Share of monthly expense")


class DashboardSummary(BaseModel):
    total_balance: float
    month_income: float = Field(ge=0)
    month_expense: float = Field(ge=0)
    savings_rate: int = Field(description="Rounded percent of income kept this month")
    top_expense_categories: list[CategoryBreakdown] = Field(default_factory=list)
    recent_transactions: list[Transaction] = Field(default_factory=list)
    featured_accounts: list[Account] = Field(default_factory=list)

    @property
    def net_cashflow(self) -> float:
        return self.month_income - self.month_expense
