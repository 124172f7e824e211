"""
Report Models

Read-only figures shown on the dashboard. These are always derived
from the current state and never persisted.
"""

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field

from cepfinans.models.finance import AccountBalances, Transaction


class FinanceSummary(BaseModel):
    """Headline numbers for the dashboard cards."""

    balances: AccountBalances
    total_balance: Decimal
    total_income: Decimal = Field(description="Sum of all recorded income")
    total_expense: Decimal = Field(description="Sum of all recorded expenses")
    monthly_recurring_income: Decimal = Field(
        description="Sum of active recurring income definitions"
    )
    monthly_recurring_expense: Decimal = Field(
        description="Sum of active recurring expense definitions"
    )
    active_income_count: int = 0
    active_expense_count: int = 0


class MonthlyTotals(BaseModel):
    """Income and expense for one calendar month."""

    year: int
    month: int = Field(ge=1, le=12)
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")

    @property
    def net(self) -> Decimal:
        return self.income - self.expense

    @property
    def label(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"


class DailyTotals(BaseModel):
    """All transactions of one day with their income/expense totals."""

    day: date
    transactions: list[Transaction] = Field(default_factory=list)
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")

    @property
    def net(self) -> Decimal:
        return self.income - self.expense
