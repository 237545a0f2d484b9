"""
Read-Side Models

Typed results of the aggregation, projection and scheduling operations.
Joins (a transaction with its category, a rule with its category) are
expressed as explicit aggregate models rather than merged dicts.
"""

from datetime import date, datetime
from enum import Enum
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, Field

from cashledger.models.records import (
    Budget,
    Category,
    Debt,
    Goal,
    RecurringRule,
    Transaction,
    utc_now,
)


# =============================================================================
# BALANCE
# =============================================================================

class BalanceBreakdown(BaseModel):
    """Every term of the current balance formula."""

    initial_amount: float = 0.0
    total_income: float = 0.0
    total_expenses: float = 0.0
    total_borrowed: float = Field(default=0.0, description="Unpaid borrowed debts")
    total_lent: float = Field(default=0.0, description="Unpaid lent debts")
    total_savings: float = Field(default=0.0, description="Sum of goal saved amounts")

    @property
    def balance(self) -> float:
        return (
            self.initial_amount
            + self.total_income
            - self.total_expenses
            + self.total_borrowed
            - self.total_lent
            - self.total_savings
        )


class CurrentBalance(BaseModel):
    user_id: str
    balance: float
    breakdown: BalanceBreakdown
    computed_at: datetime = Field(default_factory=utc_now)


# =============================================================================
# BUDGETS
# =============================================================================

class BudgetStatus(BaseModel):
    """
    Usage of one budget over its calendar month.

    Over-budget is a valid state: `remaining` goes negative and
    `percentage` exceeds 100.
    """

    budget: Budget
    category: Optional[Category] = Field(
        default=None,
        description="None when the category has since been deleted"
    )
    period_start: datetime
    period_end: datetime
    spent: float
    remaining: float
    percentage: float

    @property
    def is_over_budget(self) -> bool:
        return self.spent > self.budget.monthly_limit


# =============================================================================
# BALANCE HISTORY
# =============================================================================

class TrendDirection(str, Enum):
    IMPROVING = "improving"
    DECLINING = "declining"
    FLAT = "flat"


class BalancePoint(BaseModel):
    """Balance at the end of one calendar day."""

    day: date
    balance: float


class BalanceHistory(BaseModel):
    user_id: str
    days: int
    points: list[BalancePoint] = Field(default_factory=list)
    projection: list[BalancePoint] = Field(default_factory=list)
    slope: float = 0.0
    intercept: float = 0.0
    trend: TrendDirection = TrendDirection.FLAT

    @property
    def is_improving(self) -> bool:
        return self.slope > 0


# =============================================================================
# SCHEDULER
# =============================================================================

class ProcessDueSummary(BaseModel):
    """
    Outcome of one batch pass over all active rules.

    `failed` counts the rules that raised; they are included in `skipped`.
    """

    run_at: datetime
    generated: int = 0
    skipped: int = 0
    total: int = 0
    failed: int = 0
    transaction_ids: list[UUID] = Field(default_factory=list)


# =============================================================================
# JOINS AND VIEWS
# =============================================================================

class CategorizedTransaction(BaseModel):
    transaction: Transaction
    category: Optional[Category] = None


class CategorizedRule(BaseModel):
    rule: RecurringRule
    category: Optional[Category] = None


class GoalProgress(BaseModel):
    goal: Goal
    percentage: float
    remaining: float
    is_completed: bool


class DebtView(BaseModel):
    debt: Debt
    is_overdue: bool


# =============================================================================
# STATISTICS
# =============================================================================

class CategoryTotal(BaseModel):
    category_id: UUID
    name: str = ""
    color: Optional[str] = None
    amount: float


class MonthlyTotal(BaseModel):
    period_key: str
    amount: float
    count: int = 0


class IncomeExpense(BaseModel):
    income: float = 0.0
    expense: float = 0.0

    @property
    def net(self) -> float:
        return self.income - self.expense


class PeriodComparison(BaseModel):
    this_month: IncomeExpense
    last_month: IncomeExpense
    this_year: IncomeExpense
    last_year: IncomeExpense
