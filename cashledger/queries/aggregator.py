"""
Ledger Aggregator

DESIGN DECISION: Aggregation is DETERMINISTIC and read-only.
Every figure is recomputed from the stored records on each call;
nothing is cached and nothing is written.

The current balance is the sum of several independent streams:

    balance = initial
            + income - expenses          (transactions)
            + unpaid borrowed - unpaid lent   (debts)
            - saved amounts              (goals)

Paid debts contribute nothing. A missing initial balance counts as 0.
"""

from collections import defaultdict
from typing import Optional
from uuid import UUID

from cashledger.clock import Clock, SystemClock
from cashledger.config import LedgerSettings, get_settings
from cashledger.models.records import (
    Budget,
    Category,
    Debt,
    DebtDirection,
    Goal,
    Transaction,
    TransactionKind,
)
from cashledger.models.reports import BalanceBreakdown, BudgetStatus, CurrentBalance
from cashledger.queries.periods import month_window, period_key_for
from cashledger.services.storage import RecordStoreInterface
from cashledger.validation import RecordValidator


class LedgerAggregator:
    """
    Computes the current balance and budget usage of one user.

    GUARANTEES:
    - Only reads; never modifies a record
    - Every term of the balance is reported in the breakdown
    - Over-budget and dangling-category budgets are valid results, not errors
    """

    def __init__(
        self,
        store: RecordStoreInterface,
        settings: Optional[LedgerSettings] = None,
        clock: Optional[Clock] = None,
        validator: Optional[RecordValidator] = None,
    ):
        self._store = store
        self._settings = settings or get_settings().ledger
        self._clock = clock or SystemClock()
        self._validator = validator or RecordValidator(self._settings)

    async def breakdown(self, user_id: str) -> BalanceBreakdown:
        """Every term of the balance formula for `user_id`."""
        initial = await self._store.get_initial_balance(user_id)
        transactions = await self._store.list_records(Transaction, user_id=user_id)
        open_debts = await self._store.list_records(
            Debt, user_id=user_id, filters={"is_paid": False}
        )
        goals = await self._store.list_records(Goal, user_id=user_id)

        breakdown = BalanceBreakdown(initial_amount=initial.amount if initial else 0.0)
        for t in transactions:
            if t.kind == TransactionKind.INCOME:
                breakdown.total_income += t.amount
            else:
                breakdown.total_expenses += t.amount
        for d in open_debts:
            if d.direction == DebtDirection.BORROWED:
                breakdown.total_borrowed += d.amount
            else:
                breakdown.total_lent += d.amount
        breakdown.total_savings = sum(g.saved_amount for g in goals)
        return breakdown

    async def current_balance(self, user_id: str) -> CurrentBalance:
        breakdown = await self.breakdown(user_id)
        return CurrentBalance(
            user_id=user_id,
            balance=breakdown.balance,
            breakdown=breakdown,
            computed_at=self._clock.now(),
        )

    async def budget_status(
        self,
        user_id: str,
        period_key: Optional[str] = None,
    ) -> list[BudgetStatus]:
        """
        Usage of every budget of one calendar month.

        Args:
            user_id: Owner of the budgets
            period_key: Month as YYYY-MM; defaults to the current month
                        in the ledger timezone

        Returns:
            One status per budget, in stored order
        """
        tz = self._settings.tzinfo
        period_key = period_key or period_key_for(self._clock.now(), tz)
        self._validator.ensure_valid(self._validator.validate_period_key(period_key))
        period_start, period_end = month_window(period_key, tz)

        budgets = await self._store.list_records(
            Budget, user_id=user_id, filters={"period_key": period_key}
        )
        if not budgets:
            return []

        categories = {
            c.id: c for c in await self._store.list_records(Category, user_id=user_id)
        }
        expenses = await self._store.list_records(
            Transaction,
            user_id=user_id,
            date_from=period_start,
            date_to=period_end,
            filters={"kind": TransactionKind.EXPENSE},
        )
        spent_by_category: dict[UUID, float] = defaultdict(float)
        for t in expenses:
            spent_by_category[t.category_id] += t.amount

        statuses = []
        for budget in budgets:
            spent = spent_by_category.get(budget.category_id, 0.0)
            statuses.append(BudgetStatus(
                budget=budget,
                category=categories.get(budget.category_id),
                period_start=period_start,
                period_end=period_end,
                spent=spent,
                remaining=budget.monthly_limit - spent,
                percentage=spent / budget.monthly_limit * 100,
            ))
        return statuses
