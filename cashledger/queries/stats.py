"""
Spending statistics.

Grouped totals over transactions: by category, by month, the largest
expenses of a window, and month-over-month / year-over-year comparison.
Windows default to the current calendar month in the ledger timezone.
"""

from collections import defaultdict
from datetime import datetime
from typing import Optional
from uuid import UUID

from cashledger.clock import Clock, SystemClock
from cashledger.config import LedgerSettings, get_settings
from cashledger.models.records import Category, Transaction, TransactionKind
from cashledger.models.reports import (
    CategorizedTransaction,
    CategoryTotal,
    IncomeExpense,
    MonthlyTotal,
    PeriodComparison,
)
from cashledger.queries.periods import (
    month_window,
    period_key_for,
    shift_month,
    year_window,
)
from cashledger.services.storage import RecordStoreInterface


class LedgerStatistics:
    """Read-only statistics over one user's transactions."""

    def __init__(
        self,
        store: RecordStoreInterface,
        settings: Optional[LedgerSettings] = None,
        clock: Optional[Clock] = None,
    ):
        self._store = store
        self._settings = settings or get_settings().ledger
        self._clock = clock or SystemClock()

    def _current_month(self) -> tuple[datetime, datetime]:
        tz = self._settings.tzinfo
        return month_window(period_key_for(self._clock.now(), tz), tz)

    async def _expenses(
        self,
        user_id: str,
        start: Optional[datetime],
        end: Optional[datetime],
    ) -> list[Transaction]:
        if start is None and end is None:
            start, end = self._current_month()
        return await self._store.list_records(
            Transaction,
            user_id=user_id,
            date_from=start,
            date_to=end,
            filters={"kind": TransactionKind.EXPENSE},
        )

    async def expenses_by_category(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[CategoryTotal]:
        """Expense totals per category, largest first."""
        expenses = await self._expenses(user_id, start, end)
        categories = {
            c.id: c for c in await self._store.list_records(Category, user_id=user_id)
        }

        totals: dict[UUID, float] = defaultdict(float)
        for t in expenses:
            totals[t.category_id] += t.amount

        result = []
        for category_id, amount in totals.items():
            category = categories.get(category_id)
            result.append(CategoryTotal(
                category_id=category_id,
                name=category.name if category else "",
                color=category.color if category else None,
                amount=amount,
            ))
        result.sort(key=lambda c: c.amount, reverse=True)
        return result

    async def top_expenses(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 5,
    ) -> list[CategorizedTransaction]:
        """The `limit` largest expenses of the window, with their category."""
        expenses = await self._expenses(user_id, start, end)
        expenses.sort(key=lambda t: t.amount, reverse=True)
        categories = {
            c.id: c for c in await self._store.list_records(Category, user_id=user_id)
        }
        return [
            CategorizedTransaction(transaction=t, category=categories.get(t.category_id))
            for t in expenses[:limit]
        ]

    async def monthly_series(
        self,
        user_id: str,
        months: int = 6,
        kind: TransactionKind = TransactionKind.EXPENSE,
    ) -> list[MonthlyTotal]:
        """
        Totals of one transaction kind for the last `months` months.

        Oldest month first; the current month is last. Months without
        transactions are present with amount 0.
        """
        if months <= 0:
            return []
        tz = self._settings.tzinfo
        current = period_key_for(self._clock.now(), tz)
        keys = [shift_month(current, -offset) for offset in range(months - 1, -1, -1)]

        start, _ = month_window(keys[0], tz)
        _, end = month_window(keys[-1], tz)
        transactions = await self._store.list_records(
            Transaction,
            user_id=user_id,
            date_from=start,
            date_to=end,
            filters={"kind": kind},
        )

        totals = {key: 0.0 for key in keys}
        counts = {key: 0 for key in keys}
        for t in transactions:
            key = period_key_for(t.occurred_at, tz)
            totals[key] += t.amount
            counts[key] += 1
        return [
            MonthlyTotal(period_key=key, amount=amount, count=counts[key])
            for key, amount in totals.items()
        ]

    async def _income_expense(
        self,
        user_id: str,
        window: tuple[datetime, datetime],
    ) -> IncomeExpense:
        transactions = await self._store.list_records(
            Transaction, user_id=user_id, date_from=window[0], date_to=window[1]
        )
        totals = IncomeExpense()
        for t in transactions:
            if t.kind == TransactionKind.INCOME:
                totals.income += t.amount
            else:
                totals.expense += t.amount
        return totals

    async def monthly_comparison(self, user_id: str) -> PeriodComparison:
        """This month vs last month, and this year vs last year."""
        tz = self._settings.tzinfo
        now = self._clock.now()
        this_month = period_key_for(now, tz)
        this_year = now.astimezone(tz).year

        return PeriodComparison(
            this_month=await self._income_expense(user_id, month_window(this_month, tz)),
            last_month=await self._income_expense(
                user_id, month_window(shift_month(this_month, -1), tz)
            ),
            this_year=await self._income_expense(user_id, year_window(this_year, tz)),
            last_year=await self._income_expense(user_id, year_window(this_year - 1, tz)),
        )
