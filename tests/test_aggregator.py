"""Tests for current balance and budget status."""

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from cashledger.config import LedgerSettings
from cashledger.errors import InvalidArgumentError, NotFoundError, UnauthenticatedError
from cashledger.models.records import (
    Budget,
    DebtDirection,
    TransactionKind,
)
from cashledger.orchestrator import LedgerApp

EPSILON = 1e-9


class TestCurrentBalance:

    async def test_end_to_end_example(self, app, user_id, category):
        """initial 1000 + 500 - 200 + 300 borrowed - 100 lent - 150 saved = 1350."""
        await app.set_initial_balance(user_id, 1000)
        await app.create_transaction(user_id, category.id, "Salary", 500, TransactionKind.INCOME)
        await app.create_transaction(user_id, category.id, "Shopping", 200)
        await app.create_debt(user_id, "Sam", 300, DebtDirection.BORROWED)
        await app.create_debt(user_id, "Kim", 100, DebtDirection.LENT)
        await app.create_goal(user_id, "Trip", 1000, saved_amount=150)

        result = await app.get_current_balance(user_id)

        assert abs(result.balance - 1350) < EPSILON
        assert result.breakdown.initial_amount == 1000
        assert result.breakdown.total_income == 500
        assert result.breakdown.total_expenses == 200
        assert result.breakdown.total_borrowed == 300
        assert result.breakdown.total_lent == 100
        assert result.breakdown.total_savings == 150

    async def test_missing_initial_balance_counts_as_zero(self, app, user_id, category):
        await app.create_transaction(user_id, category.id, "Lunch", 12.5)
        result = await app.get_current_balance(user_id)
        assert result.balance == pytest.approx(-12.5)
        assert result.breakdown.initial_amount == 0

    async def test_paid_debts_contribute_nothing(self, app, user_id):
        borrowed = await app.create_debt(user_id, "Sam", 300, DebtDirection.BORROWED)
        lent = await app.create_debt(user_id, "Kim", 100, DebtDirection.LENT)
        assert (await app.get_current_balance(user_id)).balance == pytest.approx(200)

        await app.mark_debt_paid(user_id, borrowed.id)
        await app.mark_debt_paid(user_id, lent.id)
        assert (await app.get_current_balance(user_id)).balance == pytest.approx(0)

    async def test_savings_move_money_out_and_back(self, app, user_id):
        await app.set_initial_balance(user_id, 500)
        goal = await app.create_goal(user_id, "Bike", 400)

        await app.add_savings(user_id, goal.id, 120)
        assert (await app.get_current_balance(user_id)).balance == pytest.approx(380)

        await app.withdraw_savings(user_id, goal.id, 20)
        assert (await app.get_current_balance(user_id)).balance == pytest.approx(400)

    async def test_other_users_records_are_ignored(self, app, user_id, other_user_id, category):
        other_category = await app.create_category(other_user_id, "Food")
        await app.create_transaction(other_user_id, other_category.id, "Dinner", 80)
        await app.set_initial_balance(other_user_id, 5000)
        await app.create_transaction(user_id, category.id, "Lunch", 20)

        assert (await app.get_current_balance(user_id)).balance == pytest.approx(-20)

    async def test_many_small_amounts(self, app, user_id, category):
        for _ in range(10):
            await app.create_transaction(user_id, category.id, "Candy", 0.1)
        result = await app.get_current_balance(user_id)
        assert abs(result.balance - (-1.0)) < EPSILON * 10

    async def test_requires_user(self, app):
        with pytest.raises(UnauthenticatedError):
            await app.get_current_balance("")


class TestBudgetStatus:

    async def test_set_then_status_round_trip(self, app, user_id, category):
        """A fresh budget reports the limit with nothing spent."""
        await app.set_budget(user_id, category.id, 300)

        statuses = await app.get_budget_status(user_id)

        assert len(statuses) == 1
        status = statuses[0]
        assert status.budget.monthly_limit == 300
        assert status.budget.period_key == "2024-03"
        assert status.category.id == category.id
        assert status.spent == 0
        assert status.remaining == 300
        assert status.percentage == 0

    async def test_only_expenses_of_the_month_count(self, app, user_id, category, now):
        await app.set_budget(user_id, category.id, 100)
        await app.create_transaction(user_id, category.id, "Food", 40, occurred_at=now)
        await app.create_transaction(
            user_id, category.id, "Refund", 25, TransactionKind.INCOME, occurred_at=now
        )
        await app.create_transaction(
            user_id, category.id, "Last month", 70,
            occurred_at=datetime(2024, 2, 29, 23, 59, tzinfo=timezone.utc),
        )
        await app.create_transaction(
            user_id, category.id, "Month start", 10,
            occurred_at=datetime(2024, 3, 1, 0, 0, tzinfo=timezone.utc),
        )

        status = (await app.get_budget_status(user_id))[0]

        assert status.spent == pytest.approx(50)
        assert status.remaining == pytest.approx(50)
        assert status.percentage == pytest.approx(50)

    async def test_over_budget_is_valid(self, app, user_id, category, now):
        await app.set_budget(user_id, category.id, 100)
        await app.create_transaction(user_id, category.id, "Feast", 130, occurred_at=now)

        status = (await app.get_budget_status(user_id))[0]

        assert status.is_over_budget
        assert status.remaining == pytest.approx(-30)
        assert status.percentage == pytest.approx(130)

    async def test_explicit_period(self, app, user_id, category):
        await app.set_budget(user_id, category.id, 100, period_key="2024-04")
        assert await app.get_budget_status(user_id, "2024-03") == []
        assert len(await app.get_budget_status(user_id, "2024-04")) == 1

    async def test_set_budget_twice_replaces_limit(self, app, user_id, category):
        first = await app.set_budget(user_id, category.id, 100)
        second = await app.set_budget(user_id, category.id, 250)

        assert first.id == second.id
        statuses = await app.get_budget_status(user_id)
        assert [s.budget.monthly_limit for s in statuses] == [250]

    async def test_deleted_category_is_reported_as_none(self, app, user_id, category, now):
        await app.set_budget(user_id, category.id, 100)
        await app.create_transaction(user_id, category.id, "Food", 40, occurred_at=now)
        await app.delete_category(user_id, category.id)

        status = (await app.get_budget_status(user_id))[0]

        assert status.category is None
        assert status.spent == pytest.approx(40)

    async def test_set_budget_requires_owned_category(self, app, user_id, other_user_id):
        foreign = await app.create_category(other_user_id, "Theirs")
        with pytest.raises(NotFoundError):
            await app.set_budget(user_id, foreign.id, 100)

    async def test_invalid_limit(self, app, user_id, category):
        with pytest.raises(InvalidArgumentError):
            await app.set_budget(user_id, category.id, 0)

    async def test_invalid_period(self, app, user_id):
        with pytest.raises(InvalidArgumentError):
            await app.get_budget_status(user_id, "March")

    async def test_month_boundaries_follow_ledger_timezone(self, store, clock, user_id):
        """In Paris, 2024-02-29 23:30 UTC is already March 1st."""
        app = LedgerApp(store, settings=LedgerSettings(timezone="Europe/Paris"), clock=clock)
        category = await app.create_category(user_id, "Food")
        await app.set_budget(user_id, category.id, 100, period_key="2024-03")
        await app.create_transaction(
            user_id, category.id, "Late snack", 15,
            occurred_at=datetime(2024, 2, 29, 23, 30, tzinfo=timezone.utc),
        )

        status = (await app.get_budget_status(user_id, "2024-03"))[0]

        assert status.spent == pytest.approx(15)
        assert status.period_start == datetime(2024, 2, 29, 23, 0, tzinfo=timezone.utc)

    async def test_dangling_budget_written_directly(self, app, store, user_id):
        """Budgets pointing at a category that never existed are tolerated."""
        await store.insert(Budget(
            user_id=user_id, category_id=uuid4(), monthly_limit=50, period_key="2024-03"
        ))
        status = (await app.get_budget_status(user_id))[0]
        assert status.category is None
        assert status.spent == 0
