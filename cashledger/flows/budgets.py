"""Monthly budgets per category."""

import asyncio
from typing import Optional
from uuid import UUID

from cashledger.flows.access import require_user
from cashledger.flows.base import LedgerFlow
from cashledger.models.audit import AuditEventType
from cashledger.models.records import Budget
from cashledger.queries.periods import period_key_for


class BudgetFlow(LedgerFlow):
    """
    Set, list and delete budgets.

    A budget is unique per (user, category, month): setting one that
    already exists replaces its limit.
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._upsert_lock = asyncio.Lock()

    async def set_budget(
        self,
        user_id: str,
        category_id: UUID,
        monthly_limit: float,
        period_key: Optional[str] = None,
    ) -> Budget:
        """
        Create or replace the budget of a category for one month.

        Args:
            period_key: YYYY-MM; defaults to the current month

        Raises:
            NotFoundError: If the category is missing or not the user's
            InvalidArgumentError: If the limit is not positive or the
                period is malformed
        """
        require_user(user_id)
        await self._owned_category(category_id, user_id)
        period_key = period_key or period_key_for(self._clock.now(), self._settings.tzinfo)
        self._validator.ensure_valid(self._validator.validate_budget(monthly_limit, period_key))

        async with self._upsert_lock:
            existing = await self._store.list_records(
                Budget,
                user_id=user_id,
                filters={"category_id": category_id, "period_key": period_key},
                limit=1,
            )
            if existing:
                budget = await self._store.patch(
                    Budget, existing[0].id, {"monthly_limit": monthly_limit}
                )
            else:
                budget = await self._store.insert(Budget(
                    user_id=user_id,
                    category_id=category_id,
                    monthly_limit=monthly_limit,
                    period_key=period_key,
                ))

        await self._audit(
            AuditEventType.BUDGET_SET,
            budget,
            f"Budget set for {period_key}: {monthly_limit:.2f}",
            {"category_id": str(category_id), "replaced": bool(existing)},
        )
        return budget

    async def list_budgets(
        self,
        user_id: str,
        period_key: Optional[str] = None,
    ) -> list[Budget]:
        """Budgets of one month, or of every month when period_key is None."""
        require_user(user_id)
        filters = None
        if period_key is not None:
            self._validator.ensure_valid(self._validator.validate_period_key(period_key))
            filters = {"period_key": period_key}
        return await self._store.list_records(Budget, user_id=user_id, filters=filters)

    async def delete_budget(self, user_id: str, budget_id: UUID) -> None:
        require_user(user_id)
        budget = await self._owned(Budget, budget_id, user_id, "Budget")
        await self._store.delete(Budget, budget_id)
        await self._audit(
            AuditEventType.BUDGET_DELETED,
            budget,
            f"Budget deleted for {budget.period_key}",
        )
