"""
Savings goals.

Money saved toward a goal is set aside: it is subtracted from the
current balance until it is withdrawn again.
"""

from datetime import date
from typing import Optional
from uuid import UUID

from cashledger.errors import InsufficientFundsError
from cashledger.flows.access import require_user
from cashledger.flows.base import UNCHANGED, LedgerFlow, changed_fields
from cashledger.models.audit import AuditEventType
from cashledger.models.records import Goal
from cashledger.models.reports import GoalProgress
from cashledger.queries.periods import local_date


def goal_progress(goal: Goal) -> GoalProgress:
    return GoalProgress(
        goal=goal,
        percentage=goal.saved_amount / goal.target_amount * 100,
        remaining=max(goal.target_amount - goal.saved_amount, 0.0),
        is_completed=goal.saved_amount >= goal.target_amount,
    )


class GoalFlow(LedgerFlow):
    """Goal CRUD and the two savings movements."""

    def _today(self) -> date:
        return local_date(self._clock.now(), self._settings.tzinfo)

    async def list_goals(self, user_id: str) -> list[GoalProgress]:
        """Newest first, with progress figures."""
        require_user(user_id)
        goals = await self._store.list_records(Goal, user_id=user_id, descending=True)
        return [goal_progress(g) for g in goals]

    async def create_goal(
        self,
        user_id: str,
        name: str,
        target_amount: float,
        saved_amount: float = 0.0,
        deadline: Optional[date] = None,
    ) -> Goal:
        require_user(user_id)
        result = self._validator.ensure_valid(self._validator.validate_goal(
            name, target_amount, saved_amount, deadline, self._today()
        ))

        goal = await self._store.insert(Goal(
            user_id=user_id,
            name=name,
            target_amount=target_amount,
            saved_amount=saved_amount,
            deadline=deadline,
            created_at=self._clock.now(),
        ))
        await self._audit(
            AuditEventType.GOAL_CREATED,
            goal,
            f"Goal created: {goal.name}",
            {"target_amount": goal.target_amount, "warnings": result.warnings},
        )
        return goal

    async def update_goal(
        self,
        user_id: str,
        goal_id: UUID,
        name: str = UNCHANGED,
        target_amount: float = UNCHANGED,
        saved_amount: float = UNCHANGED,
        deadline: Optional[date] = UNCHANGED,
    ) -> Goal:
        require_user(user_id)
        current = await self._owned(Goal, goal_id, user_id, "Goal")
        changes = changed_fields(
            name=name,
            target_amount=target_amount,
            saved_amount=saved_amount,
            deadline=deadline,
        )
        self._validator.ensure_valid(self._validator.validate_goal(
            changes.get("name", current.name),
            changes.get("target_amount", current.target_amount),
            changes.get("saved_amount", current.saved_amount),
        ))

        goal = await self._store.patch(Goal, goal_id, changes)
        await self._audit(
            AuditEventType.GOAL_UPDATED,
            goal,
            f"Goal updated: {goal.name}",
            {"fields": sorted(changes)},
        )
        return goal

    async def delete_goal(self, user_id: str, goal_id: UUID) -> None:
        """Delete a goal; its saved amount returns to the balance."""
        require_user(user_id)
        goal = await self._owned(Goal, goal_id, user_id, "Goal")
        await self._store.delete(Goal, goal_id)
        await self._audit(
            AuditEventType.GOAL_DELETED,
            goal,
            f"Goal deleted: {goal.name}",
            {"released": goal.saved_amount},
        )

    async def add_savings(self, user_id: str, goal_id: UUID, amount: float) -> Goal:
        """
        Move `amount` into a goal.

        saved_amount may exceed target_amount; there is no upper clamp.
        """
        require_user(user_id)
        await self._owned(Goal, goal_id, user_id, "Goal")
        self._validator.ensure_valid(self._validator.validate_movement(amount))

        async with self._lock_for(goal_id):
            current = await self._owned(Goal, goal_id, user_id, "Goal")
            goal = await self._store.patch(
                Goal, goal_id, {"saved_amount": current.saved_amount + amount}
            )

        await self._audit_logger.log_savings_moved(
            user_id=user_id,
            goal_id=goal_id,
            amount=amount,
            saved_amount=goal.saved_amount,
            withdrawn=False,
        )
        return goal

    async def withdraw_savings(self, user_id: str, goal_id: UUID, amount: float) -> Goal:
        """
        Move `amount` out of a goal back into the balance.

        Raises:
            InsufficientFundsError: If amount exceeds the saved amount;
                nothing is changed
        """
        require_user(user_id)
        await self._owned(Goal, goal_id, user_id, "Goal")
        self._validator.ensure_valid(self._validator.validate_movement(amount))

        async with self._lock_for(goal_id):
            current = await self._owned(Goal, goal_id, user_id, "Goal")
            if amount > current.saved_amount:
                raise InsufficientFundsError(goal_id, amount, current.saved_amount)
            goal = await self._store.patch(
                Goal, goal_id, {"saved_amount": max(0.0, current.saved_amount - amount)}
            )

        await self._audit_logger.log_savings_moved(
            user_id=user_id,
            goal_id=goal_id,
            amount=amount,
            saved_amount=goal.saved_amount,
            withdrawn=True,
        )
        return goal
