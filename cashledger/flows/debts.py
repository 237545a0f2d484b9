"""
Debts between the user and other people.

An unpaid borrowed debt adds to the balance (the money is in hand),
an unpaid lent debt subtracts from it. Marking a debt paid removes it
from the balance; there is no separate repayment record and no way
back to unpaid.
"""

from datetime import date
from typing import Optional
from uuid import UUID

from cashledger.flows.access import require_user
from cashledger.flows.base import UNCHANGED, LedgerFlow, changed_fields
from cashledger.models.audit import AuditEventType
from cashledger.models.records import Debt, DebtDirection
from cashledger.models.reports import DebtView
from cashledger.queries.periods import local_date


class DebtFlow(LedgerFlow):

    def _today(self) -> date:
        return local_date(self._clock.now(), self._settings.tzinfo)

    def _view(self, debt: Debt, today: date) -> DebtView:
        overdue = debt.due_date is not None and debt.due_date < today and not debt.is_paid
        return DebtView(debt=debt, is_overdue=overdue)

    async def list_debts(
        self,
        user_id: str,
        include_paid: bool = True,
    ) -> list[DebtView]:
        """Newest first, each flagged overdue if unpaid past its due date."""
        require_user(user_id)
        filters = None if include_paid else {"is_paid": False}
        debts = await self._store.list_records(
            Debt, user_id=user_id, descending=True, filters=filters
        )
        today = self._today()
        return [self._view(d, today) for d in debts]

    async def create_debt(
        self,
        user_id: str,
        person_name: str,
        amount: float,
        direction: DebtDirection,
        due_date: Optional[date] = None,
        description: Optional[str] = None,
    ) -> Debt:
        require_user(user_id)
        result = self._validator.ensure_valid(self._validator.validate_debt(
            person_name, amount, description, due_date, self._today()
        ))

        debt = await self._store.insert(Debt(
            user_id=user_id,
            person_name=person_name,
            amount=amount,
            direction=direction,
            due_date=due_date,
            description=description,
            created_at=self._clock.now(),
        ))
        await self._audit(
            AuditEventType.DEBT_CREATED,
            debt,
            f"Debt {debt.direction.value}: {debt.person_name}",
            {"amount": debt.amount, "warnings": result.warnings},
        )
        return debt

    async def update_debt(
        self,
        user_id: str,
        debt_id: UUID,
        person_name: str = UNCHANGED,
        amount: float = UNCHANGED,
        direction: DebtDirection = UNCHANGED,
        due_date: Optional[date] = UNCHANGED,
        description: Optional[str] = UNCHANGED,
    ) -> Debt:
        """Edit a debt's terms. The paid flag is only changed by mark_debt_paid."""
        require_user(user_id)
        current = await self._owned(Debt, debt_id, user_id, "Debt")
        changes = changed_fields(
            person_name=person_name,
            amount=amount,
            direction=direction,
            due_date=due_date,
            description=description,
        )
        self._validator.ensure_valid(self._validator.validate_debt(
            changes.get("person_name", current.person_name),
            changes.get("amount", current.amount),
            changes.get("description", current.description),
        ))

        debt = await self._store.patch(Debt, debt_id, changes)
        await self._audit(
            AuditEventType.DEBT_UPDATED,
            debt,
            f"Debt updated: {debt.person_name}",
            {"fields": sorted(changes)},
        )
        return debt

    async def mark_debt_paid(self, user_id: str, debt_id: UUID) -> Debt:
        """
        Flip a debt to paid.

        Marking an already paid debt is a no-op and returns it unchanged.
        """
        require_user(user_id)
        async with self._lock_for(debt_id):
            current = await self._owned(Debt, debt_id, user_id, "Debt")
            if current.is_paid:
                return current
            debt = await self._store.patch(Debt, debt_id, {"is_paid": True})

        await self._audit(
            AuditEventType.DEBT_PAID,
            debt,
            f"Debt settled: {debt.person_name}",
            {"amount": debt.amount, "direction": debt.direction.value},
        )
        return debt

    async def delete_debt(self, user_id: str, debt_id: UUID) -> None:
        require_user(user_id)
        debt = await self._owned(Debt, debt_id, user_id, "Debt")
        await self._store.delete(Debt, debt_id)
        await self._audit(
            AuditEventType.DEBT_DELETED,
            debt,
            f"Debt deleted: {debt.person_name}",
        )
