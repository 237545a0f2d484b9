"""
Transaction management.

Transactions are the main balance stream. Amounts are entered positive;
the kind (expense/income) carries the sign.
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from cashledger.flows.access import require_user
from cashledger.flows.base import UNCHANGED, LedgerFlow, changed_fields
from cashledger.models.audit import AuditEventType
from cashledger.models.records import Transaction, TransactionKind
from cashledger.models.reports import CategorizedTransaction, MonthlyTotal
from cashledger.queries.periods import month_window, period_key_for


class TransactionFlow(LedgerFlow):
    """CRUD and month views over one user's transactions."""

    async def create_transaction(
        self,
        user_id: str,
        category_id: UUID,
        name: str,
        amount: float,
        kind: TransactionKind = TransactionKind.EXPENSE,
        occurred_at: Optional[datetime] = None,
    ) -> Transaction:
        """
        Record an income or expense.

        Raises:
            NotFoundError: If the category is missing or not the user's
            InvalidArgumentError: If name or amount is out of range
        """
        require_user(user_id)
        await self._owned_category(category_id, user_id)
        self._validator.ensure_valid(self._validator.validate_transaction(name, amount))

        now = self._clock.now()
        transaction = await self._store.insert(Transaction(
            user_id=user_id,
            category_id=category_id,
            name=name,
            amount=amount,
            kind=kind,
            occurred_at=occurred_at or now,
            created_at=now,
        ))
        await self._audit(
            AuditEventType.TRANSACTION_CREATED,
            transaction,
            f"{transaction.kind.value.capitalize()} recorded: {transaction.name}",
            {"amount": transaction.amount},
        )
        return transaction

    async def update_transaction(
        self,
        user_id: str,
        transaction_id: UUID,
        category_id: UUID = UNCHANGED,
        name: str = UNCHANGED,
        amount: float = UNCHANGED,
        kind: TransactionKind = UNCHANGED,
        occurred_at: datetime = UNCHANGED,
    ) -> Transaction:
        require_user(user_id)
        current = await self._owned(Transaction, transaction_id, user_id, "Transaction")
        changes = changed_fields(
            category_id=category_id,
            name=name,
            amount=amount,
            kind=kind,
            occurred_at=occurred_at,
        )
        if "category_id" in changes:
            await self._owned_category(category_id, user_id)
        self._validator.ensure_valid(self._validator.validate_transaction(
            changes.get("name", current.name),
            changes.get("amount", current.amount),
        ))

        transaction = await self._store.patch(Transaction, transaction_id, changes)
        await self._audit(
            AuditEventType.TRANSACTION_UPDATED,
            transaction,
            f"Transaction updated: {transaction.name}",
            {"fields": sorted(changes)},
        )
        return transaction

    async def delete_transaction(self, user_id: str, transaction_id: UUID) -> None:
        require_user(user_id)
        transaction = await self._owned(Transaction, transaction_id, user_id, "Transaction")
        await self._store.delete(Transaction, transaction_id)
        await self._audit(
            AuditEventType.TRANSACTION_DELETED,
            transaction,
            f"Transaction deleted: {transaction.name}",
            {"amount": transaction.amount, "kind": transaction.kind.value},
        )

    async def list_transactions(
        self,
        user_id: str,
        limit: Optional[int] = None,
    ) -> list[CategorizedTransaction]:
        """Newest first, each joined with its category."""
        require_user(user_id)
        return await self._store.list_transactions_with_category(user_id, limit=limit)

    async def recent_transactions(
        self,
        user_id: str,
        limit: int = 10,
    ) -> list[CategorizedTransaction]:
        return await self.list_transactions(user_id, limit=limit)

    async def transactions_by_month(
        self,
        user_id: str,
        period_key: str,
    ) -> list[CategorizedTransaction]:
        """Transactions of one calendar month (YYYY-MM), newest first."""
        require_user(user_id)
        self._validator.ensure_valid(self._validator.validate_period_key(period_key))
        start, end = month_window(period_key, self._settings.tzinfo)
        return await self._store.list_transactions_with_category(
            user_id, date_from=start, date_to=end
        )

    async def monthly_total(
        self,
        user_id: str,
        period_key: Optional[str] = None,
    ) -> MonthlyTotal:
        """Total spent in one month (the current one by default)."""
        require_user(user_id)
        tz = self._settings.tzinfo
        period_key = period_key or period_key_for(self._clock.now(), tz)
        self._validator.ensure_valid(self._validator.validate_period_key(period_key))

        start, end = month_window(period_key, tz)
        expenses = await self._store.list_records(
            Transaction,
            user_id=user_id,
            date_from=start,
            date_to=end,
            filters={"kind": TransactionKind.EXPENSE},
        )
        return MonthlyTotal(
            period_key=period_key,
            amount=sum(t.amount for t in expenses),
            count=len(expenses),
        )
