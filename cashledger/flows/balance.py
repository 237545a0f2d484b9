"""Opening balance of a user."""

import asyncio
from typing import Optional

from cashledger.flows.access import require_user
from cashledger.flows.base import LedgerFlow
from cashledger.models.audit import AuditEventType
from cashledger.models.records import InitialBalance


class InitialBalanceFlow(LedgerFlow):
    """At most one InitialBalance per user; setting it again overwrites it."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self._upsert_lock = asyncio.Lock()

    async def get_initial_balance(self, user_id: str) -> Optional[InitialBalance]:
        require_user(user_id)
        return await self._store.get_initial_balance(user_id)

    async def set_initial_balance(self, user_id: str, amount: float) -> InitialBalance:
        """Create or overwrite the opening balance. Negative amounts are allowed."""
        require_user(user_id)
        self._validator.ensure_valid(self._validator.validate_initial_balance(amount))

        now = self._clock.now()
        async with self._upsert_lock:
            existing = await self._store.get_initial_balance(user_id)
            if existing:
                record = await self._store.patch(
                    InitialBalance, existing.id, {"amount": amount, "updated_at": now}
                )
            else:
                record = await self._store.insert(InitialBalance(
                    user_id=user_id,
                    amount=amount,
                    created_at=now,
                    updated_at=now,
                ))

        await self._audit(
            AuditEventType.INITIAL_BALANCE_SET,
            record,
            f"Initial balance set to {amount:.2f}",
            {"previous": existing.amount if existing else None},
        )
        return record
