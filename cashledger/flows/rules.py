"""
Recurring rule management.

These operations edit what a rule generates. They never touch
`last_generated_at`; only the schedule engine advances it.
"""

from datetime import date
from typing import Optional
from uuid import UUID

from cashledger.flows.access import require_user
from cashledger.flows.base import UNCHANGED, LedgerFlow, changed_fields
from cashledger.models.audit import AuditEventType
from cashledger.models.records import Frequency, RecurringRule, TransactionKind
from cashledger.models.reports import CategorizedRule
from cashledger.queries.periods import local_date


class RecurringRuleFlow(LedgerFlow):

    async def list_rules(self, user_id: str) -> list[CategorizedRule]:
        require_user(user_id)
        return await self._store.list_rules_with_category(user_id)

    async def create_rule(
        self,
        user_id: str,
        category_id: UUID,
        name: str,
        amount: float,
        kind: TransactionKind = TransactionKind.EXPENSE,
        frequency: Frequency = Frequency.MONTHLY,
        day_of_week: Optional[int] = None,
        day_of_month: Optional[int] = None,
        start_date: Optional[date] = None,
        is_active: bool = True,
    ) -> RecurringRule:
        """
        Create a rule. It has never generated, so it is due immediately.

        Raises:
            NotFoundError: If the category is missing or not the user's
            InvalidArgumentError: If the day field does not match the frequency,
                or name/amount are out of range
        """
        require_user(user_id)
        await self._owned_category(category_id, user_id)
        self._validator.ensure_valid(self._validator.validate_rule(
            name, amount, frequency, day_of_week, day_of_month
        ))

        rule = await self._store.insert(RecurringRule(
            user_id=user_id,
            category_id=category_id,
            name=name,
            amount=amount,
            kind=kind,
            frequency=frequency,
            day_of_week=day_of_week,
            day_of_month=day_of_month,
            start_date=start_date or local_date(self._clock.now(), self._settings.tzinfo),
            is_active=is_active,
        ))
        await self._audit(
            AuditEventType.RULE_CREATED,
            rule,
            f"Recurring rule created: {rule.name} ({rule.frequency.value})",
            {"amount": rule.amount},
        )
        return rule

    async def update_rule(
        self,
        user_id: str,
        rule_id: UUID,
        category_id: UUID = UNCHANGED,
        name: str = UNCHANGED,
        amount: float = UNCHANGED,
        kind: TransactionKind = UNCHANGED,
        frequency: Frequency = UNCHANGED,
        day_of_week: Optional[int] = UNCHANGED,
        day_of_month: Optional[int] = UNCHANGED,
        start_date: date = UNCHANGED,
        is_active: bool = UNCHANGED,
    ) -> RecurringRule:
        """
        Change a rule's fields. Pass None to clear a day field.

        Switching between a week-based and a month-based frequency
        requires clearing the day field of the old anchor explicitly.
        """
        require_user(user_id)
        current = await self._owned(RecurringRule, rule_id, user_id, "Recurring rule")
        changes = changed_fields(
            category_id=category_id,
            name=name,
            amount=amount,
            kind=kind,
            frequency=frequency,
            day_of_week=day_of_week,
            day_of_month=day_of_month,
            start_date=start_date,
            is_active=is_active,
        )
        if "category_id" in changes:
            await self._owned_category(category_id, user_id)

        merged = {**current.model_dump(), **changes}
        self._validator.ensure_valid(self._validator.validate_rule(
            merged["name"],
            merged["amount"],
            Frequency(merged["frequency"]),
            merged["day_of_week"],
            merged["day_of_month"],
        ))

        rule = await self._store.patch(RecurringRule, rule_id, changes)
        await self._audit(
            AuditEventType.RULE_UPDATED,
            rule,
            f"Recurring rule updated: {rule.name}",
            {"fields": sorted(changes)},
        )
        return rule

    async def set_rule_active(
        self,
        user_id: str,
        rule_id: UUID,
        is_active: bool,
    ) -> RecurringRule:
        """Enable or disable a rule; disabled rules are never generated."""
        return await self.update_rule(user_id, rule_id, is_active=is_active)

    async def delete_rule(self, user_id: str, rule_id: UUID) -> None:
        """Delete a rule. Transactions it already generated are kept."""
        require_user(user_id)
        rule = await self._owned(RecurringRule, rule_id, user_id, "Recurring rule")
        await self._store.delete(RecurringRule, rule_id)
        await self._audit(
            AuditEventType.RULE_DELETED,
            rule,
            f"Recurring rule deleted: {rule.name}",
        )
