"""
Recurring Schedule Engine

DESIGN DECISION: A rule's `last_generated_at` is the ONLY idempotency
witness. The engine never looks at day_of_week, day_of_month or
start_date; a rule is due purely by elapsed time:

    due  <=>  last_generated_at is None
              or now - last_generated_at >= min_interval(rule)

min_interval is 12h for daily rules and 24h for every other frequency
(both configurable).

Both entry points, the daily timer (process_due) and the user's
"generate now" (generate_now), go through the same locked
read -> decide -> insert -> patch sequence. The rule is re-read inside
its lock, so two overlapping triggers can never both see it as due.

If the patch of last_generated_at fails after the transaction was
inserted, the transaction is deleted again before the error propagates;
a rule is never left without a witness for a transaction it produced.
"""

import asyncio
import weakref
from datetime import datetime, timedelta
from typing import Optional
from uuid import UUID

import structlog

from cashledger.audit import AuditLogger, create_correlation_id
from cashledger.clock import Clock, SystemClock
from cashledger.config import LedgerSettings, get_settings
from cashledger.errors import (
    AlreadyGeneratedRecentlyError,
    InactiveRuleError,
    NotFoundError,
)
from cashledger.flows.access import require_user
from cashledger.models.records import (
    AUTO_SUFFIX,
    Frequency,
    RecurringRule,
    Transaction,
    ensure_utc,
)
from cashledger.models.reports import ProcessDueSummary
from cashledger.services.storage import RecordStoreInterface

logger = structlog.get_logger("cashledger.scheduler")


class RecurringScheduleEngine:
    """
    Materializes transactions from recurring rules.

    GUARANTEES:
    - At most one generation per rule per min_interval
    - A generated transaction always has a matching last_generated_at
    - One failing rule never aborts a batch run
    """

    def __init__(
        self,
        store: RecordStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
        clock: Optional[Clock] = None,
    ):
        self._store = store
        self._audit_logger = audit_logger or AuditLogger()
        self._settings = settings or get_settings().ledger
        self._clock = clock or SystemClock()
        self._rule_locks: weakref.WeakValueDictionary[UUID, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._run_lock = asyncio.Lock()

    # -------------------------------------------------------------------------
    # Due-ness
    # -------------------------------------------------------------------------

    def min_interval(self, rule: RecurringRule) -> timedelta:
        if rule.frequency == Frequency.DAILY:
            return self._settings.daily_min_interval
        return self._settings.default_min_interval

    def is_due(self, rule: RecurringRule, now: datetime) -> bool:
        if rule.last_generated_at is None:
            return True
        return now - rule.last_generated_at >= self.min_interval(rule)

    def retry_after(self, rule: RecurringRule, now: datetime) -> float:
        """Seconds until `rule` becomes due again (0 if it already is)."""
        if rule.last_generated_at is None:
            return 0.0
        remaining = rule.last_generated_at + self.min_interval(rule) - now
        return max(remaining.total_seconds(), 0.0)

    def _rule_lock(self, rule_id: UUID) -> asyncio.Lock:
        lock = self._rule_locks.get(rule_id)
        if lock is None:
            lock = self._rule_locks[rule_id] = asyncio.Lock()
        return lock

    # -------------------------------------------------------------------------
    # Generation
    # -------------------------------------------------------------------------

    async def _generate(self, rule: RecurringRule, now: datetime) -> Transaction:
        """Insert the rule's transaction, then advance its witness."""
        transaction = Transaction(
            user_id=rule.user_id,
            category_id=rule.category_id,
            name=f"{rule.name}{AUTO_SUFFIX}",
            amount=rule.amount,
            kind=rule.kind,
            occurred_at=now,
            created_at=now,
        )
        await self._store.insert(transaction)

        try:
            await self._store.patch(RecurringRule, rule.id, {"last_generated_at": now})
        except Exception as e:
            logger.error(
                "rule_patch_failed_compensating",
                rule_id=str(rule.id),
                transaction_id=str(transaction.id),
                error=str(e),
            )
            try:
                await self._store.delete(Transaction, transaction.id)
            except Exception as cleanup_error:
                logger.critical(
                    "compensating_delete_failed",
                    rule_id=str(rule.id),
                    transaction_id=str(transaction.id),
                    error=str(cleanup_error),
                )
            raise

        return transaction

    async def generate_now(
        self,
        user_id: str,
        rule_id: UUID,
        now: Optional[datetime] = None,
    ) -> UUID:
        """
        Generate a rule's transaction on the user's request.

        Returns:
            ID of the new transaction

        Raises:
            UnauthenticatedError: If no user is given
            NotFoundError: If the rule is missing or owned by someone else
            InactiveRuleError: If the rule is disabled
            AlreadyGeneratedRecentlyError: If the rule is not due yet
        """
        require_user(user_id)
        now = ensure_utc(now) if now else self._clock.now()

        async with self._rule_lock(rule_id):
            rule = await self._store.get_owned(RecurringRule, rule_id, user_id)
            if rule is None:
                raise NotFoundError("Recurring rule", rule_id)
            if not rule.is_active:
                raise InactiveRuleError(rule_id)
            if not self.is_due(rule, now):
                raise AlreadyGeneratedRecentlyError(rule_id, self.retry_after(rule, now))

            transaction = await self._generate(rule, now)

        logger.info(
            "recurring_generated",
            rule_id=str(rule_id),
            transaction_id=str(transaction.id),
            manual=True,
        )
        await self._audit_logger.log_recurring_generated(
            user_id=user_id,
            rule_id=rule_id,
            transaction_id=transaction.id,
            amount=transaction.amount,
            manual=True,
        )
        return transaction.id

    async def process_due(self, now: Optional[datetime] = None) -> ProcessDueSummary:
        """
        One batch pass over every active rule of every user.

        Rules that are not due are skipped. A rule that raises is logged
        and counted as skipped (and failed); the pass continues.
        Overlapping calls run one after the other.
        """
        async with self._run_lock:
            now = ensure_utc(now) if now else self._clock.now()
            correlation_id = create_correlation_id()

            rules = await self._store.list_records(RecurringRule, filters={"is_active": True})
            summary = ProcessDueSummary(run_at=now, total=len(rules))

            for rule in rules:
                try:
                    async with self._rule_lock(rule.id):
                        current = await self._store.get(RecurringRule, rule.id)
                        if current is None or not current.is_active or not self.is_due(current, now):
                            summary.skipped += 1
                            continue
                        transaction = await self._generate(current, now)
                except Exception as e:
                    summary.skipped += 1
                    summary.failed += 1
                    logger.error(
                        "recurring_generation_failed",
                        rule_id=str(rule.id),
                        user_id=rule.user_id,
                        error=str(e),
                        correlation_id=str(correlation_id),
                    )
                    await self._audit_logger.log_generation_failed(
                        user_id=rule.user_id,
                        rule_id=rule.id,
                        error_message=str(e),
                        correlation_id=correlation_id,
                    )
                    continue

                summary.generated += 1
                summary.transaction_ids.append(transaction.id)
                await self._audit_logger.log_recurring_generated(
                    user_id=rule.user_id,
                    rule_id=rule.id,
                    transaction_id=transaction.id,
                    amount=transaction.amount,
                    manual=False,
                    correlation_id=correlation_id,
                )

            logger.info(
                "process_due_completed",
                generated=summary.generated,
                skipped=summary.skipped,
                failed=summary.failed,
                total=summary.total,
                correlation_id=str(correlation_id),
            )
            await self._audit_logger.log_scheduler_run(
                generated=summary.generated,
                skipped=summary.skipped,
                total=summary.total,
                failed=summary.failed,
                correlation_id=correlation_id,
            )
            return summary
