"""
Tests for the recurring schedule engine.

The engine is driven by explicit `now` values and a FixedClock, so
every idempotency window is tested at exact instants.
"""

import asyncio
import gc
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest

from cashledger.errors import (
    AlreadyGeneratedRecentlyError,
    InactiveRuleError,
    NotFoundError,
    UnauthenticatedError,
)
from cashledger.models.audit import AuditEventType
from cashledger.models.records import Frequency, RecurringRule, Transaction
from cashledger.services.storage import InMemoryRecordStore, StorageError
from cashledger.scheduler import RecurringScheduleEngine


class FailingPatchStore(InMemoryRecordStore):
    """Accepts inserts but fails every rule patch."""

    async def patch(self, model, record_id, changes):
        if model is RecurringRule:
            raise StorageError("sheet unavailable")
        return await super().patch(model, record_id, changes)


class FailingInsertStore(InMemoryRecordStore):
    """Fails inserts of transactions for one poisoned category."""

    def __init__(self, poisoned_category_id):
        super().__init__()
        self.poisoned_category_id = poisoned_category_id

    async def insert(self, record):
        if isinstance(record, Transaction) and record.category_id == self.poisoned_category_id:
            raise StorageError("write rejected")
        return await super().insert(record)


FIXED_START = datetime(2024, 1, 1, tzinfo=timezone.utc)


async def count_transactions(store, user_id=None):
    return len(await store.list_records(Transaction, user_id=user_id))


@pytest.fixture
async def monthly_rule(app, user_id, category):
    return await app.create_rule(
        user_id, category.id, "Netflix", 50, frequency=Frequency.MONTHLY, day_of_month=1
    )


class TestDueness:

    def _rule(self, frequency, last_generated_at=None):
        return RecurringRule(
            user_id="u1",
            category_id=uuid4(),
            name="r",
            amount=1,
            frequency=frequency,
            start_date=(last_generated_at or FIXED_START).date(),
            last_generated_at=last_generated_at,
        )

    def test_never_generated_is_due(self, app, now):
        assert app.engine.is_due(self._rule(Frequency.MONTHLY), now)

    def test_min_interval_by_frequency(self, app):
        assert app.engine.min_interval(self._rule(Frequency.DAILY)) == timedelta(hours=12)
        for frequency in Frequency:
            if frequency != Frequency.DAILY:
                assert app.engine.min_interval(self._rule(frequency)) == timedelta(hours=24)

    def test_daily_rule_due_after_twelve_hours(self, app, now):
        rule = self._rule(Frequency.DAILY, last_generated_at=now)
        assert not app.engine.is_due(rule, now + timedelta(hours=11, minutes=59))
        assert app.engine.is_due(rule, now + timedelta(hours=12))

    def test_monthly_rule_due_after_a_day(self, app, now):
        """Day fields are not consulted: any day at >= 24h spacing is due."""
        rule = self._rule(Frequency.MONTHLY, last_generated_at=now)
        assert not app.engine.is_due(rule, now + timedelta(hours=23))
        assert app.engine.is_due(rule, now + timedelta(hours=24))

    def test_retry_after(self, app, now):
        rule = self._rule(Frequency.WEEKLY, last_generated_at=now)
        assert app.engine.retry_after(rule, now + timedelta(hours=20)) == pytest.approx(4 * 3600)
        assert app.engine.retry_after(rule, now + timedelta(days=2)) == 0


class TestGenerateNow:

    async def test_generates_transaction_and_sets_witness(self, app, store, user_id, monthly_rule, now):
        transaction_id = await app.generate_now(user_id, monthly_rule.id)

        transaction = await store.get(Transaction, transaction_id)
        assert transaction.name == "Netflix (Auto)"
        assert transaction.amount == 50
        assert transaction.kind == monthly_rule.kind
        assert transaction.category_id == monthly_rule.category_id
        assert transaction.occurred_at == now
        rule = await store.get(RecurringRule, monthly_rule.id)
        assert rule.last_generated_at == now

    async def test_second_call_within_interval_is_rejected(self, app, store, clock, user_id, monthly_rule):
        """Exactly one transaction and one rejection."""
        await app.generate_now(user_id, monthly_rule.id)
        clock.advance(hours=1)

        with pytest.raises(AlreadyGeneratedRecentlyError) as exc_info:
            await app.generate_now(user_id, monthly_rule.id)

        assert exc_info.value.retry_after_seconds == pytest.approx(23 * 3600)
        assert await count_transactions(store) == 1

    async def test_allowed_again_after_interval(self, app, store, clock, user_id, monthly_rule):
        await app.generate_now(user_id, monthly_rule.id)
        clock.advance(hours=24)
        await app.generate_now(user_id, monthly_rule.id)
        assert await count_transactions(store) == 2

    async def test_naive_now_is_read_as_utc(self, app, store, user_id, monthly_rule, now):
        later = now + timedelta(days=2)
        await app.generate_now(user_id, monthly_rule.id)

        transaction_id = await app.engine.generate_now(
            user_id, monthly_rule.id, later.replace(tzinfo=None)
        )

        assert (await store.get(Transaction, transaction_id)).occurred_at == later
        assert (await store.get(RecurringRule, monthly_rule.id)).last_generated_at == later

    async def test_inactive_rule(self, app, user_id, monthly_rule):
        await app.set_rule_active(user_id, monthly_rule.id, False)
        with pytest.raises(InactiveRuleError):
            await app.generate_now(user_id, monthly_rule.id)

    async def test_missing_rule(self, app, user_id):
        with pytest.raises(NotFoundError):
            await app.generate_now(user_id, uuid4())

    async def test_foreign_rule_looks_missing(self, app, other_user_id, monthly_rule):
        with pytest.raises(NotFoundError):
            await app.generate_now(other_user_id, monthly_rule.id)

    async def test_requires_user(self, app, monthly_rule):
        with pytest.raises(UnauthenticatedError):
            await app.generate_now("", monthly_rule.id)

    async def test_concurrent_calls_generate_once(self, app, store, user_id, monthly_rule):
        results = await asyncio.gather(
            app.generate_now(user_id, monthly_rule.id),
            app.generate_now(user_id, monthly_rule.id),
            return_exceptions=True,
        )

        rejected = [r for r in results if isinstance(r, AlreadyGeneratedRecentlyError)]
        assert len(rejected) == 1
        assert await count_transactions(store) == 1

    async def test_rule_lock_is_dropped_after_use(self, app, clock, user_id, monthly_rule):
        await app.generate_now(user_id, monthly_rule.id)
        clock.advance(hours=24)
        await app.process_due()

        gc.collect()
        assert monthly_rule.id not in app.engine._rule_locks

    async def test_audited_as_manual(self, app, audit_storage, user_id, monthly_rule):
        await app.generate_now(user_id, monthly_rule.id)
        events = await audit_storage.get_events_by_entity("recurring_rules", monthly_rule.id)
        generated = [e for e in events if e.event_type == AuditEventType.RECURRING_GENERATED]
        assert len(generated) == 1
        assert generated[0].is_user_action


class TestProcessDue:

    async def test_end_to_end_example(self, app, store, monthly_rule, now):
        """Generate once, then skip one millisecond later."""
        first = await app.process_due(now)

        assert (first.generated, first.skipped, first.total) == (1, 0, 1)
        transactions = await store.list_records(Transaction)
        assert len(transactions) == 1
        assert transactions[0].amount == 50
        assert (await store.get(RecurringRule, monthly_rule.id)).last_generated_at == now

        second = await app.process_due(now + timedelta(milliseconds=1))

        assert (second.generated, second.skipped, second.total) == (0, 1, 1)
        assert await count_transactions(store) == 1

    async def test_back_to_back_runs(self, app, store, user_id, other_user_id, category, now):
        """Every rule processed by the first run is skipped by the second."""
        other_category = await app.create_category(other_user_id, "Bills")
        for i in range(3):
            await app.create_rule(user_id, category.id, f"Rule {i}", 10 + i, frequency=Frequency.DAILY)
        await app.create_rule(other_user_id, other_category.id, "Phone", 30)

        first = await app.process_due(now)
        second = await app.process_due(now + timedelta(seconds=1))

        assert first.generated == 4
        assert second.generated == 0
        assert second.skipped == 4
        assert await count_transactions(store) == 4

    async def test_inactive_rules_are_not_counted(self, app, user_id, category, now):
        await app.create_rule(user_id, category.id, "On", 10)
        await app.create_rule(user_id, category.id, "Off", 10, is_active=False)

        summary = await app.process_due(now)

        assert summary.total == 1
        assert summary.generated == 1

    async def test_uses_clock_when_now_omitted(self, app, store, clock, monthly_rule):
        await app.process_due()
        transaction = (await store.list_records(Transaction))[0]
        assert transaction.occurred_at == clock.now()

    async def test_naive_now_after_a_previous_run(self, app, store, monthly_rule, now):
        """A rule with a witness is compared against a naive now without failing."""
        later = now + timedelta(days=2)
        await app.process_due(now)

        summary = await app.process_due(later.replace(tzinfo=None))

        assert (summary.generated, summary.skipped, summary.failed) == (1, 0, 0)
        assert await count_transactions(store) == 2
        assert (await store.get(RecurringRule, monthly_rule.id)).last_generated_at == later

    async def test_failing_rule_does_not_abort_batch(self, settings, clock, user_id, now):
        poisoned = uuid4()
        store = FailingInsertStore(poisoned)
        engine = RecurringScheduleEngine(store, settings=settings, clock=clock)
        healthy = RecurringRule(
            user_id=user_id, category_id=uuid4(), name="Gym", amount=20, start_date=now.date()
        )
        broken = RecurringRule(
            user_id=user_id, category_id=poisoned, name="Broken", amount=5, start_date=now.date()
        )
        await store.insert(broken)
        await store.insert(healthy)

        summary = await engine.process_due(now)

        assert summary.generated == 1
        assert summary.skipped == 1
        assert summary.failed == 1
        assert summary.total == 2
        assert (await store.get(RecurringRule, broken.id)).last_generated_at is None
        assert (await store.get(RecurringRule, healthy.id)).last_generated_at == now

    async def test_summary_is_audited(self, app, audit_storage, monthly_rule, now):
        await app.process_due(now)
        runs = [
            e for e in audit_storage.events
            if e.event_type == AuditEventType.SCHEDULER_RUN_COMPLETED
        ]
        assert len(runs) == 1
        assert runs[0].details["generated"] == 1
        related = await audit_storage.get_events_by_correlation_id(runs[0].correlation_id)
        assert len(related) == 2

    async def test_overlapping_runs_generate_once(self, app, store, monthly_rule, now):
        first, second = await asyncio.gather(app.process_due(now), app.process_due(now))
        assert first.generated + second.generated == 1
        assert await count_transactions(store) == 1


class TestCompensation:

    async def test_failed_witness_update_removes_transaction(self, settings, clock, user_id, now):
        """Insert succeeded, patch failed: no orphan transaction remains."""
        store = FailingPatchStore()
        engine = RecurringScheduleEngine(store, settings=settings, clock=clock)
        rule = RecurringRule(
            user_id=user_id, category_id=uuid4(), name="Rent", amount=800, start_date=now.date()
        )
        await store.insert(rule)

        with pytest.raises(StorageError):
            await engine.generate_now(user_id, rule.id, now)

        assert await count_transactions(store) == 0
        assert (await store.get(RecurringRule, rule.id)).last_generated_at is None

    async def test_failed_witness_update_in_batch(self, settings, clock, user_id, now):
        store = FailingPatchStore()
        engine = RecurringScheduleEngine(store, settings=settings, clock=clock)
        await store.insert(RecurringRule(
            user_id=user_id, category_id=uuid4(), name="Rent", amount=800, start_date=now.date()
        ))

        summary = await engine.process_due(now)

        assert (summary.generated, summary.skipped, summary.failed) == (0, 1, 1)
        assert await count_transactions(store) == 0
