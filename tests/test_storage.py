"""Tests for the in-memory record store and shared query semantics."""

from datetime import date, datetime, timedelta, timezone
from uuid import uuid4

import pytest

from cashledger.models.audit import AuditEvent, AuditEventType
from cashledger.models.records import (
    Budget,
    Category,
    Debt,
    DebtDirection,
    Frequency,
    InitialBalance,
    RecurringRule,
    Transaction,
)
from cashledger.services.storage import (
    DuplicateError,
    GoogleSheetsRecordStore,
    InMemoryAuditStorage,
    RecordNotFoundError,
    select_records,
)
from cashledger.services.storage.google_sheets import record_columns

BASE = datetime(2024, 3, 1, tzinfo=timezone.utc)


def make_transaction(user_id="u1", days=0, amount=10.0, category_id=None):
    return Transaction(
        user_id=user_id,
        category_id=category_id or uuid4(),
        name=f"t{days}",
        amount=amount,
        occurred_at=BASE + timedelta(days=days),
    )


class TestSelectRecords:
    """list_records semantics shared by every backend."""

    def test_filters_by_user(self):
        records = [make_transaction("u1"), make_transaction("u2")]
        assert [r.user_id for r in select_records(records, user_id="u1")] == ["u1"]

    def test_sorts_by_date_field(self):
        records = [make_transaction(days=3), make_transaction(days=1), make_transaction(days=2)]
        ascending = select_records(records)
        assert [r.name for r in ascending] == ["t1", "t2", "t3"]
        descending = select_records(records, descending=True, limit=2)
        assert [r.name for r in descending] == ["t3", "t2"]

    def test_date_range_is_inclusive(self):
        records = [make_transaction(days=d) for d in range(5)]
        selected = select_records(
            records,
            date_from=BASE + timedelta(days=1),
            date_to=BASE + timedelta(days=3),
        )
        assert [r.name for r in selected] == ["t1", "t2", "t3"]

    def test_exact_match_filters(self):
        category_id = uuid4()
        budgets = [
            Budget(user_id="u1", category_id=category_id, monthly_limit=10, period_key="2024-03"),
            Budget(user_id="u1", category_id=category_id, monthly_limit=20, period_key="2024-04"),
        ]
        selected = select_records(budgets, filters={"period_key": "2024-04"})
        assert [b.monthly_limit for b in selected] == [20]

    def test_dateless_kinds_keep_stored_order(self):
        categories = [Category(user_id="u1", name=n) for n in ("b", "a", "c")]
        assert [c.name for c in select_records(categories)] == ["b", "a", "c"]


class TestInMemoryRecordStore:

    async def test_insert_and_get(self, store):
        t = make_transaction()
        await store.insert(t)
        fetched = await store.get(Transaction, t.id)
        assert fetched == t

    async def test_insert_duplicate(self, store):
        t = make_transaction()
        await store.insert(t)
        with pytest.raises(DuplicateError):
            await store.insert(t)

    async def test_returned_records_are_copies(self, store):
        """Mutating a fetched record does not change stored state."""
        t = make_transaction(amount=10)
        await store.insert(t)
        fetched = await store.get(Transaction, t.id)
        fetched.amount = 999
        assert (await store.get(Transaction, t.id)).amount == 10

    async def test_patch(self, store):
        rule = RecurringRule(
            user_id="u1",
            category_id=uuid4(),
            name="Rent",
            amount=800,
            start_date=BASE.date(),
        )
        await store.insert(rule)
        patched = await store.patch(RecurringRule, rule.id, {"last_generated_at": BASE})
        assert patched.last_generated_at == BASE
        assert (await store.get(RecurringRule, rule.id)).last_generated_at == BASE

    async def test_patch_missing(self, store):
        with pytest.raises(RecordNotFoundError):
            await store.patch(Transaction, uuid4(), {"amount": 1})

    async def test_update_missing(self, store):
        with pytest.raises(RecordNotFoundError):
            await store.update(make_transaction())

    async def test_delete(self, store):
        t = make_transaction()
        await store.insert(t)
        assert await store.delete(Transaction, t.id) is True
        assert await store.delete(Transaction, t.id) is False
        assert await store.get(Transaction, t.id) is None

    async def test_get_owned_hides_foreign_records(self, store):
        t = make_transaction("u1")
        await store.insert(t)
        assert await store.get_owned(Transaction, t.id, "u1") is not None
        assert await store.get_owned(Transaction, t.id, "u2") is None

    async def test_initial_balance_lookup(self, store):
        assert await store.get_initial_balance("u1") is None
        await store.insert(InitialBalance(user_id="u1", amount=500))
        assert (await store.get_initial_balance("u1")).amount == 500

    async def test_transactions_with_category_join(self, store):
        category = Category(user_id="u1", name="Food")
        await store.insert(category)
        await store.insert(make_transaction(days=1, category_id=category.id))
        await store.insert(make_transaction(days=2))  # category never existed

        joined = await store.list_transactions_with_category("u1")
        assert joined[0].category is None
        assert joined[1].category.name == "Food"


class TestInMemoryAuditStorage:

    async def test_append_and_query(self):
        storage = InMemoryAuditStorage()
        correlation_id, entity_id = uuid4(), uuid4()
        await storage.append_event(AuditEvent(
            event_type=AuditEventType.RECURRING_GENERATED,
            user_id="u1",
            entity_type="recurring_rules",
            entity_id=entity_id,
            correlation_id=correlation_id,
            description="generated",
        ))
        await storage.append_event(AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            description="boom",
        ))

        assert len(await storage.get_events_by_correlation_id(correlation_id)) == 1
        assert len(await storage.get_events_by_entity("recurring_rules", entity_id)) == 1
        assert len(await storage.get_recent_events(user_id="u1")) == 1
        assert len(await storage.get_recent_events()) == 2


class FakeWorksheet:
    """The slice of gspread.Worksheet the record store calls."""

    def __init__(self, columns):
        self.rows = [list(columns)]

    def get_all_values(self):
        return [list(row) for row in self.rows]

    def append_row(self, values, value_input_option=None):
        self.rows.append(list(values))

    def update(self, range_name, values, value_input_option=None):
        self.rows[int(range_name[1:]) - 1] = list(values[0])

    def delete_rows(self, index):
        del self.rows[index - 1]


class FakeSheetsClient:
    def __init__(self):
        self.sheets = {}

    def get_record_sheet(self, model):
        if model.record_kind not in self.sheets:
            self.sheets[model.record_kind] = FakeWorksheet(record_columns(model))
        return self.sheets[model.record_kind]


class TestGoogleSheetsRecordStore:
    """Row serialization against an in-process worksheet."""

    @pytest.fixture
    def sheets(self):
        return FakeSheetsClient()

    @pytest.fixture
    def store(self, sheets):
        return GoogleSheetsRecordStore(client=sheets)

    async def test_rule_round_trip(self, store, sheets):
        weekly = RecurringRule(
            user_id="u1",
            category_id=uuid4(),
            name="Cleaner",
            amount=35.5,
            frequency=Frequency.WEEKLY,
            day_of_week=4,
            start_date=date(2024, 3, 1),
        )
        monthly = RecurringRule(
            user_id="u1",
            category_id=uuid4(),
            name="Rent",
            amount=800,
            day_of_month=31,
            start_date=date(2024, 1, 31),
            last_generated_at=BASE,
        )
        await store.insert(weekly)
        await store.insert(monthly)

        assert await store.get(RecurringRule, weekly.id) == weekly
        assert await store.get(RecurringRule, monthly.id) == monthly
        header, row = sheets.sheets["recurring_rules"].rows[:2]
        assert header[0] == "id"
        assert row[header.index("day_of_month")] == ""
        assert row[header.index("day_of_week")] == "4"

    async def test_patch_sets_witness(self, store, sheets):
        rule = RecurringRule(
            user_id="u1",
            category_id=uuid4(),
            name="Rent",
            amount=800,
            day_of_month=1,
            start_date=date(2024, 1, 1),
        )
        await store.insert(rule)
        later = BASE + timedelta(days=1, hours=3)

        patched = await store.patch(RecurringRule, rule.id, {"last_generated_at": later})

        stored = await store.get(RecurringRule, rule.id)
        assert patched.last_generated_at == stored.last_generated_at == later
        assert stored.day_of_month == 1
        assert len(sheets.sheets["recurring_rules"].rows) == 2

    async def test_debt_paid_filter(self, store):
        lent = Debt(user_id="u1", person_name="Ana", amount=20, direction=DebtDirection.LENT)
        borrowed = Debt(
            user_id="u1",
            person_name="Ben",
            amount=45,
            direction=DebtDirection.BORROWED,
            due_date=date(2024, 4, 1),
        )
        await store.insert(lent)
        await store.insert(borrowed)

        await store.patch(Debt, lent.id, {"is_paid": True})

        unpaid = await store.list_records(Debt, user_id="u1", filters={"is_paid": False})
        paid = await store.list_records(Debt, user_id="u1", filters={"is_paid": True})
        assert [d.id for d in unpaid] == [borrowed.id]
        assert unpaid[0].due_date == date(2024, 4, 1)
        assert [d.id for d in paid] == [lent.id]

    async def test_duplicate_and_missing(self, store):
        debt = Debt(user_id="u1", person_name="Ana", amount=20, direction=DebtDirection.LENT)
        await store.insert(debt)

        with pytest.raises(DuplicateError):
            await store.insert(debt)
        assert await store.delete(Debt, debt.id)
        assert not await store.delete(Debt, debt.id)
        with pytest.raises(RecordNotFoundError):
            await store.patch(Debt, debt.id, {"is_paid": True})
