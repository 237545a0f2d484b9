"""
Main Orchestrator for Cash Ledger

This module ties together all the components behind one in-process
API, LedgerApp, and builds them from configuration.

Components (leaves first):
1. Record store (in-memory or Google Sheets)
2. Aggregator, history projector, statistics (read side)
3. Record flows (write side)
4. Recurring schedule engine + daily trigger

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every operation takes the caller's user_id explicitly
- Every component shares one clock, one store and one audit logger
- The daily trigger and "generate now" reach the same engine

This is the "glue"; it holds no ledger logic of its own.
"""

from datetime import date, datetime
from typing import Optional
from uuid import UUID

import structlog

from cashledger.audit import AuditLogger, configure_logging
from cashledger.clock import Clock, SystemClock
from cashledger.config import LedgerSettings, SchedulerSettings, get_settings
from cashledger.flows import (
    UNCHANGED,
    BudgetFlow,
    CategoryFlow,
    DebtFlow,
    GoalFlow,
    InitialBalanceFlow,
    RecurringRuleFlow,
    TransactionFlow,
    require_user,
)
from cashledger.models.records import (
    Budget,
    Category,
    Debt,
    DebtDirection,
    Frequency,
    Goal,
    InitialBalance,
    RecurringRule,
    Transaction,
    TransactionKind,
)
from cashledger.models.reports import (
    BalanceHistory,
    BudgetStatus,
    CategorizedRule,
    CategorizedTransaction,
    CategoryTotal,
    CurrentBalance,
    DebtView,
    GoalProgress,
    MonthlyTotal,
    PeriodComparison,
    ProcessDueSummary,
)
from cashledger.queries import BalanceHistoryProjector, LedgerAggregator, LedgerStatistics
from cashledger.scheduler import DailyTrigger, RecurringScheduleEngine
from cashledger.services.storage import (
    AuditStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRecordStore,
    InMemoryAuditStorage,
    InMemoryRecordStore,
    RecordStoreInterface,
)
from cashledger.validation import RecordValidator

logger = structlog.get_logger("cashledger.orchestrator")


class LedgerApp:
    """
    The ledger's public surface.

    Flow of a read:   user_id -> aggregator/projector/statistics -> typed result
    Flow of a write:  user_id -> flow (guard, validate, write, audit) -> record
    Flow of a rule:   trigger or user -> engine -> transaction + witness

    All methods are coroutines except the trigger controls.
    """

    def __init__(
        self,
        store: RecordStoreInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
        clock: Optional[Clock] = None,
    ):
        self.store = store
        self.settings = settings or get_settings().ledger
        self.clock = clock or SystemClock()
        self.audit_logger = audit_logger or AuditLogger()

        validator = RecordValidator(self.settings)
        shared = dict(
            audit_logger=self.audit_logger,
            settings=self.settings,
            clock=self.clock,
            validator=validator,
        )
        self.categories = CategoryFlow(store, **shared)
        self.transactions = TransactionFlow(store, **shared)
        self.rules = RecurringRuleFlow(store, **shared)
        self.budgets = BudgetFlow(store, **shared)
        self.goals = GoalFlow(store, **shared)
        self.debts = DebtFlow(store, **shared)
        self.initial_balance = InitialBalanceFlow(store, **shared)

        self.aggregator = LedgerAggregator(store, self.settings, self.clock, validator)
        self.history = BalanceHistoryProjector(store, self.settings, self.clock, validator)
        self.statistics = LedgerStatistics(store, self.settings, self.clock)
        self.engine = RecurringScheduleEngine(
            store, self.audit_logger, self.settings, self.clock
        )
        self.trigger: Optional[DailyTrigger] = None

    # -------------------------------------------------------------------------
    # Balance
    # -------------------------------------------------------------------------

    async def get_current_balance(self, user_id: str) -> CurrentBalance:
        require_user(user_id)
        return await self.aggregator.current_balance(user_id)

    async def get_initial_balance(self, user_id: str) -> Optional[InitialBalance]:
        return await self.initial_balance.get_initial_balance(user_id)

    async def set_initial_balance(self, user_id: str, amount: float) -> InitialBalance:
        return await self.initial_balance.set_initial_balance(user_id, amount)

    async def get_balance_history(
        self,
        user_id: str,
        days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> BalanceHistory:
        require_user(user_id)
        return await self.history.balance_history(user_id, days, now)

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    async def get_budget_status(
        self,
        user_id: str,
        period_key: Optional[str] = None,
    ) -> list[BudgetStatus]:
        require_user(user_id)
        return await self.aggregator.budget_status(user_id, period_key)

    async def set_budget(
        self,
        user_id: str,
        category_id: UUID,
        monthly_limit: float,
        period_key: Optional[str] = None,
    ) -> Budget:
        return await self.budgets.set_budget(user_id, category_id, monthly_limit, period_key)

    async def list_budgets(self, user_id: str, period_key: Optional[str] = None) -> list[Budget]:
        return await self.budgets.list_budgets(user_id, period_key)

    async def delete_budget(self, user_id: str, budget_id: UUID) -> None:
        await self.budgets.delete_budget(user_id, budget_id)

    # -------------------------------------------------------------------------
    # Recurring rules
    # -------------------------------------------------------------------------

    async def generate_now(self, user_id: str, rule_id: UUID) -> UUID:
        return await self.engine.generate_now(user_id, rule_id)

    async def process_due(self, now: Optional[datetime] = None) -> ProcessDueSummary:
        return await self.engine.process_due(now)

    async def list_rules(self, user_id: str) -> list[CategorizedRule]:
        return await self.rules.list_rules(user_id)

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
        return await self.rules.create_rule(
            user_id,
            category_id,
            name,
            amount,
            kind=kind,
            frequency=frequency,
            day_of_week=day_of_week,
            day_of_month=day_of_month,
            start_date=start_date,
            is_active=is_active,
        )

    async def update_rule(self, user_id: str, rule_id: UUID, **changes) -> RecurringRule:
        return await self.rules.update_rule(user_id, rule_id, **changes)

    async def set_rule_active(self, user_id: str, rule_id: UUID, is_active: bool) -> RecurringRule:
        return await self.rules.set_rule_active(user_id, rule_id, is_active)

    async def delete_rule(self, user_id: str, rule_id: UUID) -> None:
        await self.rules.delete_rule(user_id, rule_id)

    # -------------------------------------------------------------------------
    # Goals
    # -------------------------------------------------------------------------

    async def add_savings(self, user_id: str, goal_id: UUID, amount: float) -> Goal:
        return await self.goals.add_savings(user_id, goal_id, amount)

    async def withdraw_savings(self, user_id: str, goal_id: UUID, amount: float) -> Goal:
        return await self.goals.withdraw_savings(user_id, goal_id, amount)

    async def list_goals(self, user_id: str) -> list[GoalProgress]:
        return await self.goals.list_goals(user_id)

    async def create_goal(
        self,
        user_id: str,
        name: str,
        target_amount: float,
        saved_amount: float = 0.0,
        deadline: Optional[date] = None,
    ) -> Goal:
        return await self.goals.create_goal(user_id, name, target_amount, saved_amount, deadline)

    async def update_goal(self, user_id: str, goal_id: UUID, **changes) -> Goal:
        return await self.goals.update_goal(user_id, goal_id, **changes)

    async def delete_goal(self, user_id: str, goal_id: UUID) -> None:
        await self.goals.delete_goal(user_id, goal_id)

    # -------------------------------------------------------------------------
    # Debts
    # -------------------------------------------------------------------------

    async def list_debts(self, user_id: str, include_paid: bool = True) -> list[DebtView]:
        return await self.debts.list_debts(user_id, include_paid)

    async def create_debt(
        self,
        user_id: str,
        person_name: str,
        amount: float,
        direction: DebtDirection,
        due_date: Optional[date] = None,
        description: Optional[str] = None,
    ) -> Debt:
        return await self.debts.create_debt(
            user_id, person_name, amount, direction, due_date, description
        )

    async def update_debt(self, user_id: str, debt_id: UUID, **changes) -> Debt:
        return await self.debts.update_debt(user_id, debt_id, **changes)

    async def mark_debt_paid(self, user_id: str, debt_id: UUID) -> Debt:
        return await self.debts.mark_debt_paid(user_id, debt_id)

    async def delete_debt(self, user_id: str, debt_id: UUID) -> None:
        await self.debts.delete_debt(user_id, debt_id)

    # -------------------------------------------------------------------------
    # Categories and transactions
    # -------------------------------------------------------------------------

    async def list_categories(self, user_id: str) -> list[Category]:
        return await self.categories.list_categories(user_id)

    async def create_category(
        self,
        user_id: str,
        name: str,
        icon: str = "circle",
        color: str = "#888888",
    ) -> Category:
        return await self.categories.create_category(user_id, name, icon, color)

    async def update_category(
        self,
        user_id: str,
        category_id: UUID,
        name: str = UNCHANGED,
        icon: str = UNCHANGED,
        color: str = UNCHANGED,
    ) -> Category:
        return await self.categories.update_category(user_id, category_id, name, icon, color)

    async def delete_category(self, user_id: str, category_id: UUID) -> None:
        await self.categories.delete_category(user_id, category_id)

    async def seed_default_categories(self, user_id: str) -> list[Category]:
        return await self.categories.seed_default_categories(user_id)

    async def reset_default_categories(self, user_id: str) -> list[Category]:
        return await self.categories.reset_default_categories(user_id)

    async def create_transaction(
        self,
        user_id: str,
        category_id: UUID,
        name: str,
        amount: float,
        kind: TransactionKind = TransactionKind.EXPENSE,
        occurred_at: Optional[datetime] = None,
    ) -> Transaction:
        return await self.transactions.create_transaction(
            user_id, category_id, name, amount, kind, occurred_at
        )

    async def update_transaction(self, user_id: str, transaction_id: UUID, **changes) -> Transaction:
        return await self.transactions.update_transaction(user_id, transaction_id, **changes)

    async def delete_transaction(self, user_id: str, transaction_id: UUID) -> None:
        await self.transactions.delete_transaction(user_id, transaction_id)

    async def list_transactions(
        self,
        user_id: str,
        limit: Optional[int] = None,
    ) -> list[CategorizedTransaction]:
        return await self.transactions.list_transactions(user_id, limit)

    async def recent_transactions(self, user_id: str, limit: int = 10) -> list[CategorizedTransaction]:
        return await self.transactions.recent_transactions(user_id, limit)

    async def transactions_by_month(
        self,
        user_id: str,
        period_key: str,
    ) -> list[CategorizedTransaction]:
        return await self.transactions.transactions_by_month(user_id, period_key)

    async def monthly_total(self, user_id: str, period_key: Optional[str] = None) -> MonthlyTotal:
        return await self.transactions.monthly_total(user_id, period_key)

    # -------------------------------------------------------------------------
    # Statistics
    # -------------------------------------------------------------------------

    async def expenses_by_category(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> list[CategoryTotal]:
        require_user(user_id)
        return await self.statistics.expenses_by_category(user_id, start, end)

    async def top_expenses(
        self,
        user_id: str,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 5,
    ) -> list[CategorizedTransaction]:
        require_user(user_id)
        return await self.statistics.top_expenses(user_id, start, end, limit)

    async def monthly_series(
        self,
        user_id: str,
        months: int = 6,
        kind: TransactionKind = TransactionKind.EXPENSE,
    ) -> list[MonthlyTotal]:
        require_user(user_id)
        return await self.statistics.monthly_series(user_id, months, kind)

    async def monthly_comparison(self, user_id: str) -> PeriodComparison:
        require_user(user_id)
        return await self.statistics.monthly_comparison(user_id)

    # -------------------------------------------------------------------------
    # Daily trigger
    # -------------------------------------------------------------------------

    def start_scheduler(
        self,
        scheduler_settings: Optional[SchedulerSettings] = None,
    ) -> Optional[DailyTrigger]:
        """
        Start the daily process_due timer on the running event loop.

        Returns None (and starts nothing) when the scheduler is disabled.
        """
        scheduler_settings = scheduler_settings or get_settings().scheduler
        if not scheduler_settings.enabled:
            logger.info("scheduler_disabled")
            return None
        if self.trigger is None:
            self.trigger = DailyTrigger.from_settings(
                self.engine, scheduler_settings, self.clock
            )
        self.trigger.start()
        return self.trigger

    async def stop_scheduler(self) -> None:
        if self.trigger is not None:
            await self.trigger.stop()


def create_app_components(
    use_storage: bool = True,
    clock: Optional[Clock] = None,
) -> tuple[LedgerApp, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to use the configured storage backend.
                    Set to False for testing with in-memory storage.
        clock: Time source shared by every component

    Returns:
        (ledger_app, sheets_client)

    The daily trigger is not started here; call
    LedgerApp.start_scheduler() from inside the event loop.
    """
    settings = get_settings()
    configure_logging(settings.app.log_level)
    ledger_settings = settings.ledger

    sheets_client = None
    store: RecordStoreInterface = InMemoryRecordStore()
    audit_storage: AuditStorageInterface = InMemoryAuditStorage()

    if use_storage and ledger_settings.storage_backend == "google_sheets":
        try:
            sheets_client = GoogleSheetsClient()
            store = GoogleSheetsRecordStore(sheets_client)
            audit_storage = GoogleSheetsAuditStorage(sheets_client)
        except Exception as e:
            # Storage not configured - continue in memory
            logger.warning("storage_not_configured", error=str(e), fallback="memory")
            sheets_client = None
            store = InMemoryRecordStore()
            audit_storage = InMemoryAuditStorage()

    app = LedgerApp(
        store,
        audit_logger=AuditLogger(audit_storage),
        settings=ledger_settings,
        clock=clock,
    )
    return app, sheets_client
