"""
Data Models Package

This package contains all Pydantic models used in the Cash Ledger system.
All data flowing through the system must conform to these schemas.
"""

from cashledger.models.records import (
    RECORD_TYPES,
    Budget,
    Category,
    Debt,
    DebtDirection,
    Frequency,
    Goal,
    InitialBalance,
    LedgerRecord,
    RecurringRule,
    Transaction,
    TransactionKind,
    ValidationIssue,
    ValidationResult,
    utc_now,
)
from cashledger.models.reports import (
    BalanceBreakdown,
    BalanceHistory,
    BalancePoint,
    BudgetStatus,
    CategorizedRule,
    CategorizedTransaction,
    CategoryTotal,
    CurrentBalance,
    DebtView,
    GoalProgress,
    IncomeExpense,
    MonthlyTotal,
    PeriodComparison,
    ProcessDueSummary,
    TrendDirection,
)
from cashledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Records
    "RECORD_TYPES",
    "Budget",
    "Category",
    "Debt",
    "DebtDirection",
    "Frequency",
    "Goal",
    "InitialBalance",
    "LedgerRecord",
    "RecurringRule",
    "Transaction",
    "TransactionKind",
    "ValidationIssue",
    "ValidationResult",
    "utc_now",
    # Read-side models
    "BalanceBreakdown",
    "BalanceHistory",
    "BalancePoint",
    "BudgetStatus",
    "CategorizedRule",
    "CategorizedTransaction",
    "CategoryTotal",
    "CurrentBalance",
    "DebtView",
    "GoalProgress",
    "IncomeExpense",
    "MonthlyTotal",
    "PeriodComparison",
    "ProcessDueSummary",
    "TrendDirection",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
