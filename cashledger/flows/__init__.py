"""
Record flows.

One flow class per record kind. Each checks identity, ownership and
arguments before writing, and audits every change.
"""

from cashledger.flows.access import require_owned, require_user
from cashledger.flows.balance import InitialBalanceFlow
from cashledger.flows.base import UNCHANGED, LedgerFlow
from cashledger.flows.budgets import BudgetFlow
from cashledger.flows.categories import DEFAULT_CATEGORIES, CategoryFlow
from cashledger.flows.debts import DebtFlow
from cashledger.flows.goals import GoalFlow, goal_progress
from cashledger.flows.rules import RecurringRuleFlow
from cashledger.flows.transactions import TransactionFlow

__all__ = [
    "DEFAULT_CATEGORIES",
    "UNCHANGED",
    "BudgetFlow",
    "CategoryFlow",
    "DebtFlow",
    "GoalFlow",
    "InitialBalanceFlow",
    "LedgerFlow",
    "RecurringRuleFlow",
    "TransactionFlow",
    "goal_progress",
    "require_owned",
    "require_user",
]
