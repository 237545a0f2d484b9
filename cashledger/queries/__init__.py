"""Read-side queries: balance, budgets, history and statistics."""

from cashledger.queries.aggregator import LedgerAggregator
from cashledger.queries.history import (
    BalanceHistoryProjector,
    classify_trend,
    fit_trend,
    project,
)
from cashledger.queries.stats import LedgerStatistics

__all__ = [
    "BalanceHistoryProjector",
    "LedgerAggregator",
    "LedgerStatistics",
    "classify_trend",
    "fit_trend",
    "project",
]
