"""
Balance History Projector

Reconstructs the end-of-day balance over a trailing window and
extrapolates it with an ordinary least squares line.

Only transactions move this series; debts and goals are deliberately
left out, so the series is a cash-flow view rather than the full
current balance.
"""

from collections import defaultdict
from datetime import date, datetime, timedelta
from typing import Optional

import numpy as np

from cashledger.clock import Clock, SystemClock
from cashledger.config import LedgerSettings, get_settings
from cashledger.models.records import Transaction, ensure_utc
from cashledger.models.reports import BalanceHistory, BalancePoint, TrendDirection
from cashledger.queries.periods import day_start, local_date
from cashledger.services.storage import RecordStoreInterface
from cashledger.validation import RecordValidator

# Slopes smaller than this are float noise from polyfit on a flat series
SLOPE_EPSILON = 1e-9


def fit_trend(balances: list[float]) -> tuple[float, float]:
    """
    OLS fit of balance against the 0-based day index.

    Returns (slope, intercept). With fewer than two points there is
    nothing to fit: the line is flat at the only balance (or at 0).
    """
    if not balances:
        return 0.0, 0.0
    if len(balances) == 1:
        return 0.0, float(balances[0])

    x = np.arange(len(balances))
    y = np.asarray(balances, dtype=float)
    slope, intercept = np.polyfit(x, y, 1)
    slope, intercept = float(slope), float(intercept)
    if abs(slope) < SLOPE_EPSILON:
        slope = 0.0
    return slope, intercept


def classify_trend(slope: float) -> TrendDirection:
    if slope > 0:
        return TrendDirection.IMPROVING
    if slope < 0:
        return TrendDirection.DECLINING
    return TrendDirection.FLAT


def project(
    points: list[BalancePoint],
    slope: float,
    intercept: float,
    horizon: int,
) -> list[BalancePoint]:
    """Extend the fitted line `horizon` days past the last point."""
    if not points:
        return []
    n = len(points)
    last_day = points[-1].day
    return [
        BalancePoint(
            day=last_day + timedelta(days=k),
            balance=slope * (n - 1 + k) + intercept,
        )
        for k in range(1, horizon + 1)
    ]


class BalanceHistoryProjector:
    """Builds BalanceHistory series for one user at a time."""

    def __init__(
        self,
        store: RecordStoreInterface,
        settings: Optional[LedgerSettings] = None,
        clock: Optional[Clock] = None,
        validator: Optional[RecordValidator] = None,
    ):
        self._store = store
        self._settings = settings or get_settings().ledger
        self._clock = clock or SystemClock()
        self._validator = validator or RecordValidator(self._settings)

    async def balance_history(
        self,
        user_id: str,
        days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> BalanceHistory:
        """
        Daily balance over the last `days` days plus today, and a forecast.

        Args:
            user_id: Owner of the transactions
            days: Window length; the series has days + 1 points
            now: Reference instant; defaults to the injected clock

        Raises:
            InvalidArgumentError: If days is negative
        """
        if days is None:
            days = self._settings.default_history_days
        self._validator.ensure_valid(self._validator.validate_history_days(days))

        tz = self._settings.tzinfo
        now = ensure_utc(now) if now else self._clock.now()
        today = local_date(now, tz)
        first_day = today - timedelta(days=days)
        window_start = day_start(first_day, tz)

        initial = await self._store.get_initial_balance(user_id)
        transactions = await self._store.list_records(Transaction, user_id=user_id)

        running = initial.amount if initial else 0.0
        net_by_day: dict[date, float] = defaultdict(float)
        for t in transactions:
            if t.occurred_at < window_start:
                running += t.signed_amount
            else:
                net_by_day[local_date(t.occurred_at, tz)] += t.signed_amount

        points = []
        for offset in range(days + 1):
            day = first_day + timedelta(days=offset)
            running += net_by_day.get(day, 0.0)
            points.append(BalancePoint(day=day, balance=running))

        slope, intercept = fit_trend([p.balance for p in points])
        return BalanceHistory(
            user_id=user_id,
            days=days,
            points=points,
            projection=project(points, slope, intercept, self._settings.forecast_days),
            slope=slope,
            intercept=intercept,
            trend=classify_trend(slope),
        )
