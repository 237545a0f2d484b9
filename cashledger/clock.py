"""
Injected time sources.

Everything that needs "now" receives a Clock instead of reading the
wall clock, so idempotency windows and calendar boundaries can be
tested at exact instants.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Optional

from cashledger.models.records import ensure_utc, utc_now


class Clock(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Current instant as an aware UTC datetime."""
        pass


class SystemClock(Clock):
    def now(self) -> datetime:
        return utc_now()


class FixedClock(Clock):
    """A clock that only moves when told to."""

    def __init__(self, at: Optional[datetime] = None):
        self._now = ensure_utc(at) if at else utc_now()

    def now(self) -> datetime:
        return self._now

    def set(self, at: datetime) -> None:
        self._now = ensure_utc(at)

    def advance(self, delta: Optional[timedelta] = None, **kwargs) -> datetime:
        """Move forward by `delta` or by timedelta(**kwargs); returns the new now."""
        self._now += delta if delta is not None else timedelta(**kwargs)
        return self._now
