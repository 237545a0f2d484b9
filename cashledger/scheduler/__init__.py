"""Recurring transaction scheduling: clock, engine and daily trigger."""

from cashledger.clock import Clock, FixedClock, SystemClock
from cashledger.scheduler.engine import RecurringScheduleEngine
from cashledger.scheduler.trigger import DailyTrigger

__all__ = [
    "Clock",
    "DailyTrigger",
    "FixedClock",
    "RecurringScheduleEngine",
    "SystemClock",
]
