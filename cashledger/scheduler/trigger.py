"""
Daily trigger for the recurring schedule engine.

Runs process_due once a day at a fixed UTC time as an asyncio
background task. The manual path (generate_now) does not go through
here; both meet in the engine.
"""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Awaitable, Callable, Optional

import structlog

from cashledger.clock import Clock, SystemClock
from cashledger.config import SchedulerSettings
from cashledger.models.reports import ProcessDueSummary
from cashledger.scheduler.engine import RecurringScheduleEngine

logger = structlog.get_logger("cashledger.scheduler.trigger")


class DailyTrigger:
    """
    Fires RecurringScheduleEngine.process_due at hour:minute UTC every day.

    A failed run is logged and the trigger waits for the next day;
    it never stops on its own.
    """

    def __init__(
        self,
        engine: RecurringScheduleEngine,
        clock: Optional[Clock] = None,
        hour_utc: int = 0,
        minute_utc: int = 0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if not 0 <= hour_utc <= 23 or not 0 <= minute_utc <= 59:
            raise ValueError(f"Invalid trigger time {hour_utc:02d}:{minute_utc:02d}")
        self._engine = engine
        self._clock = clock or SystemClock()
        self._hour = hour_utc
        self._minute = minute_utc
        self._sleep = sleep
        self._task: Optional[asyncio.Task] = None
        self.last_summary: Optional[ProcessDueSummary] = None

    @classmethod
    def from_settings(
        cls,
        engine: RecurringScheduleEngine,
        settings: SchedulerSettings,
        clock: Optional[Clock] = None,
    ) -> "DailyTrigger":
        return cls(
            engine,
            clock=clock,
            hour_utc=settings.run_hour_utc,
            minute_utc=settings.run_minute_utc,
        )

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def next_run_at(self, now: Optional[datetime] = None) -> datetime:
        """First scheduled instant strictly after `now`."""
        now = (now or self._clock.now()).astimezone(timezone.utc)
        candidate = now.replace(hour=self._hour, minute=self._minute, second=0, microsecond=0)
        if candidate <= now:
            candidate += timedelta(days=1)
        return candidate

    def seconds_until_next_run(self, now: Optional[datetime] = None) -> float:
        now = now or self._clock.now()
        return (self.next_run_at(now) - now).total_seconds()

    async def run_once(self) -> ProcessDueSummary:
        """Run one batch pass immediately."""
        summary = await self._engine.process_due(self._clock.now())
        self.last_summary = summary
        logger.info(
            "daily_trigger_fired",
            generated=summary.generated,
            skipped=summary.skipped,
            failed=summary.failed,
            total=summary.total,
        )
        return summary

    async def _loop(self) -> None:
        while True:
            delay = self.seconds_until_next_run()
            logger.debug("daily_trigger_sleeping", seconds=delay)
            await self._sleep(delay)
            try:
                await self.run_once()
            except Exception as e:
                logger.error("daily_trigger_run_failed", error=str(e), exc_info=True)

    def start(self) -> None:
        """Start the background task. Must be called from a running event loop."""
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._loop())
        logger.info("daily_trigger_started", hour_utc=self._hour, minute_utc=self._minute)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("daily_trigger_stopped")
