import asyncio
import datetime
import logging
import math
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

logger = logging.getLogger(__name__)


@dataclass
class ScheduleState:
    interval: datetime.timedelta
    next_fire: float  # monotonic seconds


class Scheduler:
    """
    Fires a tick immediately and then on every interval boundary, forever.

    Boundaries sit on a fixed grid from the first fire, so a slow tick does not
    push later ticks back. Ticks never overlap: the next one starts only after
    the previous one returned. If a tick overruns one or more boundaries they
    collapse into a single immediate fire, after which the grid resumes.
    """

    def __init__(self, interval: datetime.timedelta,
                 clock: Callable[[], float] = time.monotonic,
                 sleep: Callable[[float], Awaitable[None]] = asyncio.sleep):
        if interval <= datetime.timedelta(0):
            raise ValueError("interval must be positive")
        self.interval = interval
        self.clock = clock
        self.sleep = sleep
        self.state = None

    def _advance(self, now: float) -> float:
        """Move ``next_fire`` to the next grid point and return the delay until it."""
        step = self.interval.total_seconds()
        self.state.next_fire += step
        if now >= self.state.next_fire:
            missed = math.floor((now - self.state.next_fire) / step)
            logger.warning("Tick overran %d interval boundary(ies), firing again now", missed + 1)
            self.state.next_fire += missed * step
            return 0.0
        return self.state.next_fire - now

    async def run(self, tick: Callable[[], Awaitable[None]]) -> None:
        """Run ``tick`` on schedule. Only returns if ``tick`` raises."""
        self.state = ScheduleState(interval=self.interval, next_fire=self.clock())
        logger.info("Scheduler started, interval %s", self.interval)

        while True:
            await tick()
            delay = self._advance(self.clock())
            if delay > 0:
                logger.debug("Next tick in %.1fs", delay)
                await self.sleep(delay)
