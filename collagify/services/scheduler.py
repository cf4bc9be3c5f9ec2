# collagify/services/scheduler.py
import asyncio
import logging
from datetime import datetime, time, timedelta, tzinfo
from typing import Awaitable, Callable, Optional

logger = logging.getLogger(__name__)


def seconds_until(now: datetime, at: time) -> float:
    """Seconds from `now` to the next occurrence of wall-clock time `at` (same zone as `now`)."""
    target = now.replace(hour=at.hour, minute=at.minute, second=0, microsecond=0)
    if target <= now:
        target += timedelta(days=1)
    return (target - now).total_seconds()


class DailyScheduler:
    """Runs one coroutine once a day at a fixed time of day.

    The next fire time is computed only after the previous job returned, so two
    runs never overlap.
    """

    def __init__(self, at: time, zone: tzinfo, job: Callable[[], Awaitable[None]]):
        self.at = at
        self.zone = zone
        self.job = job
        self._task: Optional[asyncio.Task] = None

    async def _loop(self):
        while True:
            delay = seconds_until(datetime.now(self.zone), self.at)
            logger.info("Next collage run in %.0f seconds.", delay)
            await asyncio.sleep(delay)
            try:
                await self.job()
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.exception("Scheduled job failed")

    def start(self):
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._loop())

    async def stop(self):
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
