"""
Rainwatch - Check Timer

Periodic trigger for scheduled checks, backed by an APScheduler interval
job on the running asyncio loop.
"""

import logging
from datetime import datetime, timedelta
from typing import Awaitable, Callable, Optional

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from rainwatch.settings import settings

logger = logging.getLogger(__name__)


class CheckTimer:
    """
    Single re-armable interval timer.

    Arming replaces any previous job, so there is never more than one
    pending fire. Missed fires (process suspended, loop busy) coalesce into
    a single late run rather than a burst.
    """

    JOB_ID = "scheduled_rain_check"

    def __init__(self, scheduler: Optional[AsyncIOScheduler] = None, clock: Optional[Callable[[], datetime]] = None):
        self.scheduler = scheduler or AsyncIOScheduler(timezone=settings.TIMEZONE)
        self._clock = clock or (lambda: datetime.now(settings.TIMEZONE))
        # AsyncIOScheduler.shutdown is deferred to the loop, running stays True until then
        self._stopped = False

    def arm(self, interval_seconds: int, callback: Callable[[], Awaitable[None]]) -> datetime:
        """Schedule ``callback`` every ``interval_seconds`` starting one interval from now.

        Returns:
            The first fire time, or the would-be fire time once the timer is shut down
        """
        next_fire = self._clock() + timedelta(seconds=int(interval_seconds))
        if self._stopped:
            logger.debug("[TIMER] Shut down, not arming")
            return next_fire
        if not self.scheduler.running:
            self.scheduler.start()

        self.scheduler.add_job(
            callback,
            trigger=IntervalTrigger(seconds=int(interval_seconds), start_date=next_fire),
            id=self.JOB_ID,
            name="Scheduled rain check",
            replace_existing=True,
            coalesce=True,
            max_instances=1,
            misfire_grace_time=None,
        )
        logger.debug(f"[TIMER] Armed every {int(interval_seconds)}s, next fire {next_fire.isoformat()}")
        return next_fire

    def cancel(self):
        """Drop the pending job, if any."""
        if not self._stopped and self.scheduler.running and self.scheduler.get_job(self.JOB_ID):
            self.scheduler.remove_job(self.JOB_ID)
            logger.debug("[TIMER] Cancelled")

    @property
    def is_armed(self) -> bool:
        if self._stopped or not self.scheduler.running:
            return False
        return self.scheduler.get_job(self.JOB_ID) is not None

    def shutdown(self):
        """Stop the scheduler. Safe to call more than once."""
        if self._stopped:
            return
        self._stopped = True
        if self.scheduler.running:
            self.scheduler.remove_all_jobs()
            self.scheduler.shutdown(wait=False)
