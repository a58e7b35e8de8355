"""
Background polling of ClickUp with adaptive backoff.

The poll runs as a one-shot APScheduler job that schedules its own
successor, so the delay can change after every run: back to the base
interval on success, doubled (or the server's Retry-After, whichever is
larger) on failure, capped at five minutes.
"""

import atexit
import logging
from datetime import datetime, timedelta

import pytz
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger

logger = logging.getLogger(__name__)

MAX_POLL_DELAY_MS = 5 * 60 * 1000
POLL_JOB_ID = "status_poll"


class Backoff:
    def __init__(self, base_ms: int, max_ms: int = MAX_POLL_DELAY_MS):
        self.base_ms = base_ms
        self.max_ms = max_ms
        self.delay_ms = base_ms
        self.consecutive_failures = 0

    def success(self) -> int:
        self.delay_ms = self.base_ms
        self.consecutive_failures = 0
        return self.delay_ms

    def failure(self, retry_after_ms: int = 0) -> int:
        proposed = max(retry_after_ms or 0, 2 * self.delay_ms)
        self.delay_ms = min(max(proposed, self.base_ms), self.max_ms)
        self.consecutive_failures += 1
        return self.delay_ms


class StatusPoller:
    """Self-rescheduling refresh loop for a StatusCache."""

    def __init__(self, cache, poll_interval_ms: int, scheduler=None):
        self.cache = cache
        self.backoff = Backoff(poll_interval_ms)
        self.scheduler = scheduler or BackgroundScheduler(daemon=True, timezone=pytz.utc)
        self.running = False
        self.last_error = None

    def run_once(self) -> int:
        """Refresh the cache once and return the delay before the next poll."""
        try:
            self.cache.refresh()
        except Exception as e:
            retry_after_ms = getattr(e, "retry_after_ms", 0) or 0
            delay = self.backoff.failure(retry_after_ms)
            self.last_error = str(e)
            logger.error(f"Refresh error: {e} - next poll in {delay} ms", exc_info=True)
            return delay

        self.last_error = None
        return self.backoff.success()

    def _tick(self):
        delay = self.run_once()
        if self.running:
            self._schedule(delay)

    def _schedule(self, delay_ms: int):
        run_date = datetime.now(pytz.utc) + timedelta(milliseconds=delay_ms)
        self.scheduler.add_job(
            func=self._tick,
            trigger=DateTrigger(run_date=run_date, timezone=pytz.utc),
            id=POLL_JOB_ID,
            name="Poll ClickUp for running timers",
            replace_existing=True,
            misfire_grace_time=None,
        )

    def start(self):
        """Start the scheduler and queue an immediate first poll."""
        if self.running:
            return
        self.running = True
        self.scheduler.start()
        self._schedule(0)
        atexit.register(self.stop)
        logger.info(f"Status poller started - base interval {self.backoff.base_ms} ms")

    def stop(self):
        if not self.running:
            return
        self.running = False
        try:
            self.scheduler.shutdown(wait=False)
        except Exception as e:
            logger.warning(f"Scheduler shutdown failed: {e}")
        logger.info("Status poller stopped")
