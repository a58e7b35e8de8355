"""
Sliding one-hour quota for manual "refresh now" requests.

Only accepted refreshes are recorded. The background poll has its own
backoff and never touches this log.
"""

import time
import threading
from typing import Callable

WINDOW_MS = 60 * 60 * 1000


def _now_ms() -> int:
    return int(time.time() * 1000)


class ManualRefreshLimiter:
    def __init__(self, max_per_hour: int = 20, clock: Callable[[], int] = _now_ms):
        self.max_per_hour = max_per_hour
        self.clock = clock
        self._calls = []
        self._lock = threading.Lock()

    def _prune(self, now: int):
        cutoff = now - WINDOW_MS
        self._calls = [t for t in self._calls if t >= cutoff]

    def remaining(self) -> int:
        with self._lock:
            self._prune(self.clock())
            return max(0, self.max_per_hour - len(self._calls))

    def reset_in_ms(self) -> int:
        """Time until the oldest call in the window expires (0 if none)."""
        with self._lock:
            now = self.clock()
            self._prune(now)
            if not self._calls:
                return 0
            return max(0, self._calls[0] + WINDOW_MS - now)

    def call_count(self) -> int:
        with self._lock:
            self._prune(self.clock())
            return len(self._calls)

    def record_call(self):
        with self._lock:
            now = self.clock()
            self._prune(now)
            self._calls.append(now)

    def try_acquire(self):
        """Reserve a slot in the window. Returns its timestamp, or None when full."""
        with self._lock:
            now = self.clock()
            self._prune(now)
            if len(self._calls) >= self.max_per_hour:
                return None
            self._calls.append(now)
            return now

    def release(self, stamp):
        """Give back a slot reserved by try_acquire (the refresh did not happen)."""
        with self._lock:
            if stamp in self._calls:
                self._calls.remove(stamp)

    def status(self) -> dict:
        return {
            "remaining": self.remaining(),
            "resetInMs": self.reset_in_ms(),
            "maxPerHour": self.max_per_hour,
        }
