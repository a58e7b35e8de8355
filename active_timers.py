"""
Active timer detection for team members.

ClickUp reports a running timer inconsistently across workspaces and API
versions, so an entry counts as running when any one of several signals
says so. The board polls every member's recent entries in a small thread
pool and treats any per-member failure as "idle".
"""

import time
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, List, Optional

from clickup_client import extract_entry, extract_time_entries

logger = logging.getLogger(__name__)

LOOKBACK_MS = 7 * 24 * 60 * 60 * 1000  # 7 days, so multi-day sessions still show
PROBE_CONCURRENCY = 5
DEFAULT_TASK_NAME = "Working…"


def now_ms() -> int:
    return int(time.time() * 1000)


def is_active_entry(entry) -> bool:
    """A time entry is still running if any of these signals say so.

    - no duration
    - negative duration (ClickUp's "running" convention)
    - no `end`
    - no `end_time`
    """
    if not isinstance(entry, dict):
        return False
    duration = entry.get("duration")
    if duration is None:
        return True
    if _is_number(duration) and float(duration) < 0:
        return True
    return entry.get("end") is None or entry.get("end_time") is None


def _is_number(value) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, (int, float)):
        return True
    # ClickUp serializes durations as strings ("-1699999")
    if isinstance(value, str):
        try:
            float(value)
            return True
        except ValueError:
            return False
    return False


def entry_start(entry) -> int:
    """Start time in millis (`start` or `start_time`), 0 when unknown."""
    raw = entry.get("start")
    if raw is None:
        raw = entry.get("start_time")
    try:
        return int(float(raw))
    except (TypeError, ValueError):
        return 0


def latest_active_entry(entries: list) -> Optional[dict]:
    """Most recently started running entry; later list position wins ties."""
    latest = None
    for entry in entries:
        if not is_active_entry(entry):
            continue
        if latest is None or entry_start(entry) >= entry_start(latest):
            latest = entry
    return latest


def build_timer_info(user_id: str, entry: dict) -> dict:
    """ActiveTimerInfo for a running entry. Start stays None when unknown."""
    task = entry.get("task") if isinstance(entry.get("task"), dict) else {}

    task_name = (
        task.get("name")
        or entry.get("task_name")
        or entry.get("description")
        or DEFAULT_TASK_NAME
    )
    task_id = task.get("id") or entry.get("task_id") or None
    start = entry_start(entry) or None

    return {
        "userId": str(user_id),
        "taskId": str(task_id) if task_id is not None else None,
        "taskName": task_name,
        "start": start,
    }


class ActiveTimerDetector:
    """Find the running timer (if any) for one member.

    `identity` is a zero-argument callable returning the token owner's user
    id (or None). Only that user can be checked against the dedicated
    "current timer" endpoint, so it is used as a fallback for them alone.
    """

    def __init__(self, client, identity: Callable[[], Optional[str]] = lambda: None,
                 clock: Callable[[], int] = now_ms):
        self.client = client
        self.identity = identity
        self.clock = clock

    def detect(self, user_id: str) -> Optional[dict]:
        user_id = str(user_id)
        now = self.clock()
        listing = self.client.get_time_entries(user_id, now - LOOKBACK_MS, now)
        active = latest_active_entry(extract_time_entries(listing))

        if active is None:
            my_user_id = self.identity()
            if my_user_id and user_id == str(my_user_id):
                active = self._current_timer()

        if active is None:
            return None
        return build_timer_info(user_id, active)

    def _current_timer(self) -> Optional[dict]:
        """Running entry from /time_entries/current, enriched with its detail."""
        try:
            current = extract_entry(self.client.get_current_time_entry())
            if isinstance(current, list):
                current = next((e for e in current if is_active_entry(e)), None)
            if not is_active_entry(current):
                return None
            detailed = self._entry_details(current.get("id") or current.get("timer_id"))
            return detailed or current
        except Exception as e:
            logger.warning(f"Current timer endpoint failed: {e}")
            return None

    def _entry_details(self, entry_id) -> Optional[dict]:
        if not entry_id:
            return None
        try:
            detail = extract_entry(self.client.get_time_entry(str(entry_id)))
        except Exception as e:
            logger.warning(f"Time entry detail failed for {entry_id}: {e}")
            return None
        if isinstance(detail, list):
            detail = detail[0] if detail else None
        return detail if isinstance(detail, dict) and detail else None


def probe_all_members(members: list, detect: Callable[[str], Optional[dict]],
                      concurrency: int = PROBE_CONCURRENCY) -> List[dict]:
    """Run `detect` for every member with at most `concurrency` in flight.

    Returns the non-None results in completion order. A member whose probe
    raises is logged and left out; it never affects the other members.
    """
    if not members:
        return []

    results = []
    workers = max(1, min(concurrency, len(members)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="timer-probe") as pool:
        futures = {pool.submit(detect, member["id"]): member["id"] for member in members}
        for future in as_completed(futures):
            user_id = futures[future]
            try:
                active = future.result()
            except Exception as e:
                logger.warning(f"time_entries error for {user_id}: {e}")
                continue
            if active:
                results.append(active)

    logger.info(f"Probed {len(members)} members: {len(results)} with a running timer")
    return results
