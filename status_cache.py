"""
In-memory status cache for the live work board.

Holds one immutable Snapshot of members and running timers. A refresh
builds the next snapshot off to the side and swaps it in with a single
assignment, so /api/status never sees a half-built result and a failed
refresh leaves the last good snapshot in place.
"""

import logging
import threading
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Callable, Mapping, Optional, Tuple

from active_timers import ActiveTimerDetector, now_ms, probe_all_members, PROBE_CONCURRENCY
from clickup_client import extract_user_id

logger = logging.getLogger(__name__)

MOCK_TASK_AGE_MS = 10 * 60 * 1000


@dataclass(frozen=True)
class Snapshot:
    last_updated: int = 0
    members: Tuple[dict, ...] = ()
    working_user_ids: frozenset = frozenset()
    working_by_user_id: Mapping[str, dict] = field(default_factory=lambda: MappingProxyType({}))

    def to_dict(self) -> dict:
        """JSON shape served to the dashboard."""
        return {
            "lastUpdated": self.last_updated,
            "members": [dict(m) for m in self.members],
            "workingUserIds": sorted(self.working_user_ids),
            "workingByUserId": {uid: dict(info) for uid, info in self.working_by_user_id.items()},
        }


def make_snapshot(last_updated: int, members, working_by_user_id: dict) -> Snapshot:
    return Snapshot(
        last_updated=last_updated,
        members=tuple(members),
        working_user_ids=frozenset(working_by_user_id),
        working_by_user_id=MappingProxyType(dict(working_by_user_id)),
    )


def merge_running(previous: Mapping[str, dict], running: list) -> dict:
    """Merge fresh probe results over the previous working map.

    Users without a fresh result are dropped. When a fresh result has no
    start but the previous snapshot knew one, the old start is kept so the
    elapsed timer on the board does not jump back to zero.
    """
    current_ids = {r["userId"] for r in running}
    merged = {uid: info for uid, info in previous.items() if uid in current_ids}
    for result in running:
        result = dict(result)
        prev = merged.get(result["userId"])
        if not result.get("start") and prev and prev.get("start"):
            result["start"] = prev["start"]
        merged[result["userId"]] = result
    return merged


def mock_snapshot(now: int) -> Snapshot:
    members = [
        {"id": "1", "name": "Alice", "email": None, "avatarUrl": None},
        {"id": "2", "name": "Bob", "email": None, "avatarUrl": None},
        {"id": "3", "name": "Charlie", "email": None, "avatarUrl": None},
    ]
    working = {
        "2": {
            "userId": "2",
            "taskId": "TASK-123",
            "taskName": "Design homepage",
            "start": now - MOCK_TASK_AGE_MS,
        },
    }
    return make_snapshot(now, members, working)


class StatusCache:
    """Owner of the shared Snapshot.

    `client` is a ClickUpClient, or None for mock mode.
    """

    def __init__(self, client=None, clock: Callable[[], int] = now_ms,
                 concurrency: int = PROBE_CONCURRENCY):
        self.client = client
        self.clock = clock
        self.concurrency = concurrency
        self.my_user_id: Optional[str] = None
        self.detector = ActiveTimerDetector(client, identity=lambda: self.my_user_id,
                                            clock=clock) if client else None
        self._snapshot = Snapshot()
        self._lock = threading.Lock()

    @property
    def mock_mode(self) -> bool:
        return self.client is None

    def snapshot(self) -> Snapshot:
        with self._lock:
            return self._snapshot

    def _swap(self, snapshot: Snapshot):
        with self._lock:
            self._snapshot = snapshot

    def ensure_identity(self):
        """Fetch the token owner's id once. Failures are logged, not raised."""
        if self.my_user_id:
            return
        try:
            self.my_user_id = extract_user_id(self.client.get_me())
            logger.info(f"Token user id: {self.my_user_id}")
        except Exception as e:
            logger.error(f"Failed to fetch /user: {e}")

    def refresh(self) -> Snapshot:
        """Rebuild the snapshot from ClickUp. Raises on failure, old snapshot kept."""
        if self.mock_mode:
            snapshot = mock_snapshot(self.clock())
            self._swap(snapshot)
            return snapshot

        self.ensure_identity()

        members = self.client.get_members()
        running = probe_all_members(members, self.detector.detect, self.concurrency)
        previous = self.snapshot()
        working = merge_running(previous.working_by_user_id, running)

        snapshot = make_snapshot(self.clock(), members, working)
        self._swap(snapshot)
        logger.info(f"Status cache refreshed: {len(members)} members, {len(working)} working")
        return snapshot
