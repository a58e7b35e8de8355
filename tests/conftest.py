"""Shared fakes for the live board tests: a controllable clock and a ClickUp stand-in."""

import pytest

from clickup_client import ClickUpError

NOW = 1_700_000_000_000


class FakeClock:
    def __init__(self, now=NOW):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


class FakeClickUp:
    """In-memory replacement for ClickUpClient.

    entries: {user_id: [time entry dicts]}
    failing: {user_id: exception to raise from get_time_entries}
    """

    def __init__(self, members=None, entries=None, me=None):
        self.members = members or []
        self.entries = entries or {}
        self.failing = {}
        self.me = me
        self.me_error = None
        self.members_error = None
        self.current = {"data": None}
        self.current_error = None
        self.details = {}
        self.calls = []

    def get_me(self):
        self.calls.append("me")
        if self.me_error:
            raise self.me_error
        return {"user": {"id": self.me}}

    def get_members(self):
        self.calls.append("members")
        if self.members_error:
            raise self.members_error
        return [dict(m) for m in self.members]

    def get_time_entries(self, assignee_id, start_ms, end_ms):
        self.calls.append(("entries", assignee_id, start_ms, end_ms))
        if assignee_id in self.failing:
            raise self.failing[assignee_id]
        return {"data": self.entries.get(assignee_id, [])}

    def get_current_time_entry(self):
        self.calls.append("current")
        if self.current_error:
            raise self.current_error
        return self.current

    def get_time_entry(self, entry_id):
        self.calls.append(("detail", entry_id))
        if entry_id not in self.details:
            raise ClickUpError("not found", status=404)
        return {"data": self.details[entry_id]}


def member(user_id, name=None):
    return {"id": str(user_id), "name": name or f"User {user_id}", "email": None, "avatarUrl": None}


def running_entry(start, task_id="t1", task_name="Build board", **extra):
    entry = {
        "id": f"e-{start}",
        "start": str(start),
        "duration": str(-start),
        "end": None,
        "task": {"id": task_id, "name": task_name},
    }
    entry.update(extra)
    return entry


def stopped_entry(start, end):
    return {
        "id": f"e-{start}",
        "start": str(start),
        "end": str(end),
        "end_time": str(end),
        "duration": str(end - start),
        "task": {"id": "old", "name": "Old task"},
    }


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_clickup():
    return FakeClickUp()
