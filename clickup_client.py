"""
ClickUp API client and payload extraction helpers.

ClickUp has returned several different JSON layouts for the same resource
over time (and across workspaces), so every field the board depends on is
read through a small extractor that tries the known layouts in priority
order.
"""

import json
import logging
import socket
import urllib.error
import urllib.parse
import urllib.request
from typing import Optional

logger = logging.getLogger(__name__)

REQUEST_TIMEOUT = 30  # seconds


class ClickUpError(Exception):
    """Raised for any failed ClickUp request (HTTP, network or bad JSON)."""

    def __init__(self, message: str, status: Optional[int] = None, endpoint: str = "",
                 retry_after_ms: int = 0, body: str = ""):
        super().__init__(message)
        self.status = status
        self.endpoint = endpoint
        self.retry_after_ms = retry_after_ms
        self.body = body


def parse_retry_after(value) -> int:
    """Convert a Retry-After header (seconds) to milliseconds, 0 if unusable."""
    if value is None:
        return 0
    try:
        seconds = float(str(value).strip())
    except ValueError:
        return 0
    if seconds <= 0:
        return 0
    return int(seconds * 1000)


class ClickUpClient:
    """Thin wrapper around the ClickUp v2 REST endpoints the board needs."""

    def __init__(self, token: str, team_id: str, api_base: str = "https://api.clickup.com/api/v2",
                 timeout: int = REQUEST_TIMEOUT):
        self.token = token
        self.team_id = team_id
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout

    def request(self, endpoint: str, params: Optional[dict] = None):
        """GET an endpoint and return the decoded JSON body."""
        url = f"{self.api_base}{endpoint}"
        if params:
            url += "?" + urllib.parse.urlencode(params)
        req = urllib.request.Request(url, headers={
            "Authorization": self.token,
            "Accept": "application/json",
        })

        logger.info(f"ClickUp API request: {endpoint}")
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as response:
                raw = response.read().decode()
        except urllib.error.HTTPError as e:
            retry_after_ms = parse_retry_after(e.headers.get("Retry-After") if e.headers else None)
            try:
                body = e.read().decode()[:500]
            except Exception:
                body = ""
            logger.error(f"ClickUp API HTTP error: {e.code} - {e.reason} for {endpoint}")
            raise ClickUpError(f"ClickUp API returned {e.code} for {endpoint}", status=e.code,
                               endpoint=endpoint, retry_after_ms=retry_after_ms, body=body) from e
        except urllib.error.URLError as e:
            logger.error(f"ClickUp API URL error: {e.reason} for {endpoint}")
            raise ClickUpError(f"ClickUp API unreachable: {e.reason}", endpoint=endpoint) from e
        except (TimeoutError, socket.timeout) as e:
            logger.error(f"ClickUp API timeout for {endpoint}")
            raise ClickUpError(f"ClickUp API timed out for {endpoint}", endpoint=endpoint) from e
        except UnicodeDecodeError as e:
            logger.error(f"ClickUp API returned undecodable body for {endpoint}")
            raise ClickUpError(f"Undecodable response from {endpoint}", endpoint=endpoint) from e

        try:
            return json.loads(raw) if raw else {}
        except json.JSONDecodeError as e:
            logger.error(f"ClickUp API returned invalid JSON for {endpoint}")
            raise ClickUpError(f"Invalid JSON from {endpoint}", endpoint=endpoint, body=raw[:500]) from e

    # ------------------------------------------------------------------
    # Endpoints
    # ------------------------------------------------------------------

    def get_me(self) -> dict:
        return self.request("/user")

    def get_team(self) -> dict:
        return self.request(f"/team/{self.team_id}")

    def get_time_entries(self, assignee_id: str, start_ms: int, end_ms: int) -> dict:
        return self.request(f"/team/{self.team_id}/time_entries", {
            "assignee": assignee_id,
            "start_date": start_ms,
            "end_date": end_ms,
            "include_task": "true",
        })

    def get_current_time_entry(self):
        return self.request(f"/team/{self.team_id}/time_entries/current")

    def get_time_entry(self, entry_id: str):
        return self.request(f"/team/{self.team_id}/time_entries/{entry_id}",
                            {"include_task": "true"})

    def get_members(self) -> list:
        """Fetch the team and normalize its member list."""
        return extract_members(self.get_team())


# ============================================================================
# Payload extraction
# ============================================================================

def _dig(data, *keys):
    """Walk nested dicts/lists, returning None as soon as a step is missing."""
    current = data
    for key in keys:
        if isinstance(key, int):
            if not isinstance(current, list) or len(current) <= key:
                return None
        elif not isinstance(current, dict):
            return None
        current = current[key] if isinstance(key, int) else current.get(key)
        if current is None:
            return None
    return current


MEMBER_LIST_PATHS = (
    ("team", "members"),
    ("members",),
    ("teams", 0, "members"),
)


def extract_member_records(data) -> list:
    """Return the raw member records from a /team payload (first non-empty layout)."""
    for path in MEMBER_LIST_PATHS:
        records = _dig(data, *path)
        if isinstance(records, list) and records:
            return records
    return []


def normalize_member(record) -> Optional[dict]:
    """Turn one member record (wrapped in `user` or bare) into a Member dict."""
    if not isinstance(record, dict):
        return None
    user = record.get("user") if isinstance(record.get("user"), dict) else record

    user_id = user.get("id")
    if user_id is None or user_id == "":
        return None
    user_id = str(user_id)

    return {
        "id": user_id,
        "name": user.get("username") or user.get("email") or user_id or "Unknown",
        "email": user.get("email") or None,
        "avatarUrl": user.get("profilePicture") or None,
    }


def extract_members(data) -> list:
    members = []
    for record in extract_member_records(data):
        member = normalize_member(record)
        if member:
            members.append(member)
        else:
            logger.debug(f"Skipping member record without id: {record!r}")
    return members


def extract_time_entries(data) -> list:
    """Time entry listings come back under `data` or `time_entries`."""
    for key in ("data", "time_entries"):
        entries = _dig(data, key)
        if isinstance(entries, list):
            return entries
    return []


def extract_user_id(data) -> Optional[str]:
    """Identity payloads carry the id under `user.id` or at the top level."""
    for path in (("user", "id"), ("id",)):
        value = _dig(data, *path)
        if value is not None and value != "":
            return str(value)
    return None


def extract_entry(data):
    """Single-entry endpoints wrap the entry in `data` (null when no timer runs)."""
    if isinstance(data, dict) and "data" in data:
        return data["data"]
    return data
