"""
Environment configuration for the ClickUp live work board.

Values come from the process environment, optionally seeded from a local
.env file. Missing ClickUp credentials are not an error: the board falls
back to mock mode with a fixed demo dataset.
"""

import os
import logging
from dataclasses import dataclass

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

load_dotenv()

DEFAULT_PORT = 5173
DEFAULT_POLL_INTERVAL_MS = 30000
DEFAULT_MANUAL_REFRESH_MAX_PER_HOUR = 20
DEFAULT_API_BASE = "https://api.clickup.com/api/v2"


@dataclass(frozen=True)
class Config:
    clickup_token: str = ""
    clickup_team_id: str = ""
    port: int = DEFAULT_PORT
    poll_interval_ms: int = DEFAULT_POLL_INTERVAL_MS
    manual_refresh_max_per_hour: int = DEFAULT_MANUAL_REFRESH_MAX_PER_HOUR
    api_base: str = DEFAULT_API_BASE

    @property
    def mock_mode(self) -> bool:
        """True when there is nothing to poll (no token or no team)."""
        return not self.clickup_token or not self.clickup_team_id


def _int_env(environ, name: str, default: int) -> int:
    raw = environ.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {name}: {raw!r}, using default {default}")
        return default


def load_config(environ=None) -> Config:
    """Build a Config from the environment (os.environ unless given)."""
    if environ is None:
        environ = os.environ

    token = environ.get("CLICKUP_TOKEN") or environ.get("CLICKUP_API_TOKEN", "")
    config = Config(
        clickup_token=token.strip(),
        clickup_team_id=environ.get("CLICKUP_TEAM_ID", "").strip(),
        port=_int_env(environ, "PORT", DEFAULT_PORT),
        poll_interval_ms=_int_env(environ, "POLL_INTERVAL_MS", DEFAULT_POLL_INTERVAL_MS),
        manual_refresh_max_per_hour=_int_env(
            environ, "MANUAL_REFRESH_MAX_PER_HOUR", DEFAULT_MANUAL_REFRESH_MAX_PER_HOUR
        ),
        api_base=environ.get("CLICKUP_API_BASE", DEFAULT_API_BASE).rstrip("/"),
    )

    if config.mock_mode:
        logger.info("CLICKUP_TOKEN/CLICKUP_TEAM_ID not set - running in MOCK mode")
    return config
