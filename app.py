"""
ClickUp Live Work Board - who is tracking time right now.

Polls ClickUp for running time-tracking timers, keeps the latest result in
memory and serves it to a dashboard that shows every team member as
working or idle. Without ClickUp credentials the board runs in mock mode
with a small fixed dataset.
"""

import logging

from flask import Blueprint, Flask, current_app, jsonify, render_template, request

from active_timers import LOOKBACK_MS, now_ms
from clickup_client import ClickUpClient, ClickUpError
from config import Config, load_config
from poller import StatusPoller
from rate_limiter import ManualRefreshLimiter
from status_cache import StatusCache

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

board_bp = Blueprint("board", __name__)


class StatusBoard:
    """Everything the routes share: config, cache, limiter and poller."""

    def __init__(self, config: Config, cache: StatusCache, limiter: ManualRefreshLimiter,
                 poller: StatusPoller):
        self.config = config
        self.cache = cache
        self.limiter = limiter
        self.poller = poller


def get_board() -> StatusBoard:
    return current_app.extensions["status_board"]


def create_app(config: Config = None, client=None, start_poller: bool = True,
               scheduler=None) -> Flask:
    """Build the Flask app.

    `client` overrides the ClickUp client built from config (tests pass a
    fake). The background poller only starts when `start_poller` is true.
    """
    if config is None:
        config = load_config()
    if client is None and not config.mock_mode:
        client = ClickUpClient(config.clickup_token, config.clickup_team_id, config.api_base)

    cache = StatusCache(client)
    limiter = ManualRefreshLimiter(config.manual_refresh_max_per_hour)
    poller = StatusPoller(cache, config.poll_interval_ms, scheduler=scheduler)

    app = Flask(__name__)
    app.extensions["status_board"] = StatusBoard(config, cache, limiter, poller)
    app.register_blueprint(board_bp)

    if cache.mock_mode:
        # Mock data needs no network, so serve it from the first request on
        cache.refresh()

    if start_poller:
        poller.start()

    return app


# =============================================================================
# Routes
# =============================================================================

@board_bp.route("/")
def dashboard():
    """Serve the dashboard page."""
    interval = max(request.args.get("interval", 15, type=int) or 15, 1)
    return render_template("dashboard.html", interval=interval)


@board_bp.route("/health")
def health():
    """Liveness plus a summary of the cached status."""
    board = get_board()
    snapshot = board.cache.snapshot()
    return jsonify({
        "status": "ok",
        "mode": "mock" if board.cache.mock_mode else "live",
        "lastUpdated": snapshot.last_updated,
        "members": len(snapshot.members),
        "working": len(snapshot.working_user_ids),
        "pollDelayMs": board.poller.backoff.delay_ms,
        "lastError": board.poller.last_error,
    })


@board_bp.route("/api/status")
def api_status():
    """Latest snapshot plus manual refresh quota. Never calls ClickUp."""
    board = get_board()
    data = board.cache.snapshot().to_dict()
    data["manual"] = board.limiter.status()
    return jsonify(data)


@board_bp.route("/api/refresh", methods=["POST"])
def api_refresh():
    """Refresh now, if the hourly manual quota allows it."""
    board = get_board()
    limiter = board.limiter

    stamp = limiter.try_acquire()
    if stamp is None:
        logger.info("Manual refresh rejected - hourly quota used up")
        return jsonify({
            "error": "rate_limited",
            "remaining": 0,
            "resetInMs": limiter.reset_in_ms(),
            "maxPerHour": limiter.max_per_hour,
        }), 429

    logger.info("Manual refresh triggered")
    try:
        snapshot = board.cache.refresh()
    except Exception as e:
        logger.error(f"Manual refresh failed: {e}", exc_info=True)
        limiter.release(stamp)
        return jsonify({"error": str(e) or "refresh_failed"}), 500

    return jsonify({
        "ok": True,
        "lastUpdated": snapshot.last_updated,
        "manual": limiter.status(),
    })


@board_bp.route("/api/debug-user")
def api_debug_user():
    """Raw ClickUp payloads for one user, to see why they show as idle."""
    user_id = request.args.get("userId")
    if not user_id:
        return jsonify({"error": "userId query param required"}), 400

    board = get_board()
    client = board.cache.client
    if client is None:
        return jsonify({"error": "Debug is unavailable in mock mode"}), 400

    now = now_ms()
    try:
        listing = client.get_time_entries(user_id, now - LOOKBACK_MS, now)
    except ClickUpError as e:
        return jsonify({"error": str(e), "data": e.body}), e.status or 500
    except Exception as e:
        logger.error(f"Error in api_debug_user: {e}", exc_info=True)
        return jsonify({"error": str(e)}), 500

    try:
        current = client.get_current_time_entry()
    except ClickUpError as e:
        current = {"error": e.status or str(e)}

    return jsonify({
        "userId": user_id,
        "listStatus": 200,
        "list": listing,
        "me": board.cache.my_user_id,
        "current": current,
    })


if __name__ == "__main__":
    config = load_config()
    # The reloader would start a second poller in the parent process
    create_app(config).run(debug=True, port=config.port, host="127.0.0.1", use_reloader=False)
