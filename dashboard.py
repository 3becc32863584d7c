"""
Dashboard — HTTP API for the Trending Statuses engine.

Public endpoints serve the trending list and per-status lookups; admin
endpoints expose pending statuses, the review boundary and refresh status.
Refreshing itself runs from main.py (cron or `main.py schedule`).

Usage:
    python dashboard.py                  # runs on http://localhost:5000
    python dashboard.py --port 8080      # custom port
"""

import argparse
import logging
from datetime import datetime

from flask import Flask, current_app, jsonify, request

import config
from refresh_tracker import RefreshTracker
from trends.engine import TrendingStatuses, build_engine
from trends.errors import TrendStoreError

app = Flask(__name__)

logger = logging.getLogger(__name__)


# ── Helpers ──

def get_engine() -> TrendingStatuses:
    """Engine for this app, built from config on first use."""
    engine = current_app.config.get("TRENDS_ENGINE")
    if engine is None:
        engine = build_engine()
        current_app.config["TRENDS_ENGINE"] = engine
    return engine


def get_refresh_tracker() -> RefreshTracker:
    tracker = current_app.config.get("REFRESH_TRACKER")
    if tracker is None:
        tracker = RefreshTracker()
        current_app.config["REFRESH_TRACKER"] = tracker
    return tracker


def _limit_arg() -> int:
    limit = request.args.get("limit", config.API_DEFAULT_LIMIT, type=int)
    return max(0, min(limit, config.API_MAX_LIMIT))


def _iso(value: datetime):
    return value.isoformat() if value else None


def serialize_status(status, engine: TrendingStatuses) -> dict:
    return {
        "id": status.id,
        "account_id": status.account_id,
        "username": status.account.username,
        "created_at": _iso(status.created_at),
        "language": status.language,
        "reblogs_count": status.reblogs_count,
        "favourites_count": status.favourites_count,
        "score": engine.score(status.id),
    }


# ── Public ──

@app.route("/api/trends/statuses")
def api_trending_statuses():
    """Approved trending statuses, ranked (locale-tiered when ?locale= is given)."""
    engine = get_engine()
    offset = max(0, request.args.get("offset", 0, type=int))
    viewer_id = request.args.get("viewer_id", type=int)

    query = (
        engine.query()
        .allowed()
        .in_locale(request.args.get("locale"))
        .filtered_for(viewer_id)
        .offset_by(offset)
        .limited_to(_limit_arg())
    )

    try:
        statuses = engine.statuses_for(query)
    except Exception as e:
        logger.error(f"Trending query failed: {e}")
        return jsonify({"error": f"Trending query failed: {e}"}), 500

    return jsonify([serialize_status(s, engine) for s in statuses])


@app.route("/api/trends/statuses/<int:status_id>")
def api_trending_status(status_id):
    """Score and rank of one status."""
    engine = get_engine()
    score = engine.score(status_id)
    if score is None:
        return jsonify({"error": "Status is not trending."}), 404

    return jsonify({
        "id": status_id,
        "score": score,
        "rank": engine.rank(status_id),
    })


@app.route("/api/trends/statuses/<int:status_id>/usage", methods=["POST"])
def api_register_usage(status_id):
    """Record an interaction with a status."""
    engine = get_engine()
    status = engine.statuses.find(status_id)
    if status is None:
        return jsonify({"error": "Status not found."}), 404

    recorded = engine.register(status)
    return jsonify({"id": status.proper.id, "recorded": recorded}), 202


# ── Admin ──

@app.route("/api/admin/trends/statuses")
def api_admin_trending_ids():
    """Currently trending ids, approved (?allowed=true) or pending (?allowed=false)."""
    engine = get_engine()
    allowed = request.args.get("allowed", "false").lower() in ("1", "true", "yes")
    limit = request.args.get("limit", 100, type=int)
    return jsonify({
        "allowed": allowed,
        "ids": engine.currently_trending_ids(allowed, max(0, limit)),
    })


@app.route("/api/admin/trends/review-threshold")
def api_admin_review_threshold():
    """The allowed record sitting on the review boundary."""
    engine = get_engine()
    record = engine.at_review_threshold()
    return jsonify({
        "review_threshold": engine.options.review_threshold,
        "record": record.to_dict() if record else None,
    })


@app.route("/api/admin/trends/refresh/status")
def api_admin_refresh_status():
    """Last refresh outcome plus the size of the current snapshot."""
    data = get_refresh_tracker().status()
    try:
        data["tracked"] = get_engine().store.count()
    except TrendStoreError as e:
        logger.warning(f"Could not count trending records: {e}")
        data["tracked"] = None
    return jsonify(data)


if __name__ == "__main__":
    parser = argparse.ArgumentParser()
    parser.add_argument("--port", type=int, default=5000)
    parser.add_argument("--debug", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, config.LOG_LEVEL, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    app.run(host="0.0.0.0", port=args.port, debug=args.debug)
