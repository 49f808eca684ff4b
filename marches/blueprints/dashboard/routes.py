"""Dashboard statistics route."""

from flask import Blueprint, current_app, jsonify

from ...dashboard import get_dashboard_stats

dashboard_bp = Blueprint("dashboard", __name__, url_prefix="/api/dashboard")


@dashboard_bp.route("/stats", methods=["GET"])
def stats():
    cfg = current_app.config
    return jsonify(
        get_dashboard_stats(
            window_days=cfg["UPCOMING_DEADLINE_DAYS"],
            deadline_limit=cfg["UPCOMING_DEADLINE_LIMIT"],
            activity_limit=cfg["RECENT_ACTIVITY_LIMIT"],
        )
    )
