# Overview: Flask API routes for dashboard aggregates.

from flask import Blueprint, jsonify, g

from ..decorators import require_user
from ..services import stats_service


stats_bp = Blueprint("stats", __name__, url_prefix="/api/stats")


@stats_bp.get("/inventory")
@require_user
def inventory_stats_route():
    return jsonify({"stats": stats_service.inventory_stats_for_user(g.user_id)}), 200


@stats_bp.get("/customers")
@require_user
def customer_stats_route():
    return jsonify({"stats": stats_service.customer_stats_for_user(g.user_id)}), 200


@stats_bp.get("/analytics")
@require_user
def analytics_route():
    return jsonify({"analytics": stats_service.inventory_analytics_for_user(g.user_id)}), 200
