# Overview: Flask API routes for inventory items; parses input and returns JSON responses.

# backend/stockledger/routes/inventory.py
"""
Inventory item routes.

All routes require an authenticated user (X-User-Id from the identity provider).
Quantity changes caused by sales go through /api/transactions, not here.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError
from ..decorators import require_user
from ..services import inventory_service


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("")
@require_user
def list_items_route():
    """
    List the user's inventory items.

    Query parameters:
    - search: matches name or description (case-insensitive)
    - category: exact category
    - low_stock: "true" to return only items at/below their threshold
    """
    low_stock = request.args.get("low_stock", "false").lower() == "true"
    try:
        items = inventory_service.list_items(
            g.user_id,
            search=request.args.get("search"),
            category=request.args.get("category"),
            low_stock=low_stock,
        )
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify({"items": [i.to_dict() for i in items], "count": len(items)}), 200


@inventory_bp.get("/categories")
@require_user
def list_categories_route():
    categories = inventory_service.list_categories(g.user_id)
    return jsonify({"categories": categories}), 200


@inventory_bp.post("")
@require_user
def create_item_route():
    payload = request.get_json(silent=True) or {}
    try:
        item = inventory_service.create_item(g.user_id, payload)
        return jsonify({"item": item.to_dict()}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create inventory item")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.get("/<int:item_id>")
@require_user
def get_item_route(item_id: int):
    try:
        item = inventory_service.get_item(g.user_id, item_id)
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"item": item.to_dict()}), 200


@inventory_bp.patch("/<int:item_id>")
@require_user
def update_item_route(item_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        item = inventory_service.update_item(g.user_id, item_id, payload)
        return jsonify({"item": item.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update inventory item")
        return jsonify({"error": "Internal server error"}), 500


@inventory_bp.delete("/<int:item_id>")
@require_user
def delete_item_route(item_id: int):
    try:
        inventory_service.delete_item(g.user_id, item_id)
        return "", 204
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete inventory item")
        return jsonify({"error": "Internal server error"}), 500
