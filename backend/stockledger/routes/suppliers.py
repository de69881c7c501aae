# Overview: Flask API routes for suppliers; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError
from ..decorators import require_user
from ..services import supplier_service


suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.get("")
@require_user
def list_suppliers_route():
    """
    Query parameters:
    - search: matches name or contact person
    - category: suppliers tagged with this category
    """
    suppliers = supplier_service.list_suppliers(
        g.user_id,
        search=request.args.get("search"),
        category=request.args.get("category"),
    )
    return jsonify({"items": [s.to_dict() for s in suppliers], "count": len(suppliers)}), 200


@suppliers_bp.post("")
@require_user
def create_supplier_route():
    payload = request.get_json(silent=True) or {}
    try:
        supplier = supplier_service.create_supplier(g.user_id, payload)
        return jsonify({"supplier": supplier.to_dict()}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.get("/<int:supplier_id>")
@require_user
def get_supplier_route(supplier_id: int):
    try:
        supplier = supplier_service.get_supplier(g.user_id, supplier_id)
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"supplier": supplier.to_dict()}), 200


@suppliers_bp.patch("/<int:supplier_id>")
@require_user
def update_supplier_route(supplier_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        supplier = supplier_service.update_supplier(g.user_id, supplier_id, payload)
        return jsonify({"supplier": supplier.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update supplier")
        return jsonify({"error": "Internal server error"}), 500


@suppliers_bp.delete("/<int:supplier_id>")
@require_user
def delete_supplier_route(supplier_id: int):
    try:
        supplier_service.delete_supplier(g.user_id, supplier_id)
        return "", 204
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete supplier")
        return jsonify({"error": "Internal server error"}), 500
