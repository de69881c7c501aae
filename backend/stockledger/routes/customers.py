# Overview: Flask API routes for customers; parses input and returns JSON responses.

"""
Customer Routes

Contact CRUD plus the read-only ledger views for one customer
(statement and audit). Balances change only through /api/transactions.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError
from ..decorators import require_user
from ..services import customer_service, ledger_service


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.get("")
@require_user
def list_customers_route():
    customers = customer_service.list_customers(g.user_id, search=request.args.get("search"))
    return jsonify({"items": [c.to_dict() for c in customers], "count": len(customers)}), 200


@customers_bp.post("")
@require_user
def create_customer_route():
    """
    Create a customer.

    Body: name, phone (required); business_name, email, address,
    initial_balance_cents (optional).
    """
    payload = request.get_json(silent=True) or {}
    try:
        customer = customer_service.create_customer(g.user_id, payload)
        return jsonify({"customer": customer.to_dict()}), 201
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<int:customer_id>")
@require_user
def get_customer_route(customer_id: int):
    try:
        customer = customer_service.get_customer(g.user_id, customer_id)
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"customer": customer.to_dict()}), 200


@customers_bp.patch("/<int:customer_id>")
@require_user
def update_customer_route(customer_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        customer = customer_service.update_customer(g.user_id, customer_id, payload)
        return jsonify({"customer": customer.to_dict()}), 200
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.delete("/<int:customer_id>")
@require_user
def delete_customer_route(customer_id: int):
    try:
        customer_service.delete_customer(g.user_id, customer_id)
        return "", 204
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<int:customer_id>/statement")
@require_user
def customer_statement_route(customer_id: int):
    """Customer plus full transaction history, newest first."""
    try:
        statement = ledger_service.customer_statement(g.user_id, customer_id)
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify(statement), 200


@customers_bp.get("/<int:customer_id>/audit")
@require_user
def customer_audit_route(customer_id: int):
    """Compare stored balance/total purchases with values re-derived from transactions."""
    try:
        audit = ledger_service.audit_customer_ledger(g.user_id, customer_id)
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"audit": audit}), 200
