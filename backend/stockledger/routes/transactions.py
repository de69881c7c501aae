# Overview: Flask API routes for the customer ledger; parses input and returns JSON responses.

# backend/stockledger/routes/transactions.py
"""
Ledger API routes

- POST /sales       record a sale (customer balance up, stock down)
- POST /payments    record a payment (customer balance down)
- DELETE /<id>      delete a transaction and reverse its effects

Error statuses follow the ledger error taxonomy: 400 validation, 404 missing
entity, 409 insufficient stock / overpayment, 503 retry exhausted.
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import LedgerError
from ..decorators import require_user
from ..services import ledger_service


transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


@transactions_bp.get("")
@require_user
def list_transactions_route():
    """
    List transactions newest first.

    Query parameters:
    - customer_id: only this customer's transactions
    - type: sale | payment
    """
    try:
        transactions = ledger_service.list_transactions(
            g.user_id,
            customer_id=request.args.get("customer_id"),
            transaction_type=request.args.get("type"),
        )
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code

    return jsonify({
        "items": [t.to_dict() for t in transactions],
        "count": len(transactions),
    }), 200


@transactions_bp.get("/<int:transaction_id>")
@require_user
def get_transaction_route(transaction_id: int):
    try:
        txn = ledger_service.get_transaction(g.user_id, transaction_id)
    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    return jsonify({"transaction": txn.to_dict()}), 200


@transactions_bp.post("/sales")
@require_user
def record_sale_route():
    """
    Record a sale.

    Body:
        customer_id: int
        items: [{item_id, quantity, price_cents?}, ...]
        amount_paid_cents: int (default 0)
        notes: str (optional)
    """
    data = request.get_json(silent=True) or {}
    try:
        sale_id = ledger_service.record_sale(
            g.user_id,
            data.get("customer_id"),
            data.get("items"),
            amount_paid_cents=data.get("amount_paid_cents", 0),
            notes=data.get("notes"),
        )
        sale = ledger_service.get_transaction(g.user_id, sale_id)
        return jsonify({"transaction": sale.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record sale")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.post("/payments")
@require_user
def record_payment_route():
    """
    Record a payment against a customer's outstanding balance.

    Body:
        customer_id: int
        amount_cents: int (> 0, <= balance)
        payment_method: cash | card | bank_transfer | cheque | mobile | other
        notes: str (optional)
    """
    data = request.get_json(silent=True) or {}
    try:
        payment_id = ledger_service.record_payment(
            g.user_id,
            data.get("customer_id"),
            data.get("amount_cents"),
            payment_method=data.get("payment_method"),
            notes=data.get("notes"),
        )
        payment = ledger_service.get_transaction(g.user_id, payment_id)
        return jsonify({"transaction": payment.to_dict()}), 201

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record payment")
        return jsonify({"error": "Internal server error"}), 500


@transactions_bp.delete("/<int:transaction_id>")
@require_user
def delete_transaction_route(transaction_id: int):
    """Delete a transaction and reverse its balance and stock effects."""
    try:
        ledger_service.delete_transaction(g.user_id, transaction_id)
        return "", 204

    except LedgerError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to delete transaction")
        return jsonify({"error": "Internal server error"}), 500
