# Overview: Service-layer operations for the customer ledger; records and reverses sales and payments.

"""
Ledger Service

Records sales and payments against a customer's running balance and the stock
levels of inventory items, and reverses those effects when a transaction is
deleted.

LEDGER INVARIANTS (authoritative):
- customer.balance_cents == opening + sum(sale.amount_due) - sum(payment.amount)
  over the customer's existing transactions.
- customer.total_purchases_cents == opening + sum(sale.amount) over existing sales.
- item.quantity moves only by sale lines: -qty when a sale is recorded,
  +qty when it is deleted (if the item still exists).
- Each operation is one atomic unit run through run_with_retry: it either
  commits every write (transaction row, customer aggregates, stock levels)
  or none of them.

LOCK ORDER: customer row first, then inventory rows by ascending id.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy import case, func

from ..errors import InsufficientStockError, NotFoundError, OverpaymentError, ValidationError
from ..extensions import db
from ..models import Customer, InventoryItem, LedgerTransaction, LedgerTransactionLine
from ..models.transactions import (
    TRANSACTION_TYPE_SALE,
    TRANSACTION_TYPE_PAYMENT,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_PARTIAL,
    PAYMENT_STATUS_PENDING,
)
from ..validation import coerce_int, require_amount_cents, require_id, MAX_QUANTITY
from .concurrency import begin_write_transaction, lock_for_update, run_with_retry
from .ownership_service import require_owned, require_user_id, scoped_query


PAYMENT_METHOD_CASH = "cash"

VALID_PAYMENT_METHODS = [
    PAYMENT_METHOD_CASH,
    "card",
    "bank_transfer",
    "cheque",
    "mobile",
    "other",
]


@dataclass(frozen=True)
class SaleLineRequest:
    """One requested sale line. price_cents=None snapshots the catalog price."""
    item_id: int
    quantity: int
    price_cents: int | None = None


def derive_payment_status(amount_cents: int, amount_paid_cents: int) -> str:
    """paid iff nothing is due, pending iff nothing was paid, otherwise partial."""
    if amount_cents - amount_paid_cents == 0:
        return PAYMENT_STATUS_PAID
    if amount_paid_cents == 0:
        return PAYMENT_STATUS_PENDING
    return PAYMENT_STATUS_PARTIAL


def _parse_sale_lines(items) -> list[SaleLineRequest]:
    if not isinstance(items, (list, tuple)) or not items:
        raise ValidationError("items must be a non-empty list", field="items")

    lines = []
    for index, raw in enumerate(items):
        if isinstance(raw, SaleLineRequest):
            raw = {"item_id": raw.item_id, "quantity": raw.quantity, "price_cents": raw.price_cents}
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{index}] must be an object", field="items")

        item_id = require_id(raw.get("item_id"), f"items[{index}].item_id")

        if raw.get("quantity") is None:
            raise ValidationError(f"items[{index}].quantity is required", field=f"items[{index}].quantity")
        quantity = coerce_int(raw["quantity"], f"items[{index}].quantity")
        if quantity <= 0:
            raise ValidationError(f"items[{index}].quantity must be > 0", field=f"items[{index}].quantity")
        if quantity > MAX_QUANTITY:
            raise ValidationError(f"items[{index}].quantity is too large", field=f"items[{index}].quantity")

        price_cents = None
        if raw.get("price_cents") is not None:
            price_cents = require_amount_cents(raw["price_cents"], f"items[{index}].price_cents", allow_zero=True)

        lines.append(SaleLineRequest(item_id=item_id, quantity=quantity, price_cents=price_cents))
    return lines


def _normalize_notes(notes) -> str:
    if notes is None:
        return ""
    if not isinstance(notes, str):
        raise ValidationError("notes must be a string", field="notes")
    return notes.strip()


def _quantities_by_item(lines) -> dict[int, int]:
    totals: dict[int, int] = {}
    for line in lines:
        totals[line.item_id] = totals.get(line.item_id, 0) + line.quantity
    return totals


def _lock_items(item_ids) -> list[InventoryItem]:
    if not item_ids:
        return []
    query = (
        db.session.query(InventoryItem)
        .filter(InventoryItem.id.in_(sorted(item_ids)))
        .order_by(InventoryItem.id.asc())
    )
    return lock_for_update(query).all()


# =============================================================================
# WRITE SIDE
# =============================================================================

def record_sale(
    user_id: str,
    customer_id: int,
    items,
    amount_paid_cents: int = 0,
    notes: str | None = None,
) -> int:
    """
    Record a sale to a customer and take the sold quantities out of stock.

    Args:
        user_id: Owner of the customer and items (from the identity provider)
        customer_id: Customer buying on account
        items: Non-empty list of {item_id, quantity, price_cents?}; the unit
            price is fixed on the line at sale time
        amount_paid_cents: Amount paid up front (>= 0). Paying more than the
            total leaves a negative amount due, credited to the balance
        notes: Optional free text

    Returns:
        Id of the new sale transaction

    Raises:
        ValidationError: Malformed input
        NotFoundError: Customer or any item missing
        InsufficientStockError: Any item has less stock than requested
        ConflictRetryExhausted: Contention outlasted the retry limit
    """
    user_id = require_user_id(user_id)
    customer_id = require_id(customer_id, "customer_id")
    lines = _parse_sale_lines(items)
    amount_paid_cents = require_amount_cents(amount_paid_cents, "amount_paid_cents", allow_zero=True)
    notes = _normalize_notes(notes)
    requested = _quantities_by_item(lines)

    def _op():
        begin_write_transaction()

        customer = require_owned(Customer, customer_id, user_id, "customer", lock=True)

        items_by_id = {item.id: item for item in _lock_items(requested.keys()) if item.user_id == user_id}
        for item_id in requested:
            if item_id not in items_by_id:
                raise NotFoundError("inventory_item", item_id)

        insufficient = []
        for item_id, quantity in requested.items():
            item = items_by_id[item_id]
            if item.quantity < quantity:
                insufficient.append({
                    "item_id": item_id,
                    "item_name": item.name,
                    "requested_quantity": quantity,
                    "available_quantity": item.quantity,
                })
        if insufficient:
            raise InsufficientStockError(insufficient)

        txn_lines = []
        amount_cents = 0
        for number, line in enumerate(lines, start=1):
            item = items_by_id[line.item_id]
            unit_price = line.price_cents if line.price_cents is not None else item.price_cents
            line_total = unit_price * line.quantity
            amount_cents += line_total
            txn_lines.append(LedgerTransactionLine(
                line_number=number,
                item_id=item.id,
                item_name=item.name,
                quantity=line.quantity,
                unit_price_cents=unit_price,
                line_total_cents=line_total,
            ))

        amount_due_cents = amount_cents - amount_paid_cents

        sale = LedgerTransaction(
            user_id=user_id,
            customer_id=customer.id,
            customer_name=customer.name,
            type=TRANSACTION_TYPE_SALE,
            amount_cents=amount_cents,
            amount_paid_cents=amount_paid_cents,
            amount_due_cents=amount_due_cents,
            payment_status=derive_payment_status(amount_cents, amount_paid_cents),
            notes=notes,
            lines=txn_lines,
        )
        db.session.add(sale)

        customer.balance_cents += amount_due_cents
        customer.total_purchases_cents += amount_cents

        for item_id, quantity in requested.items():
            items_by_id[item_id].quantity -= quantity

        db.session.flush()  # ensures sale.id is assigned without committing
        sale_id = sale.id
        db.session.commit()
        return sale_id

    sale_id = run_with_retry(_op)
    current_app.logger.info(
        "Recorded sale %s for customer %s (user %s)", sale_id, customer_id, user_id
    )
    return sale_id


def record_payment(
    user_id: str,
    customer_id: int,
    amount_cents: int,
    payment_method: str | None = None,
    notes: str | None = None,
) -> int:
    """
    Record a payment against a customer's outstanding balance.

    Payments are not tied to a specific sale. A payment larger than the
    current balance is rejected; prepayment/credit is not supported.

    Returns:
        Id of the new payment transaction

    Raises:
        ValidationError: amount not positive, unknown payment method
        NotFoundError: Customer missing
        OverpaymentError: amount exceeds the outstanding balance
        ConflictRetryExhausted: Contention outlasted the retry limit
    """
    user_id = require_user_id(user_id)
    customer_id = require_id(customer_id, "customer_id")
    amount_cents = require_amount_cents(amount_cents, "amount_cents", allow_zero=False)
    notes = _normalize_notes(notes)

    method = (payment_method or PAYMENT_METHOD_CASH)
    if not isinstance(method, str) or method.strip().lower() not in VALID_PAYMENT_METHODS:
        raise ValidationError(
            f"Invalid payment method: {payment_method}. Must be one of {VALID_PAYMENT_METHODS}",
            field="payment_method",
        )
    method = method.strip().lower()

    def _op():
        begin_write_transaction()

        customer = require_owned(Customer, customer_id, user_id, "customer", lock=True)

        if customer.balance_cents - amount_cents < 0:
            raise OverpaymentError(customer.id, customer.balance_cents, amount_cents)

        payment = LedgerTransaction(
            user_id=user_id,
            customer_id=customer.id,
            customer_name=customer.name,
            type=TRANSACTION_TYPE_PAYMENT,
            amount_cents=amount_cents,
            amount_paid_cents=amount_cents,
            amount_due_cents=0,
            payment_status=PAYMENT_STATUS_PAID,
            payment_method=method,
            notes=notes,
        )
        db.session.add(payment)

        customer.balance_cents -= amount_cents

        db.session.flush()
        payment_id = payment.id
        db.session.commit()
        return payment_id

    payment_id = run_with_retry(_op)
    current_app.logger.info(
        "Recorded payment %s for customer %s (user %s)", payment_id, customer_id, user_id
    )
    return payment_id


def delete_transaction(user_id: str, transaction_id: int) -> None:
    """
    Delete a transaction and reverse its effects on the customer and stock.

    - payment: balance += amount
    - sale: balance -= amount_due, total_purchases -= amount, and each line's
      quantity is returned to its item. Items deleted since the sale are
      skipped; the deletion still goes ahead.

    The reversal may drive the balance negative (a payment that settled a now
    deleted sale stays on the ledger as credit).

    Raises:
        NotFoundError: Transaction missing, or its customer no longer exists
        ConflictRetryExhausted: Contention outlasted the retry limit
    """
    user_id = require_user_id(user_id)
    transaction_id = require_id(transaction_id, "transaction_id")

    def _op():
        begin_write_transaction()

        txn = require_owned(LedgerTransaction, transaction_id, user_id, "transaction", lock=True)

        customer = lock_for_update(db.session.query(Customer).filter_by(id=txn.customer_id)).first()
        if customer is None or customer.user_id != user_id:
            raise NotFoundError(
                "customer",
                txn.customer_id,
                message=f"Customer {txn.customer_id} associated with transaction {txn.id} not found",
            )

        skipped: list[int] = []
        if txn.is_payment:
            customer.balance_cents += txn.amount_cents
        elif txn.is_sale:
            customer.balance_cents -= txn.amount_due_cents
            customer.total_purchases_cents -= txn.amount_cents

            restore = _quantities_by_item(txn.lines)
            items_by_id = {item.id: item for item in _lock_items(restore.keys()) if item.user_id == user_id}
            for item_id, quantity in restore.items():
                item = items_by_id.get(item_id)
                if item is None:
                    skipped.append(item_id)
                    continue
                item.quantity += quantity

        db.session.delete(txn)
        db.session.commit()
        return skipped

    skipped = run_with_retry(_op)
    if skipped:
        current_app.logger.warning(
            "Deleted transaction %s without restoring stock for missing items %s", transaction_id, skipped
        )
    current_app.logger.info("Deleted transaction %s (user %s)", transaction_id, user_id)


# =============================================================================
# READ SIDE
# =============================================================================

def list_transactions(user_id: str, customer_id: int | None = None, transaction_type: str | None = None) -> list[LedgerTransaction]:
    """Transactions newest first, optionally for one customer and/or of one type."""
    user_id = require_user_id(user_id)
    query = scoped_query(LedgerTransaction, user_id)
    if customer_id is not None:
        query = query.filter(LedgerTransaction.customer_id == require_id(customer_id, "customer_id"))
    if transaction_type is not None:
        if transaction_type not in (TRANSACTION_TYPE_SALE, TRANSACTION_TYPE_PAYMENT):
            raise ValidationError("type must be sale or payment", field="type")
        query = query.filter(LedgerTransaction.type == transaction_type)
    return query.order_by(LedgerTransaction.created_at.desc(), LedgerTransaction.id.desc()).all()


def get_transaction(user_id: str, transaction_id: int) -> LedgerTransaction:
    user_id = require_user_id(user_id)
    return require_owned(LedgerTransaction, require_id(transaction_id, "transaction_id"), user_id, "transaction")


def customer_statement(user_id: str, customer_id: int) -> dict:
    """Customer with its full transaction history, newest first."""
    user_id = require_user_id(user_id)
    customer = require_owned(Customer, require_id(customer_id, "customer_id"), user_id, "customer")
    transactions = list_transactions(user_id, customer_id=customer.id)
    return {
        "customer": customer.to_dict(),
        "transactions": [t.to_dict() for t in transactions],
        "count": len(transactions),
    }


def _ledger_totals(user_id: str, customer_ids: list[int]) -> dict[int, dict]:
    is_sale = LedgerTransaction.type == TRANSACTION_TYPE_SALE
    rows = (
        db.session.query(
            LedgerTransaction.customer_id,
            func.coalesce(func.sum(case((is_sale, LedgerTransaction.amount_cents), else_=0)), 0),
            func.coalesce(func.sum(case((is_sale, LedgerTransaction.amount_due_cents), else_=0)), 0),
            func.coalesce(func.sum(case((is_sale, 0), else_=LedgerTransaction.amount_cents)), 0),
        )
        .filter(LedgerTransaction.user_id == user_id, LedgerTransaction.customer_id.in_(customer_ids))
        .group_by(LedgerTransaction.customer_id)
        .all()
    )
    return {
        customer_id: {"sales": int(sales), "sales_due": int(due), "payments": int(payments)}
        for customer_id, sales, due, payments in rows
    }


def _audit_row(customer: Customer, totals: dict | None) -> dict:
    totals = totals or {"sales": 0, "sales_due": 0, "payments": 0}
    expected_balance = customer.opening_balance_cents + totals["sales_due"] - totals["payments"]
    expected_purchases = customer.opening_balance_cents + totals["sales"]
    return {
        "customer_id": customer.id,
        "customer_name": customer.name,
        "balance_cents": customer.balance_cents,
        "expected_balance_cents": expected_balance,
        "total_purchases_cents": customer.total_purchases_cents,
        "expected_total_purchases_cents": expected_purchases,
        "in_sync": (
            customer.balance_cents == expected_balance
            and customer.total_purchases_cents == expected_purchases
        ),
    }


def audit_customer_ledger(user_id: str, customer_id: int) -> dict:
    """
    Re-derive a customer's balance and total purchases from stored transactions
    and compare them with the denormalized values.
    """
    user_id = require_user_id(user_id)
    customer = require_owned(Customer, require_id(customer_id, "customer_id"), user_id, "customer")
    totals = _ledger_totals(user_id, [customer.id])
    return _audit_row(customer, totals.get(customer.id))


def audit_ledger(user_id: str) -> list[dict]:
    """audit_customer_ledger for every customer of a user, ordered by name."""
    user_id = require_user_id(user_id)
    customers = scoped_query(Customer, user_id).order_by(Customer.name.asc(), Customer.id.asc()).all()
    if not customers:
        return []
    totals = _ledger_totals(user_id, [c.id for c in customers])
    return [_audit_row(c, totals.get(c.id)) for c in customers]
