# Overview: Service-layer CRUD for customers.

"""
Customer Service

Contact-field CRUD. balance_cents and total_purchases_cents are owned by the
ledger service and are not writable here; the only way to seed them is the
optional initial balance on create, which is also recorded as the opening
balance for ledger audits.

Contact edits and deletes retry version conflicts with concurrent ledger
writes (run_with_retry) instead of failing.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Customer
from ..validation import ModelValidationPolicy, validate_payload, coerce_int
from ..errors import ValidationError
from .concurrency import run_with_retry
from .ownership_service import require_owned, require_user_id, scoped_query

CUSTOMER_POLICY = ModelValidationPolicy(
    writable_fields={"name", "business_name", "email", "phone", "address"},
    required_on_create={"name", "phone"},
)


def list_customers(user_id: str, *, search: str | None = None) -> list[Customer]:
    """User's customers ordered by name."""
    user_id = require_user_id(user_id)
    customers = (
        scoped_query(Customer, user_id)
        .order_by(Customer.name.asc(), Customer.id.asc())
        .all()
    )
    if search:
        needle = search.strip().lower()
        customers = [
            c for c in customers
            if needle in c.name.lower()
            or needle in (c.business_name or "").lower()
            or needle in (c.phone or "").lower()
            or needle in (c.email or "").lower()
        ]
    return customers


def get_customer(user_id: str, customer_id: int) -> Customer:
    return require_owned(Customer, customer_id, require_user_id(user_id), "customer")


def create_customer(user_id: str, data: dict) -> Customer:
    """
    Create a customer.

    data may carry initial_balance_cents (>= 0): an amount already owed when
    the customer is entered. It seeds balance, total purchases and the
    opening balance.
    """
    user_id = require_user_id(user_id)
    data = dict(data or {})
    raw_initial = data.pop("initial_balance_cents", None)
    patch = validate_payload(model=Customer, payload=data, policy=CUSTOMER_POLICY, partial=False)

    initial_balance = 0
    if raw_initial is not None:
        initial_balance = coerce_int(raw_initial, "initial_balance_cents")
        if initial_balance < 0:
            raise ValidationError("initial_balance_cents must be >= 0", field="initial_balance_cents")

    customer = Customer(
        user_id=user_id,
        balance_cents=initial_balance,
        total_purchases_cents=initial_balance,
        opening_balance_cents=initial_balance,
        **patch,
    )
    db.session.add(customer)
    db.session.commit()
    return customer


def update_customer(user_id: str, customer_id: int, data: dict) -> Customer:
    user_id = require_user_id(user_id)
    patch = validate_payload(model=Customer, payload=data, policy=CUSTOMER_POLICY, partial=True)

    def _op():
        customer = require_owned(Customer, customer_id, user_id, "customer")
        for key, value in patch.items():
            setattr(customer, key, value)
        db.session.commit()
        return customer

    return run_with_retry(_op)


def delete_customer(user_id: str, customer_id: int) -> None:
    """
    Delete a customer. Their transactions are kept; deleting one of them
    afterwards fails with NotFoundError because there is no balance to reverse.
    """
    user_id = require_user_id(user_id)

    def _op():
        customer = require_owned(Customer, customer_id, user_id, "customer")
        db.session.delete(customer)
        db.session.commit()

    run_with_retry(_op)
