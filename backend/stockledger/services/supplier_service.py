# Overview: Service-layer CRUD for suppliers.

"""
Supplier Service

Suppliers are contact records with no ledger interaction.
"""

from __future__ import annotations

from ..extensions import db
from ..models import Supplier
from ..validation import ModelValidationPolicy, validate_payload
from .ownership_service import require_owned, require_user_id, scoped_query

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "contact_person",
        "email",
        "phone",
        "address",
        "image_url",
        "categories",
        "items_supplied",
        "notes",
    },
    required_on_create={"name", "phone"},
)


def list_suppliers(
    user_id: str,
    *,
    search: str | None = None,
    category: str | None = None,
) -> list[Supplier]:
    """User's suppliers ordered by name."""
    user_id = require_user_id(user_id)
    suppliers = (
        scoped_query(Supplier, user_id)
        .order_by(Supplier.name.asc(), Supplier.id.asc())
        .all()
    )
    if category:
        suppliers = [s for s in suppliers if category in (s.categories or [])]
    if search:
        needle = search.strip().lower()
        suppliers = [
            s for s in suppliers
            if needle in s.name.lower() or needle in (s.contact_person or "").lower()
        ]
    return suppliers


def get_supplier(user_id: str, supplier_id: int) -> Supplier:
    return require_owned(Supplier, supplier_id, require_user_id(user_id), "supplier")


def create_supplier(user_id: str, data: dict) -> Supplier:
    user_id = require_user_id(user_id)
    patch = validate_payload(model=Supplier, payload=data, policy=SUPPLIER_POLICY, partial=False)

    supplier = Supplier(user_id=user_id, **patch)
    db.session.add(supplier)
    db.session.commit()
    return supplier


def update_supplier(user_id: str, supplier_id: int, data: dict) -> Supplier:
    user_id = require_user_id(user_id)
    patch = validate_payload(model=Supplier, payload=data, policy=SUPPLIER_POLICY, partial=True)

    supplier = require_owned(Supplier, supplier_id, user_id, "supplier")
    for key, value in patch.items():
        setattr(supplier, key, value)
    db.session.commit()
    return supplier


def delete_supplier(user_id: str, supplier_id: int) -> None:
    supplier = require_owned(Supplier, supplier_id, require_user_id(user_id), "supplier")
    db.session.delete(supplier)
    db.session.commit()
