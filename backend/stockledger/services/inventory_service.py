# Overview: Service-layer CRUD for inventory items; filtering is applied after fetch.

"""
Inventory Service

Plain CRUD over inventory items. No cross-entity invariants are enforced
here: quantity edits through update_item are restocking/corrections, while
sale-driven quantity changes belong to the ledger service.

Updates and deletes go through run_with_retry: a version conflict with a
concurrent sale re-reads the row and applies the edit again, so the call
succeeds whenever the item exists.
"""

from __future__ import annotations

from ..extensions import db
from ..models import InventoryItem
from ..validation import ModelValidationPolicy, validate_payload, enforce_rules_inventory_item
from .concurrency import run_with_retry
from .ownership_service import require_owned, require_user_id, scoped_query

INVENTORY_ITEM_POLICY = ModelValidationPolicy(
    writable_fields={
        "name",
        "category",
        "description",
        "image_url",
        "quantity",
        "price_cents",
        "low_stock_threshold",
    },
    required_on_create={"name", "category", "quantity", "price_cents", "low_stock_threshold"},
)


def filter_items(
    items: list[InventoryItem],
    *,
    search: str | None = None,
    category: str | None = None,
    low_stock: bool = False,
) -> list[InventoryItem]:
    """Pure predicate filtering over an already-fetched list."""
    filtered = items

    if category:
        filtered = [item for item in filtered if item.category == category]

    if search:
        needle = search.strip().lower()
        filtered = [
            item for item in filtered
            if needle in item.name.lower() or needle in (item.description or "").lower()
        ]

    if low_stock:
        filtered = [item for item in filtered if item.is_low_stock]

    return filtered


def list_items(
    user_id: str,
    *,
    search: str | None = None,
    category: str | None = None,
    low_stock: bool = False,
) -> list[InventoryItem]:
    """User's items, most recently updated first, then filtered."""
    user_id = require_user_id(user_id)
    items = (
        scoped_query(InventoryItem, user_id)
        .order_by(InventoryItem.updated_at.desc(), InventoryItem.id.desc())
        .all()
    )
    return filter_items(items, search=search, category=category, low_stock=low_stock)


def list_categories(user_id: str) -> list[str]:
    user_id = require_user_id(user_id)
    rows = (
        db.session.query(InventoryItem.category)
        .filter(InventoryItem.user_id == user_id)
        .distinct()
        .order_by(InventoryItem.category.asc())
        .all()
    )
    return [row[0] for row in rows]


def get_item(user_id: str, item_id: int) -> InventoryItem:
    return require_owned(InventoryItem, item_id, require_user_id(user_id), "inventory_item")


def create_item(user_id: str, data: dict) -> InventoryItem:
    user_id = require_user_id(user_id)
    patch = validate_payload(model=InventoryItem, payload=data, policy=INVENTORY_ITEM_POLICY, partial=False)
    enforce_rules_inventory_item(patch)

    item = InventoryItem(user_id=user_id, **patch)
    db.session.add(item)
    db.session.commit()
    return item


def update_item(user_id: str, item_id: int, data: dict) -> InventoryItem:
    user_id = require_user_id(user_id)
    patch = validate_payload(model=InventoryItem, payload=data, policy=INVENTORY_ITEM_POLICY, partial=True)
    enforce_rules_inventory_item(patch)

    def _op():
        item = require_owned(InventoryItem, item_id, user_id, "inventory_item")
        for key, value in patch.items():
            setattr(item, key, value)
        db.session.commit()
        return item

    return run_with_retry(_op)


def delete_item(user_id: str, item_id: int) -> None:
    """Delete an item. Sale lines that reference it keep their snapshot."""
    user_id = require_user_id(user_id)

    def _op():
        item = require_owned(InventoryItem, item_id, user_id, "inventory_item")
        db.session.delete(item)
        db.session.commit()

    run_with_retry(_op)
