# Overview: Read-only aggregates over fetched inventory and customer lists.

from __future__ import annotations

from typing import Iterable

from ..models import Customer, InventoryItem
from .customer_service import list_customers
from .inventory_service import list_items


def inventory_stats(items: Iterable[InventoryItem]) -> dict:
    items = list(items)
    return {
        "total_items": len(items),
        "total_value_cents": sum(item.price_cents * item.quantity for item in items),
        "low_stock_items": sum(1 for item in items if item.quantity <= item.low_stock_threshold),
        "categories": len({item.category for item in items}),
    }


def customer_stats(customers: Iterable[Customer]) -> dict:
    """
    total_receivables_cents: sum of positive balances only (credit balances
    are not receivables). total_paid_cents: sum of total_purchases - balance.
    """
    customers = list(customers)
    return {
        "total_customers": len(customers),
        "total_receivables_cents": sum(c.balance_cents for c in customers if c.balance_cents > 0),
        "total_paid_cents": sum(c.total_purchases_cents - c.balance_cents for c in customers),
    }


def inventory_analytics(items: Iterable[InventoryItem]) -> dict:
    """
    Category distribution, stock value per category and stock health buckets.

    Stock health:
    - in_stock: quantity above the low-stock threshold
    - low_stock: 0 < quantity <= threshold
    - out_of_stock: quantity == 0
    """
    items = list(items)

    counts: dict[str, int] = {}
    values: dict[str, int] = {}
    for item in items:
        counts[item.category] = counts.get(item.category, 0) + 1
        values[item.category] = values.get(item.category, 0) + item.price_cents * item.quantity

    in_stock = sum(1 for item in items if item.quantity > item.low_stock_threshold)
    low_stock = sum(1 for item in items if 0 < item.quantity <= item.low_stock_threshold)
    out_of_stock = sum(1 for item in items if item.quantity == 0)

    return {
        "category_data": [{"name": name, "value": count} for name, count in counts.items()],
        "value_data": [{"category": name, "value_cents": value} for name, value in values.items()],
        "stock_health": [
            {"status": "in_stock", "count": in_stock},
            {"status": "low_stock", "count": low_stock},
            {"status": "out_of_stock", "count": out_of_stock},
        ],
    }


def inventory_stats_for_user(user_id: str) -> dict:
    return inventory_stats(list_items(user_id))


def customer_stats_for_user(user_id: str) -> dict:
    return customer_stats(list_customers(user_id))


def inventory_analytics_for_user(user_id: str) -> dict:
    return inventory_analytics(list_items(user_id))
