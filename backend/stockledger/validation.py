from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from sqlalchemy import Integer, String, Text, JSON
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError


# Maximum price: $9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999

# Ceiling for stock counts and line quantities
MAX_QUANTITY = 1_000_000_000


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def coerce_int(value: Any, field: str) -> int:
    """Strict integer coercion: rejects bools, floats, decimals and scientific notation."""
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer", field=field)
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)", field=field)
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)", field=field)
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer", field=field)
    # Reject floats explicitly
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal", field=field)
    raise ValidationError(f"{field} must be an integer", field=field)


def _coerce_string_list(value: Any, field: str) -> list[str]:
    if not isinstance(value, (list, tuple)):
        raise ValidationError(f"{field} must be a list of strings", field=field)
    cleaned = []
    for entry in value:
        if not isinstance(entry, str):
            raise ValidationError(f"{field} must be a list of strings", field=field)
        entry = entry.strip()
        if entry:
            cleaned.append(entry)
    return cleaned


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(value, col.key)

    # JSON columns hold lists of tags (supplier categories, items supplied)
    if isinstance(coltype, JSON):
        return _coerce_string_list(value, col.key)

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", field=missing[0])

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}", field=k)
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}", field=k)

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null", field=k)
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank", field=k)

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}", field=k)

        patch[k] = val

    return patch


def _require_range(patch: dict, field: str, *, minimum: int, maximum: int) -> None:
    if field not in patch or patch[field] is None:
        return
    value = patch[field]
    if value < minimum:
        raise ValidationError(f"{field} must be >= {minimum}", field=field)
    if value > maximum:
        raise ValidationError(f"{field} cannot exceed {maximum}", field=field)


def enforce_rules_inventory_item(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    _require_range(patch, "quantity", minimum=0, maximum=MAX_QUANTITY)
    _require_range(patch, "low_stock_threshold", minimum=0, maximum=MAX_QUANTITY)
    _require_range(patch, "price_cents", minimum=0, maximum=MAX_PRICE_CENTS)


def require_amount_cents(value: Any, field: str, *, allow_zero: bool) -> int:
    """Validate a money amount expressed in integer cents."""
    if value is None:
        raise ValidationError(f"{field} is required", field=field)
    cents = coerce_int(value, field)
    if cents < 0 or (cents == 0 and not allow_zero):
        bound = ">= 0" if allow_zero else "> 0"
        raise ValidationError(f"{field} must be {bound}", field=field)
    if cents > MAX_PRICE_CENTS * 1000:
        raise ValidationError(f"{field} is too large", field=field)
    return cents


def require_id(value: Any, field: str) -> int:
    if value is None:
        raise ValidationError(f"{field} is required", field=field)
    entity_id = coerce_int(value, field)
    if entity_id <= 0:
        raise ValidationError(f"{field} must be a positive integer", field=field)
    return entity_id
