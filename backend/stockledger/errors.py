# Overview: Typed error taxonomy shared by services and routes.

"""
Ledger errors

Every failure a service can surface to a caller is one of these classes.
Each carries a human-readable message plus a `details` dict with the
entity ids/fields a client needs to render a precise message.

    NotFoundError           404  referenced entity missing (or owned by another user)
    ValidationError         400  malformed input, rejected before touching the database
    InsufficientStockError  409  sale would drive an item's quantity below zero
    OverpaymentError        409  payment exceeds the customer's outstanding balance
    ConflictRetryExhausted  503  contention outlasted the retry limit; retry later
"""

from __future__ import annotations


class LedgerError(Exception):
    """Base class for all service-level errors."""

    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "details": self.details}


class NotFoundError(LedgerError):
    status_code = 404

    def __init__(self, entity: str, entity_id, message: str | None = None):
        super().__init__(
            message or f"{entity.capitalize()} {entity_id} not found",
            details={"entity": entity, "entity_id": entity_id},
        )
        self.entity = entity
        self.entity_id = entity_id


class ValidationError(LedgerError, ValueError):
    """400-level input problem."""

    status_code = 400

    def __init__(self, message: str, field: str | None = None, details: dict | None = None):
        merged = dict(details or {})
        if field is not None:
            merged.setdefault("field", field)
        super().__init__(message, details=merged)
        self.field = field


class InsufficientStockError(LedgerError):
    status_code = 409

    def __init__(self, items: list[dict]):
        names = ", ".join(f"'{i['item_name']}'" for i in items)
        super().__init__(f"Insufficient stock for {names}", details={"items": items})
        self.items = items


class OverpaymentError(LedgerError):
    status_code = 409

    def __init__(self, customer_id: int, balance_cents: int, amount_cents: int):
        super().__init__(
            "Payment amount exceeds outstanding balance",
            details={
                "customer_id": customer_id,
                "balance_cents": balance_cents,
                "amount_cents": amount_cents,
            },
        )


class ConflictRetryExhausted(LedgerError):
    """Transient: the atomic unit kept conflicting with concurrent writers."""

    status_code = 503

    def __init__(self, attempts: int):
        super().__init__(
            f"Transaction could not be committed after {attempts} attempts due to concurrent updates; retry later",
            details={"attempts": attempts},
        )
        self.attempts = attempts
