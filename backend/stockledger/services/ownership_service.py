"""
Ownership scoping helpers

Every entity row carries the user_id of the account that owns it. The user id
comes from the identity provider (see decorators.require_user) and is passed
explicitly into every service call.

INVARIANTS:
1. Queries over user-owned data always filter by user_id
2. A row owned by another user is reported exactly like a missing row
   (NotFoundError), so ids belonging to other accounts are not revealed
"""

from __future__ import annotations

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from .concurrency import lock_for_update


def require_user_id(user_id) -> str:
    """Normalize the caller identity; services refuse to run without one."""
    if not isinstance(user_id, str) or not user_id.strip():
        raise ValidationError("user_id is required", field="user_id")
    return user_id.strip()


def scoped_query(model, user_id: str):
    return db.session.query(model).filter(model.user_id == user_id)


def require_owned(model, entity_id: int, user_id: str, entity: str, *, lock: bool = False):
    """
    Load a row by id, scoped to its owner.

    Raises:
        NotFoundError if the row doesn't exist or belongs to another user
    """
    query = db.session.query(model).filter(model.id == entity_id)
    if lock:
        query = lock_for_update(query)
    row = query.first()
    if row is None or row.user_id != user_id:
        raise NotFoundError(entity, entity_id)
    return row
