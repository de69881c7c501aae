# Overview: Service-layer helpers for atomic read-modify-write units with retry.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConflictRetryExhausted
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; begin_write_transaction()
    takes the database write lock up front instead.
    """
    return query.with_for_update()


def begin_write_transaction() -> None:
    """
    Start the unit as a writer.

    SQLite only allows one writer at a time; BEGIN IMMEDIATE acquires that
    lock before the first read so two units can never both read the same
    stale balance. Must be the first statement of the unit.
    """
    if db.engine.dialect.name == "sqlite":
        db.session.execute(text("BEGIN IMMEDIATE"))


TRANSIENT_ERROR_MARKERS = (
    "database is locked",
    "database table is locked",
    "deadlock",
    "lock wait timeout",
    "could not serialize access",
    "could not obtain lock",
)

# SQLSTATE codes for serialization failure and deadlock
TRANSIENT_SQLSTATES = {"40001", "40P01"}


def is_transient_db_error(exc: OperationalError) -> bool:
    """True for lock timeouts, deadlocks and serialization failures."""
    orig = getattr(exc, "orig", None)
    if getattr(orig, "pgcode", None) in TRANSIENT_SQLSTATES:
        return True
    message = str(orig if orig is not None else exc).lower()
    return any(marker in message for marker in TRANSIENT_ERROR_MARKERS)


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute an atomic DB unit, retrying it from scratch on concurrency failures.

    Retries on transient OperationalErrors (deadlocks, lock timeouts,
    serialization failures) and StaleDataError (version_id conflicts). Other
    OperationalErrors, such as a missing table, are not contention and
    propagate on the first attempt. The session is rolled back on every
    failure, so each retry re-reads fresh rows and no partial write survives.
    Any other exception is propagated after rollback.

    Raises:
        ConflictRetryExhausted: still conflicting after `attempts` tries
    """
    config = current_app.config
    if attempts is None:
        attempts = config.get("LEDGER_RETRY_ATTEMPTS", 5)
    if backoff_base is None:
        backoff_base = config.get("LEDGER_RETRY_BACKOFF_SECONDS", 0.05)

    for attempt in range(1, attempts + 1):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if isinstance(exc, OperationalError) and not is_transient_db_error(exc):
                raise
            if attempt >= attempts:
                current_app.logger.error(
                    "Ledger transaction failed after %d attempts: %s", attempts, exc
                )
                raise ConflictRetryExhausted(attempts) from exc
            current_app.logger.warning(
                "Ledger transaction conflict (attempt %d/%d), retrying: %s", attempt, attempts, exc
            )
            time.sleep(backoff_base * (2 ** (attempt - 1)))
        except Exception:
            db.session.rollback()
            raise
    raise ConflictRetryExhausted(attempts)
