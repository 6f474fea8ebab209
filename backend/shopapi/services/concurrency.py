# Overview: Service-layer operations for concurrency; encapsulates retry and compare-and-set updates.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError

from ..errors import DatabaseUnavailable
from ..extensions import db


def run_with_retry(func, *, attempts: int = 2, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on transient failures.

    Retries on OperationalError (dropped connections, lock timeouts). Domain
    errors raised by func propagate immediately. The default of two attempts
    gives transient faults exactly one retry; if the last attempt fails too,
    DatabaseUnavailable is raised.
    """
    for attempt in range(attempts):
        try:
            return func()
        except OperationalError as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.error("Database operation failed after %s attempts: %s", attempts, exc)
                raise DatabaseUnavailable() from exc
            current_app.logger.warning("Transient database error, retrying: %s", exc)
            time.sleep(backoff_base * (2 ** attempt))


def compare_and_set(model, row_id: int, column: str, expected, values: dict) -> bool:
    """
    Conditionally update one row: UPDATE ... SET values WHERE id = row_id AND column = expected.

    Returns True if the row was updated, False if the precondition no longer
    held (another request changed it first, or the row is gone). Does not
    commit; the caller owns the transaction.
    """
    updated = db.session.query(model).filter(
        model.id == row_id,
        getattr(model, column) == expected,
    ).update(values, synchronize_session=False)
    return updated == 1
