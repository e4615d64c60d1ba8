# Overview: Row locking and retry helpers shared by the quote services.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


# Lock waits and optimistic version clashes; everything else is deterministic
RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def lock_for_update(query):
    """
    SELECT ... FOR UPDATE on the quote / line item being mutated.

    SQLite ignores the clause; the version_id columns on Quote and LineItem
    still turn a lost update into StaleDataError there.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run one read-modify-write unit, retrying on RETRYABLE_ERRORS.

    func must open and commit its own transaction. On any failure the session
    is rolled back; QuoteEngineError and other exceptions are re-raised at
    once, retryable ones after the last attempt.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt >= attempts:
                raise
            current_app.logger.warning(
                "Concurrent write conflict (%s), retry %d/%d",
                type(exc).__name__, attempt, attempts - 1,
            )
            time.sleep(backoff_base * (2 ** (attempt - 1)))
        except Exception:
            db.session.rollback()
            raise
