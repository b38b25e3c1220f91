# Overview: Locking and retry helpers for ledger writes.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

# Attempts for one ledger write before a conflict is surfaced to the caller
DEFAULT_ATTEMPTS = 3


def lock_for_update(query):
    """
    Apply row-level locking for balance updates.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there the version_id check
    on Product is what catches a concurrent writer.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = DEFAULT_ATTEMPTS, backoff_base: float = 0.05):
    """
    Execute a unit of work with retry on concurrency-related failures.

    func must be self-contained: it re-reads whatever it needs, validates,
    writes and commits. On OperationalError (locks, deadlocks) or
    StaleDataError (optimistic version conflict) the session is rolled back
    and func runs again from the top, so validation always sees fresh rows.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                current_app.logger.warning(
                    "Giving up after %s attempts: %s", attempts, exc.__class__.__name__
                )
                raise
            current_app.logger.info(
                "Retrying after %s (attempt %s)", exc.__class__.__name__, attempt + 1
            )
            time.sleep(backoff_base * (2 ** attempt))
