# Overview: Retry helpers for units of work that race other requests on the same rows.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


RETRYABLE_ERRORS = (OperationalError, StaleDataError)


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB unit of work, retrying on concurrency-related failures.

    Retries on OperationalError (SQLite "database is locked", deadlocks) and
    StaleDataError (optimistic version_id conflicts). The session is rolled
    back before each retry so func always starts from a clean transaction.
    """
    for attempt in range(attempts):
        try:
            return func()
        except RETRYABLE_ERRORS as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            delay = backoff_base * (2 ** attempt)
            current_app.logger.warning(
                "Retrying unit of work after %s (attempt %d/%d, sleeping %.2fs)",
                type(exc).__name__, attempt + 1, attempts, delay,
            )
            time.sleep(delay)
