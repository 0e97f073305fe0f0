# Overview: Transaction, row-locking and retry helpers shared by ledger services.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for ledger read-modify-write.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    The optimistic version_id on ledger rows covers SQLite.
    """
    return query.with_for_update()


def _retry_policy() -> tuple[int, float]:
    config = current_app.config
    return (
        int(config.get("STOCKLEDGER_RETRY_ATTEMPTS", 3)),
        float(config.get("STOCKLEDGER_RETRY_BACKOFF", 0.1)),
    )


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). The session is rolled back before each
    retry so the operation re-reads live rows.
    """
    default_attempts, default_backoff = _retry_policy()
    attempts = default_attempts if attempts is None else attempts
    backoff_base = default_backoff if backoff_base is None else backoff_base

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Retrying after concurrency conflict (attempt %d/%d): %s",
                attempt + 1, attempts, exc.__class__.__name__,
            )
            time.sleep(backoff_base * (2 ** attempt))


def run_in_transaction(func, **retry_kwargs):
    """
    Run func and commit once; roll back on any failure.

    All ledger writes of one operation share this single commit, so a
    failure anywhere leaves no partial rows behind.
    """
    def _op():
        try:
            value = func()
            db.session.commit()
            return value
        except Exception:
            db.session.rollback()
            raise

    return run_with_retry(_op, **retry_kwargs)
