# Overview: Transaction helpers shared by the services: row locks, retries, storage errors.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


class StorageError(RuntimeError):
    """Underlying persistence failure (500-level)."""


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE (it locks the whole database on
    write instead), but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB transaction with retry on concurrency-related failures.

    Retries on OperationalError (locks, busy timeouts, deadlocks) and
    StaleDataError (optimistic locking conflicts). `func` must be the whole
    transaction: every retry starts from a rolled-back session.

    Other SQLAlchemy failures and exhausted retries surface as StorageError.
    Domain errors raised by `func` roll back and propagate unchanged.
    """
    if attempts is None:
        attempts = current_app.config.get("TX_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("TX_RETRY_BACKOFF_SECONDS", 0.1)
    attempts = max(1, attempts)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise StorageError("Storage is busy, try again") from exc
            current_app.logger.warning(
                "Transaction conflict (attempt %s/%s): %s", attempt + 1, attempts, exc
            )
            time.sleep(backoff_base * (2 ** attempt))
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StorageError("Storage failure") from exc
        except Exception:
            db.session.rollback()
            raise
