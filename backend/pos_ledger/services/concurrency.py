# Overview: Unit-of-work, row locking and serialization-retry helpers for ledger writes.

from __future__ import annotations

import time

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import LedgerError, StorageError
from ..extensions import db


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; run_atomic() takes the
    database write lock up front there instead.
    """
    return query.with_for_update()


def _begin_write() -> None:
    # SQLite has no row locks: take the RESERVED lock before the first read
    # so two writers can never interleave their check-and-set.
    if db.engine.dialect.name != "sqlite":
        return
    session = db.session()
    if session.in_transaction() or session.new or session.dirty or session.deleted:
        # Close whatever transaction earlier work left open, pending
        # changes included, so the unit of work always starts under the lock
        session.commit()
    session.execute(text("BEGIN IMMEDIATE"))


def run_atomic(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute func as a single unit of work and commit it.

    - Business errors (LedgerError) roll back and propagate untouched; they
      are never retried.
    - Serialization failures (OperationalError for locks/deadlocks,
      StaleDataError for optimistic version conflicts) roll back and re-run
      func from scratch, so every retry re-reads state and re-checks gates.
    - Any other SQLAlchemy failure rolls back and surfaces as StorageError.
    """
    if attempts is None:
        attempts = current_app.config.get("LEDGER_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("LEDGER_RETRY_BACKOFF", 0.1)
    attempts = max(1, attempts)

    for attempt in range(attempts):
        try:
            _begin_write()
            result = func()
            db.session.commit()
            return result
        except LedgerError:
            db.session.rollback()
            raise
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise StorageError(
                    "Ledger write failed after concurrent-update retries",
                    details={"attempts": attempts, "cause": exc.__class__.__name__},
                ) from exc
            current_app.logger.warning(
                "Retrying ledger write after %s (attempt %d/%d)",
                exc.__class__.__name__, attempt + 1, attempts,
            )
            time.sleep(backoff_base * (2 ** attempt))
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise StorageError(
                "Ledger write failed",
                details={"cause": exc.__class__.__name__},
            ) from exc
        except Exception:
            db.session.rollback()
            raise
