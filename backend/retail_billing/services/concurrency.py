# Overview: Transaction scoping, row locks and retry for service-layer mutations.

from __future__ import annotations

import logging
import time

from sqlalchemy.exc import OperationalError

from ..extensions import db

logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    Rows already in the identity map are refreshed from the locked read
    (pending changes are autoflushed first).
    """
    return query.with_for_update().populate_existing()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, lock timeouts, "database is
    locked"). Any other exception rolls the session back and propagates.
    """
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except OperationalError as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            logger.warning("Retrying after lock contention (attempt %d): %s", attempt + 1, exc)
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
    if last_exc:
        raise last_exc


def run_atomic(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Run func as a single unit of work.

    Commits when func returns, rolls back when it raises; no partial effect
    of func is ever committed. Lock contention is retried from scratch.
    """
    def _op():
        result = func()
        db.session.commit()
        return result

    return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base)
