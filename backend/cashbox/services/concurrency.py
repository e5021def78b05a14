# Overview: Locking and retry primitives that keep register balances consistent under concurrent writes.

from __future__ import annotations

import threading
import time
import weakref
from contextlib import contextmanager

from flask import current_app
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

_registry_guard = threading.Lock()
# Entries vanish once no thread holds or waits on the lock
_register_locks: weakref.WeakValueDictionary = weakref.WeakValueDictionary()


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


@contextmanager
def register_lock(key):
    """
    Serialize read-modify-write sections for one register in this process.

    Keys are register ids; branch-wide sections (opening a register) use a
    (tenant_id, branch_id) tuple.

    Re-entrant, so a close that appends an adjustment can nest safely.
    Cross-process writers are caught by the register's version_id column.
    """
    with _registry_guard:
        lock = _register_locks.get(key)
        if lock is None:
            lock = threading.RLock()
            _register_locks[key] = lock
    with lock:
        yield


def run_with_retry(func, *, attempts: int | None = None, backoff_base: float | None = None):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). Any other exception rolls the session
    back and propagates immediately.
    """
    if attempts is None:
        attempts = current_app.config.get("CASH_RETRY_ATTEMPTS", 3)
    if backoff_base is None:
        backoff_base = current_app.config.get("CASH_RETRY_BACKOFF", 0.05)
    attempts = max(1, attempts)

    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Retrying cash ledger write after %s (attempt %d of %d)",
                type(exc).__name__, attempt + 1, attempts,
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise
