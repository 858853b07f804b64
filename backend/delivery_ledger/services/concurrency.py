# Overview: Service-layer helpers for transaction scope and row locking.

from __future__ import annotations

from sqlalchemy.exc import DBAPIError, OperationalError

from ..extensions import db


class StorageError(RuntimeError):
    """Raised when the storage layer fails; never retried automatically."""


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_in_transaction(func):
    """
    Execute one logical operation as a single unit of work.

    Commits when func returns, rolls back on any exception. Driver-level
    failures (locks, lost connections) surface as StorageError immediately;
    domain errors propagate unchanged.
    """
    try:
        result = func()
        db.session.commit()
        return result
    except (OperationalError, DBAPIError) as exc:
        db.session.rollback()
        raise StorageError(f"Storage operation failed: {exc.__class__.__name__}") from exc
    except Exception:
        db.session.rollback()
        raise
