# Overview: Unit-of-work helpers shared by every mutating service call.

from __future__ import annotations

from flask import current_app
from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from .errors import StorageConflict


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE; there begin_write() takes the
    database write lock up front instead.
    """
    return query.with_for_update()


def begin_write() -> None:
    """
    Start the write transaction for a unit of work.

    SQLite only allows one writer; BEGIN IMMEDIATE makes concurrent units of
    work queue on the busy timeout here instead of failing when a deferred
    transaction tries to upgrade its lock halfway through.
    """
    if db.engine.dialect.name != "sqlite":
        return
    dbapi_conn = db.session.connection().connection.dbapi_connection
    if not dbapi_conn.in_transaction:
        db.session.execute(text("BEGIN IMMEDIATE"))


def run_atomic(func):
    """
    Run ``func`` as one all-or-nothing unit of work and commit it.

    Any exception rolls the session back. Storage-level aborts are reported
    as StorageConflict; business errors propagate unchanged. No retries:
    the caller decides whether to start over.
    """
    try:
        begin_write()
        result = func()
        db.session.commit()
        return result
    except (OperationalError, StaleDataError) as exc:
        db.session.rollback()
        current_app.logger.warning("Unit of work aborted by storage: %s", exc)
        raise StorageConflict() from exc
    except Exception:
        db.session.rollback()
        raise
