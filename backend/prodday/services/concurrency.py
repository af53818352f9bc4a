# Overview: Transaction, retry and per-date locking helpers shared by the production services.

from __future__ import annotations

import time
from datetime import date

from sqlalchemy import event, insert
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import ProductionDayLock


def lock_for_update(query, *, shared: bool = False):
    """
    Apply row-level locking for critical operations.

    shared=True emits FOR SHARE (LOCK IN SHARE MODE on MySQL).
    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update(read=shared)


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1, retry_on: tuple = ()):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts), plus any extra exception types in
    retry_on.
    """
    retryable = (OperationalError, StaleDataError) + tuple(retry_on)
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except retryable as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def run_in_transaction(func, *, attempts: int = 3, backoff_base: float = 0.1, retry_on: tuple = ()):
    """
    Run func and commit as one unit of work.

    Any exception rolls the whole session back before it propagates, so a
    failed operation never leaves partial state behind.
    """
    def _op():
        try:
            result = func()
            db.session.commit()
            return result
        except Exception:
            db.session.rollback()
            raise

    return run_with_retry(_op, attempts=attempts, backoff_base=backoff_base, retry_on=retry_on)


def _insert_ignore(session_date: date):
    dialect = db.session.get_bind().dialect.name
    values = {"session_date": session_date}
    if dialect == "sqlite":
        return sqlite.insert(ProductionDayLock).values(**values).on_conflict_do_nothing()
    if dialect == "postgresql":
        return postgresql.insert(ProductionDayLock).values(**values).on_conflict_do_nothing()
    if dialect in ("mysql", "mariadb"):
        return mysql.insert(ProductionDayLock).values(**values).prefix_with("IGNORE")
    return None


def lock_day(session_date: date, *, shared: bool = False) -> ProductionDayLock:
    """
    Take the per-date lock for the current transaction.

    Exclusive (finalize/reopen) blocks every other holder of the same date.
    Shared (entry mutators) only blocks against an exclusive holder, so
    concurrent scans on one day do not queue behind each other.

    On SQLite the row lock is a no-op; the transaction already holds the
    database write lock from BEGIN IMMEDIATE (see enable_sqlite_write_locking).
    """
    query = db.session.query(ProductionDayLock).filter_by(session_date=session_date)
    row = lock_for_update(query, shared=shared).first()
    if row is not None:
        return row

    stmt = _insert_ignore(session_date)
    if stmt is not None:
        db.session.execute(stmt)
    else:
        try:
            with db.session.begin_nested():
                db.session.execute(insert(ProductionDayLock).values(session_date=session_date))
        except IntegrityError:
            pass

    return lock_for_update(query, shared=shared).one()


def enable_sqlite_write_locking(engine) -> None:
    """
    Start every SQLite transaction with BEGIN IMMEDIATE.

    pysqlite only emits BEGIN before the first write, so the day-status read
    of an add could interleave with a finalize commit. Taking the write lock
    at BEGIN makes each transaction exclusive against other writers from its
    first statement. Other dialects are left untouched.
    """
    if engine.dialect.name != "sqlite":
        return

    @event.listens_for(engine, "connect")
    def _disable_pysqlite_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")
