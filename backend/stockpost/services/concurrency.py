# Overview: Transaction ownership, retry and row locking shared by every write path.

from __future__ import annotations

import logging
import time

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import scoped_session
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..validation import ConflictError

logger = logging.getLogger(__name__)


class TransactionFailure(Exception):
    """A multi-step write failed below the domain layer and was rolled back."""
    def __init__(self, operation: str, cause: Exception):
        super().__init__(f"Error {operation}: {cause}")
        self.operation = operation
        self.cause = cause


def lock_for_update(query):
    """
    SELECT ... FOR UPDATE on rows about to be read-modified-written (lots,
    sale headers, client rows). SQLite has no row locks and drops the clause;
    begin_immediate_if_sqlite serializes writers there instead.
    """
    return query.with_for_update()


def begin_immediate_if_sqlite(session) -> None:
    """
    Take the SQLite write lock up front so two writers cannot both read
    pre-deduction lot quantities. Only valid before the transaction has
    issued any statement.
    """
    if isinstance(session, scoped_session):
        session = session()
    if session.get_bind().dialect.name == "sqlite" and not session.in_transaction():
        session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Call func(), retrying lock/deadlock (OperationalError) and stale-row
    (StaleDataError) failures with exponential backoff. The session is rolled
    back before every retry; the final failure is re-raised.
    """
    for attempt in range(1, attempts + 1):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            if attempt == attempts:
                raise
            logger.warning("Retrying after concurrency failure (attempt %d): %s", attempt, exc)
            time.sleep(backoff_base * 2 ** (attempt - 1))


def run_in_transaction(func, *, operation: str, session=None, immediate: bool = False):
    """
    Run ``func(session)`` as one unit of work.

    session given -> the caller owns the transaction: func runs inside it and
                     nothing is committed or rolled back here.
    session None  -> this call owns it: commit on success, rollback on any
                     failure. Domain errors propagate unchanged, duplicate keys
                     become ConflictError, other database errors are wrapped in
                     TransactionFailure with the operation name.
    """
    if session is not None:
        return func(session)

    def _op():
        if immediate:
            begin_immediate_if_sqlite(db.session())
        try:
            result = func(db.session)
            db.session.commit()
            return result
        except (OperationalError, StaleDataError):
            # run_with_retry rolls back and decides whether to try again
            raise
        except IntegrityError as exc:
            db.session.rollback()
            raise ConflictError("Resource already exists") from exc
        except SQLAlchemyError as exc:
            db.session.rollback()
            raise TransactionFailure(operation, exc) from exc
        except Exception:
            db.session.rollback()
            raise

    try:
        return run_with_retry(_op)
    except (OperationalError, StaleDataError) as exc:
        raise TransactionFailure(operation, exc) from exc
