"""Database engine, session and transaction-scope management."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from fastapi import Request
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError, IntegrityError, OperationalError
from sqlalchemy.orm import Session, sessionmaker

from ledger.core.errors import ConstraintViolation, StorageUnavailable

logger = logging.getLogger(__name__)


def create_store_engine(url: str, *, echo: bool = False, timeout: float = 10.0, **engine_kwargs) -> Engine:
    """Create an engine with foreign keys enforced on every connection."""
    is_sqlite = url.startswith("sqlite")
    if is_sqlite:
        connect_args = engine_kwargs.pop("connect_args", {})
        connect_args.setdefault("check_same_thread", False)
        connect_args.setdefault("timeout", timeout)
        engine_kwargs["connect_args"] = connect_args

    engine = create_engine(url, echo=echo, **engine_kwargs)

    if is_sqlite:
        # Enable foreign key constraints for SQLite and let SQLAlchemy own BEGIN,
        # so DDL runs inside the same transaction as everything else.
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

        @event.listens_for(engine, "begin")
        def do_begin(conn):
            conn.exec_driver_sql("BEGIN")

    return engine


def make_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine, expire_on_commit=False)


@contextmanager
def transaction_scope(db: Session) -> Iterator[Session]:
    """Run a unit of work: commit on success, roll back everything on failure.

    Store exceptions are translated into ledger errors after the rollback.
    """
    try:
        yield db
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        logger.warning("Rolled back after constraint violation: %s", exc.orig)
        raise ConstraintViolation(str(exc.orig)) from exc
    except OperationalError as exc:
        db.rollback()
        logger.warning("Rolled back after storage error: %s", exc.orig)
        raise StorageUnavailable(str(exc.orig)) from exc
    except DBAPIError as exc:
        db.rollback()
        if exc.connection_invalidated:
            raise StorageUnavailable(str(exc.orig)) from exc
        raise
    except Exception:
        db.rollback()
        raise


def get_db(request: Request) -> Iterator[Session]:
    """Get database session for dependency injection."""
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
