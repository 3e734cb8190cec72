"""Creation of the ledger tables."""

from __future__ import annotations

import logging

from sqlalchemy import inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import OperationalError, ProgrammingError

from ledger.core.errors import SchemaAlreadyExists, StorageUnavailable
from ledger.core.models import Base

logger = logging.getLogger(__name__)


def create_schema(engine: Engine) -> None:
    """Create every ledger table, key and cascade rule in one transaction.

    Meant to run once against a fresh store. If any table already exists the
    whole DDL batch is rolled back and ``SchemaAlreadyExists`` is raised.
    """
    try:
        with engine.begin() as conn:
            Base.metadata.create_all(conn, checkfirst=False)
    except (OperationalError, ProgrammingError) as exc:
        if "already exists" in str(exc.orig).lower():
            raise SchemaAlreadyExists(f"Ledger schema already initialized: {exc.orig}") from exc
        if isinstance(exc, OperationalError):
            raise StorageUnavailable(str(exc.orig)) from exc
        raise

    logger.info("Created ledger schema (%d tables)", len(Base.metadata.tables))


def schema_exists(engine: Engine) -> bool:
    """Return True when any ledger table is present in the store."""
    existing = set(inspect(engine).get_table_names())
    return any(name in existing for name in Base.metadata.tables)
