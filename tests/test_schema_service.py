"""Tests for schema creation and store-level integrity settings."""

from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import inspect
from sqlalchemy.pool import StaticPool

from ledger.core.database import create_store_engine, make_session_factory, transaction_scope
from ledger.core.errors import ConstraintViolation, SchemaAlreadyExists
from ledger.core.models import Account, Debit, Transaction
from ledger.services.account_service import register_account_path
from ledger.services.schema_service import create_schema, schema_exists

EXPECTED_TABLES = {
    "accounts",
    "ancestor_to",
    "transactions",
    "debits",
    "credits",
    "tags",
    "categorizes",
    "attachments",
}


@pytest.fixture
def engine():
    engine = create_store_engine("sqlite://", poolclass=StaticPool)
    try:
        yield engine
    finally:
        engine.dispose()


def test_create_schema_creates_all_tables(engine):
    assert not schema_exists(engine)

    create_schema(engine)

    assert set(inspect(engine).get_table_names()) == EXPECTED_TABLES
    assert schema_exists(engine)


def test_schema_keys_and_cascades(engine):
    create_schema(engine)
    inspector = inspect(engine)

    assert inspector.get_pk_constraint("ancestor_to")["constrained_columns"] == [
        "ancestor_name",
        "descendant_name",
    ]
    assert inspector.get_pk_constraint("attachments")["constrained_columns"] == [
        "name",
        "transaction_id",
    ]
    assert {fk["referred_table"] for fk in inspector.get_foreign_keys("categorizes")} == {
        "tags",
        "transactions",
    }

    with engine.connect() as conn:
        ddl = conn.exec_driver_sql(
            "SELECT sql FROM sqlite_master WHERE type = 'table' AND name = 'debits'"
        ).scalar()
    assert ddl.count("ON DELETE CASCADE") == 2
    assert ddl.count("ON UPDATE CASCADE") == 2


def test_create_schema_twice_raises_and_keeps_data(engine):
    create_schema(engine)
    db = make_session_factory(engine)()
    register_account_path(db, "Assets.Cash")

    with pytest.raises(SchemaAlreadyExists):
        create_schema(engine)

    assert db.get(Account, "Cash") is not None
    assert set(inspect(engine).get_table_names()) == EXPECTED_TABLES
    db.close()


def test_foreign_keys_enforced_on_every_connection(engine):
    with engine.connect() as conn:
        assert conn.exec_driver_sql("PRAGMA foreign_keys").scalar() == 1


def test_foreign_key_violation_rolls_back(engine):
    create_schema(engine)
    db = make_session_factory(engine)()

    with pytest.raises(ConstraintViolation):
        with transaction_scope(db):
            tx = Transaction(
                date=datetime(2024, 1, 1), amount=Decimal("1"), currency="USD"
            )
            db.add(tx)
            db.flush()
            db.add(Debit(transaction_id=tx.id, account_name="NoSuchAccount"))

    assert db.query(Transaction).count() == 0
    db.close()
