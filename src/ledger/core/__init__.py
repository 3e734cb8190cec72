"""Core module - database, models and errors."""

from ledger.core.database import create_store_engine, get_db, make_session_factory, transaction_scope
from ledger.core.errors import (
    AccountNotFound,
    AttachmentNotFound,
    ConstraintViolation,
    InvalidAmount,
    InvalidTransaction,
    LedgerError,
    MalformedPathError,
    SchemaAlreadyExists,
    StorageUnavailable,
    TransactionNotFound,
)
from ledger.core.models import (
    Account,
    AncestorTo,
    Attachment,
    Categorizes,
    Credit,
    Debit,
    IncreaseOn,
    Tag,
    Transaction,
)

__all__ = [
    "create_store_engine",
    "get_db",
    "make_session_factory",
    "transaction_scope",
    "AccountNotFound",
    "AttachmentNotFound",
    "ConstraintViolation",
    "InvalidAmount",
    "InvalidTransaction",
    "LedgerError",
    "MalformedPathError",
    "SchemaAlreadyExists",
    "StorageUnavailable",
    "TransactionNotFound",
    "Account",
    "AncestorTo",
    "Attachment",
    "Categorizes",
    "Credit",
    "Debit",
    "IncreaseOn",
    "Tag",
    "Transaction",
]
