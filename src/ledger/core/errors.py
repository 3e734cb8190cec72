"""Error taxonomy for the ledger core.

Validation errors are raised before anything is written. Store errors are
raised after the surrounding transaction has been rolled back.
"""


class LedgerError(Exception):
    """Base class for every error raised by the ledger core."""


class MalformedPathError(LedgerError):
    """A dotted account path has an empty or repeated segment."""

    def __init__(self, path: str, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Malformed account path {path!r}: {reason}")


class AccountNotFound(LedgerError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Account {name!r} not found")


class InvalidAmount(LedgerError):
    def __init__(self, amount: object):
        self.amount = amount
        super().__init__(f"Amount must be a positive decimal, got {amount!r}")


class InvalidTransaction(LedgerError):
    """A posting or query request failed validation."""


class TransactionNotFound(LedgerError):
    def __init__(self, transaction_id: int):
        self.transaction_id = transaction_id
        super().__init__(f"Transaction {transaction_id} not found")


class AttachmentNotFound(LedgerError):
    def __init__(self, transaction_id: int, name: str):
        self.transaction_id = transaction_id
        self.name = name
        super().__init__(f"Attachment {name!r} not found on transaction {transaction_id}")


class ConstraintViolation(LedgerError):
    """A unique or foreign-key constraint rejected the write."""


class SchemaAlreadyExists(LedgerError):
    """The store already holds ledger tables."""


class StorageUnavailable(LedgerError):
    """The store could not be reached or failed mid-operation."""
