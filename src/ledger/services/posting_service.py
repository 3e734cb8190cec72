"""Double-entry posting of transactions against two accounts."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Iterable, Optional

from sqlalchemy.orm import Session

from ledger.core.database import transaction_scope
from ledger.core.errors import (
    AccountNotFound,
    ConstraintViolation,
    InvalidAmount,
    InvalidTransaction,
)
from ledger.core.models import (
    Account,
    Attachment,
    Categorizes,
    Credit,
    Debit,
    IncreaseOn,
    Tag,
    Transaction,
    as_utc_naive,
    exact_sum,
)
from ledger.services.query_service import get_transaction

logger = logging.getLogger(__name__)


@dataclass
class AttachmentData:
    """A file to store alongside a transaction."""

    name: str
    data: bytes


@dataclass
class PostingRequest:
    """Everything needed to post one transaction."""

    # Required fields
    amount: Decimal
    currency: str
    date: datetime
    debit_account: str
    credit_account: str

    # Optional fields
    description: Optional[str] = None
    tags: list[str] = field(default_factory=list)
    attachments: list[AttachmentData] = field(default_factory=list)


def balance_deltas(
    amount: Decimal,
    debit_increase_on: IncreaseOn,
    credit_increase_on: IncreaseOn,
) -> tuple[Decimal, Decimal]:
    """Balance changes for the debit-side and credit-side accounts.

    Each account grows only when it is posted on the side named by its own
    ``increase_on`` and shrinks otherwise.
    """
    debit_delta = amount if debit_increase_on == IncreaseOn.ON_DEBIT else amount.copy_negate()
    credit_delta = amount if credit_increase_on == IncreaseOn.ON_CREDIT else amount.copy_negate()
    return debit_delta, credit_delta


def _coerce_amount(amount) -> Decimal:
    if isinstance(amount, bool):
        raise InvalidAmount(amount)
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise InvalidAmount(amount) from None
    if not value.is_finite() or value <= 0:
        raise InvalidAmount(amount)
    return value


def _normalize_tags(tags: Iterable[str]) -> list[str]:
    """Strip, drop blanks and de-duplicate while keeping first-seen order."""
    seen: dict[str, None] = {}
    for tag in tags:
        name = (tag or "").strip()
        if name:
            seen.setdefault(name, None)
    return list(seen)


def _validate(db: Session, request: PostingRequest) -> tuple[Decimal, Account, Account]:
    amount = _coerce_amount(request.amount)

    if not (request.currency or "").strip():
        raise InvalidTransaction("Currency must not be empty")
    if request.debit_account == request.credit_account:
        raise InvalidTransaction(
            f"Debit and credit account must differ (both {request.debit_account!r})"
        )

    names = [a.name for a in request.attachments]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise InvalidTransaction(f"Duplicate attachment names: {', '.join(duplicates)}")
    if any(not (n or "").strip() for n in names):
        raise InvalidTransaction("Attachment names must not be empty")

    debit_account = db.get(Account, request.debit_account)
    if debit_account is None:
        raise AccountNotFound(request.debit_account)
    credit_account = db.get(Account, request.credit_account)
    if credit_account is None:
        raise AccountNotFound(request.credit_account)

    return amount, debit_account, credit_account


def _get_or_create_tag(db: Session, name: str) -> Tag:
    existing = db.get(Tag, name)
    if existing:
        return existing
    tag = Tag(name=name)
    db.add(tag)
    return tag


def post_transaction(db: Session, request: PostingRequest) -> Transaction:
    """Validate and persist one transaction, updating both account balances.

    All validation happens before anything is written. Tags, balances, the
    transaction row and its debit/credit/tag/attachment links are written in
    a single transaction; on any failure none of it persists.

    Returns:
        The persisted transaction with its generated id.
    """
    with transaction_scope(db):
        amount, debit_account, credit_account = _validate(db, request)
        tag_names = _normalize_tags(request.tags)

        debit_delta, credit_delta = balance_deltas(
            amount, debit_account.increase_on, credit_account.increase_on
        )

        tags = [_get_or_create_tag(db, name) for name in tag_names]

        debit_account.balance = exact_sum([debit_account.balance, debit_delta])
        credit_account.balance = exact_sum([credit_account.balance, credit_delta])

        tx = Transaction(
            date=as_utc_naive(request.date),
            amount=amount,
            currency=request.currency.strip(),
            description=request.description,
        )
        tx.debit = Debit(account_name=debit_account.name)
        tx.credit = Credit(account_name=credit_account.name)
        tx.categorizations = [Categorizes(tag=tag) for tag in tags]
        tx.attachments = [Attachment(name=a.name, data=a.data) for a in request.attachments]
        db.add(tx)
        db.flush()  # populate tx.id

    logger.info(
        "Posted transaction %s: %s %s debit=%s (%s) credit=%s (%s)",
        tx.id,
        amount,
        tx.currency,
        debit_account.name,
        debit_delta,
        credit_account.name,
        credit_delta,
    )
    return tx


def delete_transaction(db: Session, transaction_id: int) -> None:
    """Delete a transaction and reverse its effect on both account balances.

    Debit, credit, tag links and attachments go with it through the
    foreign-key cascade.
    """
    with transaction_scope(db):
        tx = get_transaction(db, transaction_id)
        debit_account = db.get(Account, tx.debit_account_name)
        credit_account = db.get(Account, tx.credit_account_name)

        debit_delta, credit_delta = balance_deltas(
            tx.amount, debit_account.increase_on, credit_account.increase_on
        )
        debit_account.balance = exact_sum([debit_account.balance, debit_delta.copy_negate()])
        credit_account.balance = exact_sum([credit_account.balance, credit_delta.copy_negate()])

        db.delete(tx)

    logger.info("Deleted transaction %s", transaction_id)


def tag_transaction(db: Session, transaction_id: int, tags: Iterable[str]) -> Transaction:
    """Link extra tags to an existing transaction; already-linked tags are skipped."""
    with transaction_scope(db):
        tx = get_transaction(db, transaction_id)
        linked = set(tx.tag_names)
        for name in _normalize_tags(tags):
            if name in linked:
                continue
            tx.categorizations.append(Categorizes(tag=_get_or_create_tag(db, name)))
            linked.add(name)
    return tx


def untag_transaction(db: Session, transaction_id: int, tags: Iterable[str]) -> Transaction:
    """Unlink tags from a transaction. The tags themselves are kept."""
    with transaction_scope(db):
        tx = get_transaction(db, transaction_id)
        removed = set(_normalize_tags(tags))
        tx.categorizations = [c for c in tx.categorizations if c.tag_name not in removed]
    return tx


def attach_file(db: Session, transaction_id: int, name: str, data: bytes) -> Attachment:
    """Store a new attachment on an existing transaction."""
    if not (name or "").strip():
        raise InvalidTransaction("Attachment names must not be empty")

    with transaction_scope(db):
        tx = get_transaction(db, transaction_id)
        if any(a.name == name for a in tx.attachments):
            raise ConstraintViolation(
                f"Transaction {transaction_id} already has an attachment named {name!r}"
            )
        attachment = Attachment(name=name, data=data)
        tx.attachments.append(attachment)

    logger.info("Attached %s to transaction %s", name, transaction_id)
    return attachment
