"""Read-side queries over stored transactions."""

from __future__ import annotations

from datetime import date, datetime, time
from typing import Iterator

from sqlalchemy import or_
from sqlalchemy.orm import Query, Session, selectinload

from ledger.core.errors import AccountNotFound, AttachmentNotFound, InvalidTransaction, TransactionNotFound
from ledger.core.models import (
    Account,
    AncestorTo,
    Attachment,
    Categorizes,
    Credit,
    Debit,
    Transaction,
    as_utc_naive,
)


def _with_links(query: Query) -> Query:
    return query.options(
        selectinload(Transaction.debit),
        selectinload(Transaction.credit),
        selectinload(Transaction.categorizations),
        selectinload(Transaction.attachments),
    )


class TransactionStream:
    """Lazy view over every stored transaction, in storage order.

    Each iteration re-runs the query, so the same stream can be walked more
    than once and always reflects the current contents of the store.
    """

    def __init__(self, db: Session, batch_size: int = 100):
        self.db = db
        self.batch_size = batch_size

    def __iter__(self) -> Iterator[Transaction]:
        query = _with_links(self.db.query(Transaction)).order_by(Transaction.id)
        yield from query.yield_per(self.batch_size)


def iter_transactions(db: Session, batch_size: int = 100) -> TransactionStream:
    return TransactionStream(db, batch_size=batch_size)


def _as_bound(value: date | datetime | None, *, upper: bool) -> datetime:
    if value is None:
        return datetime.max if upper else datetime.min
    if isinstance(value, datetime):
        return as_utc_naive(value)
    # A bare date covers the whole day
    return datetime.combine(value, time.max if upper else time.min)


def transactions_by_date_range(
    db: Session,
    start: date | datetime | None,
    end: date | datetime | None,
) -> list[Transaction]:
    """Transactions with ``start <= date <= end``, oldest first.

    A missing bound leaves that side open. Aware datetimes are compared in
    UTC. Ties on date keep insertion order.
    """
    lower = _as_bound(start, upper=False)
    upper = _as_bound(end, upper=True)
    if lower > upper:
        raise InvalidTransaction(f"Range start {start} is after range end {end}")

    query = (
        db.query(Transaction)
        .filter(Transaction.date >= lower, Transaction.date <= upper)
        .order_by(Transaction.date.asc(), Transaction.id.asc())
    )
    return _with_links(query).all()


def get_transaction(db: Session, transaction_id: int) -> Transaction:
    tx = db.get(Transaction, transaction_id)
    if tx is None:
        raise TransactionNotFound(transaction_id)
    return tx


def transactions_for_account(
    db: Session,
    name: str,
    include_descendants: bool = True,
) -> list[Transaction]:
    """Transactions posted against ``name`` on either side, oldest first.

    With ``include_descendants`` the closure table rolls up every account
    below ``name`` as well.
    """
    if db.get(Account, name) is None:
        raise AccountNotFound(name)

    names = [name]
    if include_descendants:
        names += [
            row.descendant_name
            for row in db.query(AncestorTo.descendant_name).filter(AncestorTo.ancestor_name == name)
        ]

    query = (
        db.query(Transaction)
        .outerjoin(Debit, Debit.transaction_id == Transaction.id)
        .outerjoin(Credit, Credit.transaction_id == Transaction.id)
        .filter(or_(Debit.account_name.in_(names), Credit.account_name.in_(names)))
        .order_by(Transaction.date.asc(), Transaction.id.asc())
        .distinct()
    )
    return _with_links(query).all()


def transactions_with_tag(db: Session, tag: str) -> list[Transaction]:
    query = (
        db.query(Transaction)
        .join(Categorizes, Categorizes.transaction_id == Transaction.id)
        .filter(Categorizes.tag_name == tag)
        .order_by(Transaction.date.asc(), Transaction.id.asc())
    )
    return _with_links(query).all()


def get_attachment(db: Session, transaction_id: int, name: str) -> Attachment:
    attachment = db.get(Attachment, (name, transaction_id))
    if attachment is None:
        raise AttachmentNotFound(transaction_id, name)
    return attachment
