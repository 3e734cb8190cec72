"""Chart-of-accounts registration and hierarchy lookups.

Accounts are registered from dotted paths such as ``"Assets.Bank.Checking"``,
most-ancestral segment first. The hierarchy is stored as a closure table
(``ancestor_to``) holding every ancestor/descendant pair, not just
parent/child edges, so roll-up reads never recurse.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from ledger.core.database import transaction_scope
from ledger.core.errors import AccountNotFound, ConstraintViolation, MalformedPathError
from ledger.core.models import Account, AncestorTo, IncreaseOn, exact_sum

logger = logging.getLogger(__name__)

PATH_SEPARATOR = "."


def split_account_path(path: str) -> list[str]:
    """Split a dotted account path into its segments.

    Raises MalformedPathError for blank segments (leading, trailing or double
    dots) and for a segment that appears twice in the same path.
    """
    segments = [segment.strip() for segment in (path or "").split(PATH_SEPARATOR)]
    if any(not segment for segment in segments):
        raise MalformedPathError(path, "empty segment")

    seen: set[str] = set()
    for segment in segments:
        if segment in seen:
            raise MalformedPathError(path, f"segment {segment!r} repeated")
        seen.add(segment)
    return segments


def closure_pairs(segments: list[str]) -> list[tuple[str, str]]:
    """Every (ancestor, descendant) pair implied by an ordered segment list.

    For ``[A, B, C]`` this is ``[(A, B), (A, C), (B, C)]``: n*(n-1)/2 pairs.
    """
    return [
        (ancestor, descendant)
        for index, ancestor in enumerate(segments)
        for descendant in segments[index + 1 :]
    ]


def _get_or_create_account(db: Session, name: str, increase_on: IncreaseOn) -> Account:
    existing = db.get(Account, name)
    if existing:
        if existing.increase_on != increase_on:
            logger.debug(
                "Account %s keeps increase_on=%s (requested %s)",
                name,
                existing.increase_on.value,
                increase_on.value,
            )
        return existing

    account = Account(name=name, balance=Decimal("0"), increase_on=increase_on)
    db.add(account)
    db.flush()
    return account


def _reaches(db: Session, start: str, target: str) -> bool:
    """True when ``target`` lies below ``start`` through any chain of stored pairs."""
    seen = {start}
    frontier = [start]
    while frontier:
        rows = db.query(AncestorTo.descendant_name).filter(AncestorTo.ancestor_name.in_(frontier))
        frontier = []
        for row in rows:
            if row.descendant_name == target:
                return True
            if row.descendant_name not in seen:
                seen.add(row.descendant_name)
                frontier.append(row.descendant_name)
    return False


def _ensure_ancestry(db: Session, ancestor: str, descendant: str) -> bool:
    """Insert one closure pair; returns False when it was already present."""
    if db.get(AncestorTo, (ancestor, descendant)):
        return False
    if _reaches(db, descendant, ancestor):
        raise ConstraintViolation(
            f"{ancestor!r} is already below {descendant!r}; "
            "registering this path would create a cycle"
        )
    db.add(AncestorTo(ancestor_name=ancestor, descendant_name=descendant))
    db.flush()
    return True


def register_account_path(
    db: Session,
    path: str,
    increase_on: IncreaseOn = IncreaseOn.ON_DEBIT,
) -> list[Account]:
    """Register every account in ``path`` plus the full ancestry closure.

    Works left to right: the leading segment is created (if missing) and
    linked as ancestor of every segment to its right, then the same is done
    for the remaining segments. Existing accounts and pairs are left as they
    are, so repeated registration is a no-op. The whole path is written in
    one transaction.

    Returns:
        The accounts of the path, most-ancestral first.
    """
    segments = split_account_path(path)
    increase_on = IncreaseOn(increase_on)

    accounts: list[Account] = []
    created_pairs = 0
    with transaction_scope(db):
        remaining = segments
        while remaining:
            head, descendants = remaining[0], remaining[1:]
            accounts.append(_get_or_create_account(db, head, increase_on))
            for descendant in descendants:
                _get_or_create_account(db, descendant, increase_on)
                if _ensure_ancestry(db, head, descendant):
                    created_pairs += 1
            remaining = descendants

    logger.info(
        "Registered account path %s (%d accounts, %d new ancestry pairs)",
        PATH_SEPARATOR.join(segments),
        len(accounts),
        created_pairs,
    )
    return accounts


def get_account(db: Session, name: str) -> Account:
    account = db.get(Account, name)
    if account is None:
        raise AccountNotFound(name)
    return account


def list_accounts(db: Session) -> list[Account]:
    return db.query(Account).order_by(Account.name).all()


def descendants_of(db: Session, name: str) -> list[str]:
    """Names of every account below ``name``, at any depth."""
    get_account(db, name)
    rows = (
        db.query(AncestorTo.descendant_name)
        .filter(AncestorTo.ancestor_name == name)
        .order_by(AncestorTo.descendant_name)
    )
    return [row.descendant_name for row in rows]


def ancestors_of(db: Session, name: str) -> list[str]:
    """Names of every account above ``name``, at any depth."""
    get_account(db, name)
    rows = (
        db.query(AncestorTo.ancestor_name)
        .filter(AncestorTo.descendant_name == name)
        .order_by(AncestorTo.ancestor_name)
    )
    return [row.ancestor_name for row in rows]


def subtree_balance(db: Session, name: str) -> Decimal:
    """Balance of ``name`` plus the balances of all its descendants."""
    account = get_account(db, name)
    rows = (
        db.query(Account.balance)
        .join(AncestorTo, AncestorTo.descendant_name == Account.name)
        .filter(AncestorTo.ancestor_name == name)
    )
    return exact_sum([account.balance, *(row.balance for row in rows)])
