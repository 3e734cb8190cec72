"""API routes for the chart of accounts."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ledger.core.database import get_db
from ledger.core.models import IncreaseOn
from ledger.services.account_service import (
    ancestors_of,
    descendants_of,
    get_account,
    list_accounts,
    register_account_path,
    subtree_balance,
)
from ledger.services.query_service import transactions_for_account

router = APIRouter(tags=["accounts"])


class RegisterAccountRequest(BaseModel):
    """Dotted path, most-ancestral segment first, e.g. ``Assets.Bank.Checking``."""

    path: str
    increase_on: IncreaseOn = IncreaseOn.ON_DEBIT


@router.post("", status_code=201)
def register_account(request: RegisterAccountRequest, db: Session = Depends(get_db)) -> list[dict]:
    accounts = register_account_path(db, request.path, request.increase_on)
    return [account.to_dict() for account in accounts]


@router.get("")
def read_accounts(db: Session = Depends(get_db)) -> list[dict]:
    return [account.to_dict() for account in list_accounts(db)]


@router.get("/{name}")
def read_account(name: str, db: Session = Depends(get_db)) -> dict:
    payload = get_account(db, name).to_dict()
    payload["ancestors"] = ancestors_of(db, name)
    payload["descendants"] = descendants_of(db, name)
    payload["subtree_balance"] = str(subtree_balance(db, name))
    return payload


@router.get("/{name}/transactions")
def read_account_transactions(
    name: str,
    include_descendants: bool = True,
    db: Session = Depends(get_db),
) -> list[dict]:
    return [tx.to_dict() for tx in transactions_for_account(db, name, include_descendants)]
