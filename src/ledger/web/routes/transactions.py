"""API routes for posting and reading transactions."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import Base64Bytes, BaseModel, Field
from sqlalchemy.orm import Session

from ledger.core.database import get_db
from ledger.services.posting_service import (
    AttachmentData,
    PostingRequest,
    delete_transaction,
    post_transaction,
    tag_transaction,
    untag_transaction,
)
from ledger.services.query_service import (
    get_attachment,
    get_transaction,
    iter_transactions,
    transactions_by_date_range,
    transactions_with_tag,
)

router = APIRouter(tags=["transactions"])


class AttachmentIn(BaseModel):
    """File attached to a posting, base64 encoded."""

    name: str
    data: Base64Bytes


class PostTransactionRequest(BaseModel):
    amount: Decimal = Field(gt=0)
    currency: str = Field(min_length=1)
    date: datetime
    description: Optional[str] = None
    debit_account: str
    credit_account: str
    tags: list[str] = []
    attachments: list[AttachmentIn] = []


class TagsRequest(BaseModel):
    tags: list[str]


def _parse_bound(value: Optional[str], name: str) -> date | datetime | None:
    """A date-only value stays a date so the range covers the whole day."""
    if value is None:
        return None
    try:
        if len(value) == 10:
            return date.fromisoformat(value)
        return datetime.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=422, detail=f"Invalid {name}: {value!r}") from None


@router.get("")
def list_transactions(
    start: Optional[str] = Query(None, description="ISO date or datetime, inclusive"),
    end: Optional[str] = Query(None, description="ISO date or datetime, inclusive"),
    tag: Optional[str] = Query(None),
    db: Session = Depends(get_db),
) -> list[dict]:
    """All transactions, those carrying ``tag``, or those within [start, end] oldest first."""
    if tag:
        return [tx.to_dict() for tx in transactions_with_tag(db, tag)]
    lower = _parse_bound(start, "start")
    upper = _parse_bound(end, "end")
    if lower is not None or upper is not None:
        return [tx.to_dict() for tx in transactions_by_date_range(db, lower, upper)]
    return [tx.to_dict() for tx in iter_transactions(db)]


@router.post("", status_code=201)
def create_transaction(request: PostTransactionRequest, db: Session = Depends(get_db)) -> dict:
    tx = post_transaction(
        db,
        PostingRequest(
            amount=request.amount,
            currency=request.currency,
            date=request.date,
            description=request.description,
            debit_account=request.debit_account,
            credit_account=request.credit_account,
            tags=request.tags,
            attachments=[AttachmentData(name=a.name, data=a.data) for a in request.attachments],
        ),
    )
    return tx.to_dict()


@router.get("/{tx_id}")
def read_transaction(tx_id: int, db: Session = Depends(get_db)) -> dict:
    return get_transaction(db, tx_id).to_dict()


@router.delete("/{tx_id}", status_code=204)
def remove_transaction(tx_id: int, db: Session = Depends(get_db)) -> Response:
    delete_transaction(db, tx_id)
    return Response(status_code=204)


@router.post("/{tx_id}/tags")
def add_tags(tx_id: int, request: TagsRequest, db: Session = Depends(get_db)) -> dict:
    return tag_transaction(db, tx_id, request.tags).to_dict()


@router.delete("/{tx_id}/tags/{tag}")
def remove_tag(tx_id: int, tag: str, db: Session = Depends(get_db)) -> dict:
    return untag_transaction(db, tx_id, [tag]).to_dict()


@router.get("/{tx_id}/attachments/{name}")
def download_attachment(tx_id: int, name: str, db: Session = Depends(get_db)) -> Response:
    attachment = get_attachment(db, tx_id, name)
    return Response(
        content=attachment.data,
        media_type="application/octet-stream",
        headers={"Content-Disposition": f'attachment; filename="{attachment.name}"'},
    )
