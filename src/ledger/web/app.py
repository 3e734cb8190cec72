"""FastAPI application entry point."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import sessionmaker

from ledger.core.config import configure_logging, settings
from ledger.core.database import create_store_engine, make_session_factory
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
from ledger.web.routes import accounts, transactions

ERROR_STATUS: dict[type[LedgerError], int] = {
    AccountNotFound: 404,
    TransactionNotFound: 404,
    AttachmentNotFound: 404,
    MalformedPathError: 422,
    InvalidAmount: 422,
    InvalidTransaction: 422,
    ConstraintViolation: 409,
    SchemaAlreadyExists: 409,
    StorageUnavailable: 503,
}


async def ledger_error_handler(request: Request, exc: LedgerError) -> JSONResponse:
    status = ERROR_STATUS.get(type(exc), 400)
    return JSONResponse(
        status_code=status,
        content={"error": type(exc).__name__, "detail": str(exc)},
    )


def create_app(session_factory: sessionmaker | None = None) -> FastAPI:
    """Build the API around an explicit session factory.

    Without one, the store configured in settings is used.
    """
    if session_factory is None:
        configure_logging()
        engine = create_store_engine(
            settings.DATABASE_URL, echo=settings.DEBUG, timeout=settings.DB_TIMEOUT
        )
        session_factory = make_session_factory(engine)

    app = FastAPI(title="Ledger")
    app.state.session_factory = session_factory

    app.include_router(transactions.router, prefix="/transactions")
    app.include_router(accounts.router, prefix="/accounts")
    app.add_exception_handler(LedgerError, ledger_error_handler)

    return app
