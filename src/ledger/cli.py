"""Command-line interface for the ledger.

Initializes the store, registers accounts and posts or lists transactions.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from pathlib import Path
from typing import Iterator, Optional

import click
from sqlalchemy.orm import Session

from ledger.core.config import configure_logging, settings
from ledger.core.database import create_store_engine, make_session_factory
from ledger.core.errors import LedgerError
from ledger.core.models import IncreaseOn, Transaction
from ledger.services.account_service import list_accounts, register_account_path
from ledger.services.posting_service import AttachmentData, PostingRequest, post_transaction
from ledger.services.query_service import get_transaction, iter_transactions, transactions_by_date_range
from ledger.services.schema_service import create_schema, schema_exists

DATE_FORMATS = ["%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S"]


@click.group()
@click.option(
    "--database-url",
    default=None,
    help="SQLAlchemy URL of the store (defaults to DATABASE_URL or data/db/ledger.db).",
)
@click.option("--log-level", default=None, help="Override LOG_LEVEL.")
@click.pass_context
def main(ctx: click.Context, database_url: Optional[str], log_level: Optional[str]) -> None:
    """Double-entry ledger tools."""
    configure_logging(log_level)
    ctx.obj = {"database_url": database_url or settings.DATABASE_URL}


def _engine(ctx: click.Context):
    return create_store_engine(
        ctx.obj["database_url"], echo=settings.DEBUG, timeout=settings.DB_TIMEOUT
    )


@contextmanager
def _session(ctx: click.Context) -> Iterator[Session]:
    engine = _engine(ctx)
    db = make_session_factory(engine)()
    try:
        yield db
    except LedgerError as exc:
        raise click.ClickException(str(exc)) from exc
    finally:
        db.close()
        engine.dispose()


def _echo_transaction(tx: Transaction) -> None:
    tags = f" [{', '.join(tx.tag_names)}]" if tx.tag_names else ""
    click.echo(
        f"{tx.id:>5}  {tx.date:%Y-%m-%d}  {tx.amount:>12} {tx.currency:<4} "
        f"Dr {tx.debit_account_name} / Cr {tx.credit_account_name}"
        f"{'  ' + tx.description if tx.description else ''}{tags}"
    )


@main.command("init-db")
@click.pass_context
def init_db_command(ctx: click.Context) -> None:
    """Create the ledger tables in a fresh store."""
    engine = _engine(ctx)
    try:
        create_schema(engine)
    except LedgerError as exc:
        raise click.ClickException(str(exc)) from exc
    finally:
        engine.dispose()
    click.echo("✓ Ledger schema created")


@main.command("status")
@click.pass_context
def status_command(ctx: click.Context) -> None:
    """Report whether the store holds the ledger schema."""
    engine = _engine(ctx)
    try:
        initialized = schema_exists(engine)
    finally:
        engine.dispose()
    click.echo("initialized" if initialized else "not initialized (run: ledger init-db)")


@main.command("register-account")
@click.argument("path")
@click.option(
    "--increase-on",
    type=click.Choice(["debit", "credit"]),
    default="debit",
    show_default=True,
    help="Side of a posting that increases the new accounts' balances.",
)
@click.pass_context
def register_account_command(ctx: click.Context, path: str, increase_on: str) -> None:
    """Register every account of a dotted PATH such as Assets.Bank.Checking."""
    direction = IncreaseOn.ON_DEBIT if increase_on == "debit" else IncreaseOn.ON_CREDIT
    with _session(ctx) as db:
        accounts = register_account_path(db, path, direction)
        click.echo(f"✓ Registered {' > '.join(a.name for a in accounts)}")


@main.command("post")
@click.option("--debit", "debit_account", required=True, help="Debit-side account name.")
@click.option("--credit", "credit_account", required=True, help="Credit-side account name.")
@click.option("--amount", required=True, type=str, help="Positive decimal amount.")
@click.option("--currency", default=None, help="Currency code (defaults to DEFAULT_CURRENCY).")
@click.option("--date", "date_", type=click.DateTime(formats=DATE_FORMATS), default=None)
@click.option("--description", default=None)
@click.option("--tag", "tags", multiple=True, help="Tag to link (repeatable).")
@click.option(
    "--attach",
    "attachments",
    multiple=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="File to attach (repeatable).",
)
@click.pass_context
def post_command(
    ctx: click.Context,
    debit_account: str,
    credit_account: str,
    amount: str,
    currency: Optional[str],
    date_: Optional[datetime],
    description: Optional[str],
    tags: tuple[str, ...],
    attachments: tuple[Path, ...],
) -> None:
    """Post one transaction against a debit and a credit account."""
    request = PostingRequest(
        amount=amount,
        currency=currency or settings.DEFAULT_CURRENCY,
        date=date_ or datetime.now().replace(microsecond=0),
        description=description,
        debit_account=debit_account,
        credit_account=credit_account,
        tags=list(tags),
        attachments=[AttachmentData(name=p.name, data=p.read_bytes()) for p in attachments],
    )
    with _session(ctx) as db:
        tx = post_transaction(db, request)
        click.echo(f"✓ Posted transaction {tx.id}")
        _echo_transaction(tx)


@main.command("list")
@click.option("--start", type=click.DateTime(formats=DATE_FORMATS), default=None)
@click.option("--end", type=click.DateTime(formats=DATE_FORMATS), default=None)
@click.pass_context
def list_command(ctx: click.Context, start: Optional[datetime], end: Optional[datetime]) -> None:
    """List transactions, optionally within an inclusive date range."""
    with _session(ctx) as db:
        if start or end:
            # A bare --end date covers that whole day
            upper = end.date() if end and end.time() == datetime.min.time() else end
            items = transactions_by_date_range(db, start, upper)
        else:
            items = iter_transactions(db)
        count = 0
        for tx in items:
            _echo_transaction(tx)
            count += 1
        click.echo(f"{count} transaction(s)")


@main.command("show")
@click.argument("transaction_id", type=int)
@click.pass_context
def show_command(ctx: click.Context, transaction_id: int) -> None:
    """Show one transaction with its attachments."""
    with _session(ctx) as db:
        tx = get_transaction(db, transaction_id)
        _echo_transaction(tx)
        for attachment in tx.attachments:
            click.echo(f"       attachment: {attachment.name}")


@main.command("accounts")
@click.pass_context
def accounts_command(ctx: click.Context) -> None:
    """List accounts with their balances."""
    with _session(ctx) as db:
        for account in list_accounts(db):
            sign = "Dr" if account.increase_on == IncreaseOn.ON_DEBIT else "Cr"
            click.echo(f"{account.name:<30} {account.balance:>14} {sign}")


if __name__ == "__main__":
    main()
