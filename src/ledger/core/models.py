"""SQLAlchemy ORM models for the ledger."""

from datetime import UTC, datetime
from decimal import Decimal, localcontext
from enum import Enum
from typing import Iterable, Optional

from sqlalchemy import (
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    Integer,
    LargeBinary,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator


def _utcnow() -> datetime:
    return datetime.now(UTC).replace(tzinfo=None)


def as_utc_naive(value: datetime) -> datetime:
    """Timestamps are stored as naive UTC; aware values are converted first."""
    if value.tzinfo is None:
        return value
    return value.astimezone(UTC).replace(tzinfo=None)


def exact_sum(values: Iterable[Decimal]) -> Decimal:
    """Sum decimals without rounding to the active context precision."""
    values = [Decimal(value) for value in values]
    if not values:
        return Decimal("0")
    exponent = min(value.as_tuple().exponent for value in values)
    magnitude = max(value.adjusted() for value in values)
    with localcontext() as ctx:
        ctx.prec = max(ctx.prec, magnitude - exponent + len(values).bit_length() + 2)
        return sum(values, Decimal("0"))


class DecimalText(TypeDecorator):
    """Exact decimal stored as its string form, read back as ``Decimal``."""

    impl = String(64)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return str(Decimal(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(value)


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class IncreaseOn(str, Enum):
    """Which side of a posting increases an account's balance."""

    ON_DEBIT = "on_debit"
    ON_CREDIT = "on_credit"


class Account(Base):
    """A node of the chart of accounts, identified by its own segment name."""

    __tablename__ = "accounts"

    name: Mapped[str] = mapped_column(String(200), primary_key=True)
    balance: Mapped[Decimal] = mapped_column(DecimalText, nullable=False, default=Decimal("0"))
    increase_on: Mapped[IncreaseOn] = mapped_column(
        SQLEnum(IncreaseOn), nullable=False, default=IncreaseOn.ON_DEBIT
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=_utcnow)

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "balance": str(self.balance),
            "increase_on": self.increase_on.value,
        }

    def __repr__(self) -> str:
        return f"<Account {self.name} {self.balance}>"


class AncestorTo(Base):
    """Closure table: one row for every (ancestor, descendant) pair, at any depth."""

    __tablename__ = "ancestor_to"

    ancestor_name: Mapped[str] = mapped_column(
        String(200),
        ForeignKey("accounts.name", onupdate="CASCADE", ondelete="CASCADE"),
        primary_key=True,
    )
    descendant_name: Mapped[str] = mapped_column(
        String(200),
        ForeignKey("accounts.name", onupdate="CASCADE", ondelete="CASCADE"),
        primary_key=True,
    )

    __table_args__ = (Index("ix_ancestor_to_descendant", "descendant_name"),)

    def __repr__(self) -> str:
        return f"<AncestorTo {self.ancestor_name} -> {self.descendant_name}>"


class Transaction(Base):
    """A single posting of ``amount`` against one debit and one credit account."""

    __tablename__ = "transactions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    amount: Mapped[Decimal] = mapped_column(DecimalText, nullable=False)
    currency: Mapped[str] = mapped_column(String(10), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)

    # Relationships
    debit: Mapped["Debit"] = relationship(
        back_populates="transaction", cascade="all, delete-orphan", passive_deletes=True
    )
    credit: Mapped["Credit"] = relationship(
        back_populates="transaction", cascade="all, delete-orphan", passive_deletes=True
    )
    categorizations: Mapped[list["Categorizes"]] = relationship(
        back_populates="transaction", cascade="all, delete-orphan", passive_deletes=True
    )
    attachments: Mapped[list["Attachment"]] = relationship(
        back_populates="transaction", cascade="all, delete-orphan", passive_deletes=True
    )

    __table_args__ = (Index("ix_transactions_date", "date"),)

    @property
    def debit_account_name(self) -> str:
        return self.debit.account_name

    @property
    def credit_account_name(self) -> str:
        return self.credit.account_name

    @property
    def tag_names(self) -> list[str]:
        return sorted(c.tag_name for c in self.categorizations)

    def to_dict(self) -> dict:
        """Convert to dictionary representation."""
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "amount": str(self.amount),
            "currency": self.currency,
            "description": self.description,
            "debit_account": self.debit_account_name,
            "credit_account": self.credit_account_name,
            "tags": self.tag_names,
            "attachments": sorted(a.name for a in self.attachments),
        }

    def __repr__(self) -> str:
        return f"<Transaction {self.id} {self.date} {self.amount} {self.currency}>"


class Debit(Base):
    """Links a transaction to the account posted on its debit side."""

    __tablename__ = "debits"

    transaction_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("transactions.id", onupdate="CASCADE", ondelete="CASCADE"),
        primary_key=True,
    )
    account_name: Mapped[str] = mapped_column(
        String(200),
        ForeignKey("accounts.name", onupdate="CASCADE", ondelete="CASCADE"),
        primary_key=True,
    )

    transaction: Mapped["Transaction"] = relationship(back_populates="debit")
    account: Mapped["Account"] = relationship()

    __table_args__ = (Index("ix_debits_account", "account_name"),)


class Credit(Base):
    """Links a transaction to the account posted on its credit side."""

    __tablename__ = "credits"

    transaction_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("transactions.id", onupdate="CASCADE", ondelete="CASCADE"),
        primary_key=True,
    )
    account_name: Mapped[str] = mapped_column(
        String(200),
        ForeignKey("accounts.name", onupdate="CASCADE", ondelete="CASCADE"),
        primary_key=True,
    )

    transaction: Mapped["Transaction"] = relationship(back_populates="credit")
    account: Mapped["Account"] = relationship()

    __table_args__ = (Index("ix_credits_account", "account_name"),)


class Tag(Base):
    """User-defined tags, created on first use."""

    __tablename__ = "tags"

    name: Mapped[str] = mapped_column(String(100), primary_key=True)

    def __repr__(self) -> str:
        return f"<Tag {self.name}>"


class Categorizes(Base):
    """Many-to-many relationship between tags and transactions."""

    __tablename__ = "categorizes"

    tag_name: Mapped[str] = mapped_column(
        String(100),
        ForeignKey("tags.name", onupdate="CASCADE", ondelete="CASCADE"),
        primary_key=True,
    )
    transaction_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("transactions.id", onupdate="CASCADE", ondelete="CASCADE"),
        primary_key=True,
    )

    transaction: Mapped["Transaction"] = relationship(back_populates="categorizations")
    tag: Mapped["Tag"] = relationship()


class Attachment(Base):
    """A named file owned by exactly one transaction."""

    __tablename__ = "attachments"

    name: Mapped[str] = mapped_column(String(255), primary_key=True)
    transaction_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("transactions.id", onupdate="CASCADE", ondelete="CASCADE"),
        primary_key=True,
    )
    data: Mapped[bytes] = mapped_column(LargeBinary, nullable=False, deferred=True)

    transaction: Mapped["Transaction"] = relationship(back_populates="attachments")

    def __repr__(self) -> str:
        return f"<Attachment {self.name} of {self.transaction_id}>"
