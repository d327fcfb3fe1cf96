"""Wallet and ledger SQLAlchemy ORM models."""

import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    func,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tutorlink.db.base import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TransactionType(str, enum.Enum):
    """Ledger entry type.

    Values:
        CREDIT: Coins added to the wallet
        DEBIT: Coins spent on a contact or an application
        PURCHASE: Coins bought through the payment gateway
    """

    CREDIT = "credit"
    DEBIT = "debit"
    PURCHASE = "purchase"


class ReferenceKind(str, enum.Enum):
    """Kind of entity a ledger entry points at."""

    POST_REQUIREMENT = "PostRequirement"
    TEACHER_APPLICATION = "TeacherApplication"
    PAYMENT = "Payment"
    CONTACT = "Contact"


class Wallet(Base):
    """Wallet model holding a user's coin balance.

    Attributes:
        id: Unique identifier (UUID)
        user_id: Foreign key to User (unique, one-to-one)
        balance: Current coin balance, never negative
        version: Incremented on every balance mutation
        created_at: Record creation timestamp
        updated_at: Last modification timestamp
        user: Relationship to User model
        transactions: Append-only ledger entries
    """

    __tablename__ = "wallets"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id"),
        unique=True,
        nullable=False
    )
    balance: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=150
    )
    version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now()
    )

    # One-to-one relationship with User
    user: Mapped["User"] = relationship("User", back_populates="wallet")
    transactions: Mapped[list["WalletTransaction"]] = relationship(
        "WalletTransaction",
        back_populates="wallet",
        order_by="WalletTransaction.created_at",
    )

    __table_args__ = (
        CheckConstraint("balance >= 0", name="ck_wallets_balance_non_negative"),
    )


class WalletTransaction(Base):
    """Immutable ledger entry recording one balance mutation.

    The (reference_kind, reference_id) pair is the tagged reference to the
    entity that caused the mutation.
    """

    __tablename__ = "wallet_transactions"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    wallet_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("wallets.id"),
        nullable=False
    )
    type: Mapped[TransactionType] = mapped_column(
        String(20),
        nullable=False
    )
    amount: Mapped[int] = mapped_column(
        Integer,
        nullable=False
    )
    description: Mapped[str] = mapped_column(
        String(500),
        nullable=False
    )
    reference_kind: Mapped[ReferenceKind | None] = mapped_column(
        String(40),
        nullable=True
    )
    reference_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        nullable=True
    )
    payment_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("payments.id"),
        nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now()
    )

    wallet: Mapped["Wallet"] = relationship("Wallet", back_populates="transactions")

    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_wallet_transactions_amount_positive"),
        Index("ix_wallet_transactions_wallet_id", "wallet_id"),
    )
