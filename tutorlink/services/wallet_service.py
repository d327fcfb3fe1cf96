"""Wallet ledger service.

Every balance mutation is a single conditional UPDATE on the wallet row
followed by an append-only ledger insert in the same transaction:

    UPDATE wallets SET balance = balance - :amount, version = version + 1
    WHERE user_id = :user_id AND balance >= :amount

A debit that matches no row either has no wallet or not enough coins;
in both cases nothing has been written. Two concurrent debits against
the same wallet are serialized by the row lock the UPDATE takes, so the
second one re-evaluates ``balance >= :amount`` against the committed
balance and can never drive it negative.

Transactions are managed by the caller:

    async with session.begin():
        await WalletService().debit(
            session, user_id, 50, "Contact initiated with teacher: Ana"
        )
"""

import logging
import uuid

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tutorlink.core.config import PricingPolicy
from tutorlink.core.exceptions import (
    InsufficientFundsError,
    NotFoundError,
    ValidationError,
)
from tutorlink.models.wallet import (
    ReferenceKind,
    TransactionType,
    Wallet,
    WalletTransaction,
)
from tutorlink.schemas.wallet import LedgerEntryRead, TransactionReference

logger = logging.getLogger(__name__)

# Ledger entry type -> display label
DISPLAY_TYPES = {
    TransactionType.PURCHASE: "purchase",
    TransactionType.DEBIT: "course_access",
}


class WalletService:
    """Per-user coin wallets with an append-only ledger."""

    def __init__(self, policy: PricingPolicy | None = None) -> None:
        self.policy = policy or PricingPolicy()

    async def get_wallet(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
    ) -> Wallet | None:
        result = await session.execute(
            select(Wallet).where(Wallet.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def ensure_wallet(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
    ) -> Wallet:
        """Return the user's wallet, creating it with the default balance.

        Creation runs in a savepoint so that losing a creation race to a
        concurrent request only rolls back the insert, after which the
        winner's wallet is returned.
        """
        wallet = await self.get_wallet(session, user_id)
        if wallet is not None:
            return wallet

        try:
            async with session.begin_nested():
                wallet = Wallet(
                    user_id=user_id,
                    balance=self.policy.default_wallet_balance,
                    version=1,
                )
                session.add(wallet)
                await session.flush()
        except IntegrityError:
            logger.info("Wallet for user %s created concurrently", user_id)
            wallet = await self.get_wallet(session, user_id)
            if wallet is None:
                raise
            return wallet

        logger.info(
            "Created wallet for user %s with %d coins",
            user_id,
            self.policy.default_wallet_balance,
        )
        return wallet

    async def get_balance(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        create: bool = False,
    ) -> int:
        """Current balance; 0 for a missing wallet unless ``create`` is set."""
        if create:
            wallet = await self.ensure_wallet(session, user_id)
        else:
            wallet = await self.get_wallet(session, user_id)
        return wallet.balance if wallet is not None else 0

    async def debit(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        amount: int,
        description: str,
        reference_kind: ReferenceKind | None = None,
        reference_id: uuid.UUID | None = None,
        insufficient_message: str | None = None,
    ) -> WalletTransaction:
        """Atomically subtract ``amount`` coins and record a DEBIT entry.

        Args:
            session: Active async database session (transaction managed by caller)
            user_id: Owner of the wallet to debit
            amount: Positive number of coins
            description: Human-readable ledger description
            reference_kind: Kind of the entity that caused the debit
            reference_id: Id of that entity
            insufficient_message: Message for the InsufficientFundsError

        Raises:
            ValidationError: If amount <= 0
            NotFoundError: If the user has no wallet
            InsufficientFundsError: If the balance is lower than amount
        """
        if amount <= 0:
            raise ValidationError("Debit amount must be greater than zero")

        result = await session.execute(
            update(Wallet)
            .where(Wallet.user_id == user_id, Wallet.balance >= amount)
            .values(
                balance=Wallet.balance - amount,
                version=Wallet.version + 1,
            )
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            wallet = await self.get_wallet(session, user_id)
            if wallet is None:
                raise NotFoundError("Wallet")
            raise InsufficientFundsError(
                str(user_id),
                amount,
                wallet.balance,
                message=insufficient_message,
            )

        entry = await self._record(
            session,
            user_id,
            TransactionType.DEBIT,
            amount,
            description,
            reference_kind,
            reference_id,
        )
        logger.info("Debited %d coins from user %s: %s", amount, user_id, description)
        return entry

    async def credit(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        amount: int,
        description: str,
        transaction_type: TransactionType = TransactionType.CREDIT,
        reference_kind: ReferenceKind | None = None,
        reference_id: uuid.UUID | None = None,
        payment_id: uuid.UUID | None = None,
    ) -> WalletTransaction:
        """Atomically add ``amount`` coins and record a CREDIT or PURCHASE entry.

        Raises:
            ValidationError: If amount <= 0 or the type is DEBIT
            NotFoundError: If the user has no wallet
        """
        if amount <= 0:
            raise ValidationError("Credit amount must be greater than zero")
        if transaction_type == TransactionType.DEBIT:
            raise ValidationError("Credit cannot be recorded as a debit")

        result = await session.execute(
            update(Wallet)
            .where(Wallet.user_id == user_id)
            .values(
                balance=Wallet.balance + amount,
                version=Wallet.version + 1,
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError("Wallet")

        entry = await self._record(
            session,
            user_id,
            transaction_type,
            amount,
            description,
            reference_kind,
            reference_id,
            payment_id,
        )
        logger.info("Credited %d coins to user %s: %s", amount, user_id, description)
        return entry

    async def _record(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        transaction_type: TransactionType,
        amount: int,
        description: str,
        reference_kind: ReferenceKind | None,
        reference_id: uuid.UUID | None,
        payment_id: uuid.UUID | None = None,
    ) -> WalletTransaction:
        # The conditional UPDATE bypassed the identity map; reload the row
        wallet = await self.get_wallet(session, user_id)
        await session.refresh(wallet, ["balance", "version"])

        entry = WalletTransaction(
            wallet_id=wallet.id,
            type=transaction_type,
            amount=amount,
            description=description,
            reference_kind=reference_kind,
            reference_id=reference_id,
            payment_id=payment_id,
        )
        session.add(entry)
        await session.flush()
        return entry

    async def list_transactions(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        limit: int | None = None,
    ) -> list[WalletTransaction]:
        """Ledger entries for the user's wallet, newest first."""
        wallet = await self.ensure_wallet(session, user_id)
        query = (
            select(WalletTransaction)
            .where(WalletTransaction.wallet_id == wallet.id)
            .order_by(WalletTransaction.created_at.desc())
        )
        if limit is not None:
            query = query.limit(limit)
        result = await session.execute(query)
        return list(result.scalars().all())


def to_ledger_entry(entry: WalletTransaction) -> LedgerEntryRead:
    """Format a ledger entry for display with a signed amount."""
    transaction_type = TransactionType(entry.type)
    signed = -entry.amount if transaction_type == TransactionType.DEBIT else entry.amount
    reference = None
    if entry.reference_kind is not None and entry.reference_id is not None:
        reference = TransactionReference(
            kind=ReferenceKind(entry.reference_kind),
            id=entry.reference_id,
        )
    return LedgerEntryRead(
        id=entry.id,
        type=DISPLAY_TYPES.get(transaction_type, "other"),
        transaction_type=transaction_type,
        amount=signed,
        description=entry.description,
        created_at=entry.created_at,
        reference=reference,
    )
