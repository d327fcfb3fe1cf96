"""Unit tests for the wallet ledger service.

Tests wallet creation, conditional debits and credits, and ledger
formatting for display.
"""

import uuid
from datetime import datetime, timezone

import pytest
from sqlalchemy import func, select

from tests.factories import add_user
from tutorlink.core.config import PricingPolicy
from tutorlink.core.exceptions import InsufficientFundsError, NotFoundError, ValidationError
from tutorlink.models.wallet import ReferenceKind, TransactionType, Wallet, WalletTransaction
from tutorlink.services.wallet_service import WalletService, to_ledger_entry


@pytest.fixture
def wallets() -> WalletService:
    return WalletService(PricingPolicy())


class TestEnsureWallet:
    """Tests for lazy wallet creation."""

    @pytest.mark.asyncio
    async def test_new_wallet_gets_default_balance(self, session, wallets) -> None:
        async with session.begin():
            user = await add_user(session)
            wallet = await wallets.ensure_wallet(session, user.id)

        assert wallet.balance == 150
        assert wallet.version == 1

    @pytest.mark.asyncio
    async def test_ensure_wallet_is_idempotent(self, session, wallets) -> None:
        async with session.begin():
            user = await add_user(session)
            first = await wallets.ensure_wallet(session, user.id)
            second = await wallets.ensure_wallet(session, user.id)

        async with session.begin():
            count = await session.scalar(
                select(func.count()).select_from(Wallet).where(Wallet.user_id == user.id)
            )

        assert first.id == second.id
        assert count == 1

    @pytest.mark.asyncio
    async def test_balance_of_missing_wallet_is_zero(self, session, wallets) -> None:
        async with session.begin():
            balance = await wallets.get_balance(session, uuid.uuid4())
        assert balance == 0

    @pytest.mark.asyncio
    async def test_get_balance_can_create_wallet(self, session, wallets) -> None:
        async with session.begin():
            user = await add_user(session)
            balance = await wallets.get_balance(session, user.id, create=True)
        assert balance == 150


class TestDebit:
    """Tests for the conditional debit."""

    @pytest.mark.asyncio
    async def test_debit_reduces_balance_and_records_entry(self, session, wallets) -> None:
        reference_id = uuid.uuid4()
        async with session.begin():
            user = await add_user(session)
            await wallets.ensure_wallet(session, user.id)
            entry = await wallets.debit(
                session,
                user.id,
                50,
                "Contact initiated with teacher: Ana",
                reference_kind=ReferenceKind.CONTACT,
                reference_id=reference_id,
            )

        async with session.begin():
            wallet = await wallets.get_wallet(session, user.id)

        assert wallet.balance == 100
        assert wallet.version == 2
        assert entry.type == TransactionType.DEBIT
        assert entry.amount == 50
        assert entry.reference_kind == ReferenceKind.CONTACT
        assert entry.reference_id == reference_id

    @pytest.mark.asyncio
    async def test_debit_of_whole_balance_leaves_zero(self, session, wallets) -> None:
        async with session.begin():
            user = await add_user(session)
            await wallets.ensure_wallet(session, user.id)
            await wallets.debit(session, user.id, 150, "Everything")

        async with session.begin():
            assert await wallets.get_balance(session, user.id) == 0

    @pytest.mark.asyncio
    async def test_insufficient_balance_changes_nothing(self, session, wallets) -> None:
        async with session.begin():
            user = await add_user(session)
            await wallets.ensure_wallet(session, user.id)

        user_id = user.id
        with pytest.raises(InsufficientFundsError) as exc_info:
            async with session.begin():
                await wallets.debit(
                    session,
                    user.id,
                    151,
                    "Too much",
                    insufficient_message="Insufficient coins to contact this teacher",
                )

        assert exc_info.value.message == "Insufficient coins to contact this teacher"
        assert exc_info.value.status_code == 400
        assert exc_info.value.available == 150

        async with session.begin():
            assert await wallets.get_balance(session, user_id) == 150
            entries = await session.scalar(select(func.count()).select_from(WalletTransaction))
        assert entries == 0

    @pytest.mark.asyncio
    async def test_debit_without_wallet_raises_not_found(self, session, wallets) -> None:
        with pytest.raises(NotFoundError):
            async with session.begin():
                await wallets.debit(session, uuid.uuid4(), 10, "No wallet")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -5])
    async def test_non_positive_debit_is_rejected(self, session, wallets, amount) -> None:
        with pytest.raises(ValidationError):
            async with session.begin():
                await wallets.debit(session, uuid.uuid4(), amount, "Invalid")


class TestCredit:
    """Tests for credits and purchases."""

    @pytest.mark.asyncio
    async def test_purchase_credit_increases_balance(self, session, wallets) -> None:
        async with session.begin():
            user = await add_user(session)
            await wallets.ensure_wallet(session, user.id)
            entry = await wallets.credit(
                session,
                user.id,
                1000,
                "Coin purchase via PayPal - $1.00 for 1000 coins",
                transaction_type=TransactionType.PURCHASE,
            )

        async with session.begin():
            assert await wallets.get_balance(session, user.id) == 1150
        assert entry.type == TransactionType.PURCHASE

    @pytest.mark.asyncio
    async def test_credit_cannot_be_recorded_as_debit(self, session, wallets) -> None:
        with pytest.raises(ValidationError):
            async with session.begin():
                await wallets.credit(
                    session,
                    uuid.uuid4(),
                    10,
                    "Wrong type",
                    transaction_type=TransactionType.DEBIT,
                )

    @pytest.mark.asyncio
    async def test_credit_without_wallet_raises_not_found(self, session, wallets) -> None:
        with pytest.raises(NotFoundError):
            async with session.begin():
                await wallets.credit(session, uuid.uuid4(), 10, "No wallet")


class TestLedgerHistory:
    """Tests for transaction history formatting."""

    @pytest.mark.asyncio
    async def test_history_is_newest_first_with_signed_amounts(self, session, wallets) -> None:
        async with session.begin():
            user = await add_user(session)
            await wallets.ensure_wallet(session, user.id)
            await wallets.debit(session, user.id, 50, "Contact")
            await wallets.credit(
                session, user.id, 500, "Purchase", transaction_type=TransactionType.PURCHASE
            )
            await wallets.credit(session, user.id, 5, "Refund")

        async with session.begin():
            entries = await wallets.list_transactions(session, user.id)

        formatted = [to_ledger_entry(entry) for entry in entries]
        assert [e.description for e in formatted] == ["Refund", "Purchase", "Contact"]
        assert [e.amount for e in formatted] == [5, 500, -50]
        assert [e.type for e in formatted] == ["other", "purchase", "course_access"]
        assert all(e.status == "completed" for e in formatted)

    @pytest.mark.asyncio
    async def test_history_limit(self, session, wallets) -> None:
        async with session.begin():
            user = await add_user(session)
            await wallets.ensure_wallet(session, user.id)
            for _ in range(3):
                await wallets.debit(session, user.id, 10, "Debit")

        async with session.begin():
            entries = await wallets.list_transactions(session, user.id, limit=2)
        assert len(entries) == 2

    def test_ledger_entry_reference(self) -> None:
        reference_id = uuid.uuid4()
        entry = WalletTransaction(
            id=uuid.uuid4(),
            wallet_id=uuid.uuid4(),
            type=TransactionType.DEBIT,
            amount=40,
            description="Applied to post: Looking for a maths tutor...",
            reference_kind=ReferenceKind.POST_REQUIREMENT,
            reference_id=reference_id,
            created_at=datetime.now(timezone.utc),
        )

        formatted = to_ledger_entry(entry)

        assert formatted.amount == -40
        assert formatted.reference.kind == ReferenceKind.POST_REQUIREMENT
        assert formatted.reference.id == reference_id
