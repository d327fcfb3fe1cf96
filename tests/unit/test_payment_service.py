"""Unit tests for coin top-up.

The payment gateway is mocked; tests cover coin conversion, order
creation, capture gating and the pending-payment sweeps.
"""

from datetime import timedelta
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import select

from tests.factories import add_payment, add_user
from tutorlink.core.config import PricingPolicy
from tutorlink.core.exceptions import (
    ConflictError,
    NotFoundError,
    PaymentNotCompletedError,
    ValidationError,
)
from tutorlink.models.payment import Payment, PaymentStatus
from tutorlink.models.wallet import TransactionType, WalletTransaction, utcnow
from tutorlink.providers.paypal import GatewayCapture, GatewayOrder
from tutorlink.services.payment_service import (
    PaymentService,
    calculate_amount,
    calculate_coins,
)
from tutorlink.services.wallet_service import WalletService


@pytest.fixture
def gateway() -> MagicMock:
    gateway = MagicMock()
    gateway.create_order = AsyncMock(return_value=GatewayOrder(order_id="ORDER-1", status="CREATED"))
    gateway.capture_order = AsyncMock(
        return_value=GatewayCapture(
            order_id="ORDER-1",
            status="COMPLETED",
            capture_id="CAPTURE-1",
            payer_id="PAYER-1",
        )
    )
    return gateway


@pytest.fixture
def payments(gateway) -> PaymentService:
    return PaymentService(PricingPolicy(), gateway)


async def make_user(session_maker):
    async with session_maker() as session:
        async with session.begin():
            return await add_user(session)


async def load_payment(session_maker, order_id: str) -> Payment:
    async with session_maker() as session:
        return await session.scalar(select(Payment).where(Payment.gateway_order_id == order_id))


async def balance_of(session_maker, user_id) -> int:
    async with session_maker() as session:
        return await WalletService().get_balance(session, user_id)


class TestCoinConversion:
    """Tests for the coin rate."""

    @pytest.mark.parametrize(
        "amount, coins",
        [
            (Decimal("1"), 1000),
            (Decimal("0.1"), 100),
            (Decimal("2.50"), 2500),
            (Decimal("1.2345"), 1234),
        ],
    )
    def test_coins_are_rounded_down(self, amount: Decimal, coins: int) -> None:
        assert calculate_coins(amount, PricingPolicy()) == coins

    def test_amount_for_coins_is_rounded_to_cents(self) -> None:
        policy = PricingPolicy()
        assert calculate_amount(100, policy) == Decimal("0.10")
        assert calculate_amount(20000, policy) == Decimal("20.00")
        assert calculate_amount(1005, policy) == Decimal("1.01")

    def test_packages_and_rate(self, payments) -> None:
        packages = payments.get_coin_packages()

        assert [p.coins for p in packages] == [100, 500, 1000, 5000, 10000, 20000]
        assert packages[0].amount == Decimal("0.10")
        assert packages[-1].label == "20,000 Coins"
        assert payments.rate_label() == "100 coins = $0.1 USD"
        rate = payments.get_coin_rate()
        assert rate.coins_per_usd == 1000
        assert rate.minimum_purchase.coins == 100


class TestCreatePayment:
    """Tests for opening gateway orders."""

    @pytest.mark.asyncio
    async def test_create_records_pending_payment(self, session_maker, payments, gateway) -> None:
        user = await make_user(session_maker)

        order = await payments.create_payment(session_maker, user.id, Decimal("1.00"))

        payment = await load_payment(session_maker, "ORDER-1")
        assert order.order_id == "ORDER-1"
        assert order.coins == 1000
        assert payment.id == order.payment_id
        assert payment.status == PaymentStatus.PENDING
        assert payment.coins == 1000
        reference_id, amount, currency, coins = gateway.create_order.call_args.args
        assert reference_id == str(order.payment_id)
        assert (amount, currency, coins) == (Decimal("1.00"), "USD", 1000)

    @pytest.mark.asyncio
    async def test_below_minimum_is_rejected(self, session_maker, payments, gateway) -> None:
        user = await make_user(session_maker)

        with pytest.raises(ValidationError) as exc_info:
            await payments.create_payment(session_maker, user.id, Decimal("0.09"))

        assert exc_info.value.message == "Minimum purchase amount is $0.1 for 100 coins"
        gateway.create_order.assert_not_called()

    @pytest.mark.asyncio
    async def test_create_by_coins(self, session_maker, payments) -> None:
        user = await make_user(session_maker)

        order = await payments.create_payment_by_coins(session_maker, user.id, 500)

        assert order.amount == Decimal("0.50")
        assert order.coins == 500

    @pytest.mark.asyncio
    async def test_create_by_coins_below_minimum(self, session_maker, payments) -> None:
        with pytest.raises(ValidationError) as exc_info:
            await payments.create_payment_by_coins(session_maker, user_id=None, coins=99)
        assert exc_info.value.message == "Minimum purchase is 100 coins"


class TestCapturePayment:
    """Tests for capture and credit."""

    @pytest.mark.asyncio
    async def test_completed_capture_credits_wallet(self, session_maker, payments) -> None:
        user = await make_user(session_maker)
        async with session_maker() as session:
            async with session.begin():
                payment = await add_payment(session, user, "ORDER-1")

        async with session_maker() as session:
            result = await payments.capture_payment(session, user.id, "ORDER-1")

        stored = await load_payment(session_maker, "ORDER-1")
        async with session_maker() as session:
            entry = await session.scalar(select(WalletTransaction))

        assert result.coins_added == 1000
        assert result.new_balance == 1150
        assert result.payment_id == payment.id
        assert stored.status == PaymentStatus.COMPLETED
        assert stored.gateway_payment_id == "CAPTURE-1"
        assert stored.gateway_payer_id == "PAYER-1"
        assert entry.type == TransactionType.PURCHASE
        assert entry.payment_id == payment.id
        assert entry.description == "Coin purchase via PayPal - $1.00 for 1000 coins"

    @pytest.mark.asyncio
    async def test_incomplete_capture_changes_nothing(self, session_maker, payments, gateway) -> None:
        gateway.capture_order.return_value = GatewayCapture(order_id="ORDER-1", status="PENDING")
        user = await make_user(session_maker)
        async with session_maker() as session:
            async with session.begin():
                await add_payment(session, user, "ORDER-1")
                await WalletService().ensure_wallet(session, user.id)

        with pytest.raises(PaymentNotCompletedError):
            async with session_maker() as session:
                await payments.capture_payment(session, user.id, "ORDER-1")

        stored = await load_payment(session_maker, "ORDER-1")
        assert stored.status == PaymentStatus.PENDING
        assert await balance_of(session_maker, user.id) == 150

    @pytest.mark.asyncio
    async def test_second_capture_is_conflict(self, session_maker, payments) -> None:
        user = await make_user(session_maker)
        async with session_maker() as session:
            async with session.begin():
                await add_payment(session, user, "ORDER-1")

        async with session_maker() as session:
            await payments.capture_payment(session, user.id, "ORDER-1")
        with pytest.raises(ConflictError) as exc_info:
            async with session_maker() as session:
                await payments.capture_payment(session, user.id, "ORDER-1")

        assert exc_info.value.message == "Payment has already been processed"
        assert await balance_of(session_maker, user.id) == 1150

    @pytest.mark.asyncio
    async def test_capture_of_another_users_order_is_not_found(
        self, session_maker, payments
    ) -> None:
        owner = await make_user(session_maker)
        other = await make_user(session_maker)
        async with session_maker() as session:
            async with session.begin():
                await add_payment(session, owner, "ORDER-1")

        with pytest.raises(NotFoundError):
            async with session_maker() as session:
                await payments.capture_payment(session, other.id, "ORDER-1")


class TestPendingSweeps:
    """Tests for abandoned and stale pending payments."""

    @pytest.mark.asyncio
    async def test_cancel_deletes_only_own_old_pending(self, session_maker, payments) -> None:
        user = await make_user(session_maker)
        other = await make_user(session_maker)
        two_hours_ago = utcnow() - timedelta(hours=2)
        async with session_maker() as session:
            async with session.begin():
                await add_payment(session, user, "OLD", created_at=two_hours_ago)
                await add_payment(session, user, "RECENT")
                await add_payment(
                    session, user, "DONE", status=PaymentStatus.COMPLETED, created_at=two_hours_ago
                )
                await add_payment(session, other, "OTHER", created_at=two_hours_ago)

        async with session_maker() as session:
            async with session.begin():
                deleted = await payments.cancel_pending_payments(session, user.id)

        assert deleted == 1
        assert await load_payment(session_maker, "OLD") is None
        for order_id in ("RECENT", "DONE", "OTHER"):
            assert await load_payment(session_maker, order_id) is not None

    @pytest.mark.asyncio
    async def test_expire_marks_stale_pending_of_every_user(self, session_maker, payments) -> None:
        first = await make_user(session_maker)
        second = await make_user(session_maker)
        two_days_ago = utcnow() - timedelta(days=2)
        async with session_maker() as session:
            async with session.begin():
                await add_payment(session, first, "STALE-1", created_at=two_days_ago)
                await add_payment(session, second, "STALE-2", created_at=two_days_ago)
                await add_payment(session, first, "FRESH", created_at=utcnow() - timedelta(hours=2))
                await add_payment(
                    session, second, "DONE", status=PaymentStatus.COMPLETED, created_at=two_days_ago
                )

        async with session_maker() as session:
            async with session.begin():
                expired = await payments.expire_stale_payments(session)

        assert expired == 2
        assert (await load_payment(session_maker, "STALE-1")).status == PaymentStatus.EXPIRED
        assert (await load_payment(session_maker, "STALE-2")).status == PaymentStatus.EXPIRED
        assert (await load_payment(session_maker, "FRESH")).status == PaymentStatus.PENDING
        assert (await load_payment(session_maker, "DONE")).status == PaymentStatus.COMPLETED
