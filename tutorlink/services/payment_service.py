"""Coin top-up through the payment gateway.

A purchase is two calls: ``create_payment`` records a pending Payment and
opens a gateway order; ``capture_payment`` asks the gateway to capture it
and, only when the gateway reports COMPLETED, marks the Payment completed
and credits the wallet inside one transaction.
"""

import logging
import uuid
from datetime import timedelta
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tutorlink.core.config import PricingPolicy
from tutorlink.core.exceptions import (
    ConflictError,
    NotFoundError,
    PaymentNotCompletedError,
    ValidationError,
)
from tutorlink.models.payment import Payment, PaymentStatus
from tutorlink.models.wallet import ReferenceKind, TransactionType, utcnow
from tutorlink.providers.paypal import PayPalGateway
from tutorlink.schemas.payment import (
    CaptureResult,
    CoinPackage,
    CoinRate,
    MinimumPurchase,
    PaymentOrderRead,
)
from tutorlink.services.wallet_service import WalletService

logger = logging.getLogger(__name__)

PACKAGE_COINS = [100, 500, 1000, 5000, 10000, 20000]


def calculate_coins(amount: Decimal, policy: PricingPolicy) -> int:
    """Coins bought for ``amount``, rounded down to a whole coin."""
    coins = (Decimal(amount) * policy.coins_per_usd).to_integral_value(rounding=ROUND_DOWN)
    return int(coins)


def calculate_amount(coins: int, policy: PricingPolicy) -> Decimal:
    """Price of ``coins`` rounded to cents."""
    return (Decimal(coins) / policy.coins_per_usd).quantize(
        Decimal("0.01"), rounding=ROUND_HALF_UP
    )


class PaymentService:
    def __init__(
        self,
        policy: PricingPolicy | None = None,
        gateway: PayPalGateway | None = None,
        wallets: WalletService | None = None,
    ) -> None:
        self.policy = policy or PricingPolicy()
        self.gateway = gateway
        self.wallets = wallets or WalletService(self.policy)

    def _minimum_amount_message(self) -> str:
        return (
            f"Minimum purchase amount is ${self.policy.min_purchase_amount} "
            f"for {self.policy.min_purchase_coins} coins"
        )

    async def create_payment(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        user_id: uuid.UUID,
        amount: Decimal,
        currency: str = "USD",
    ) -> PaymentOrderRead:
        """Buy coins for a currency amount.

        Runs its own units of work: the pending Payment is committed
        before the gateway is called so that no transaction is held open
        across the network call. If the gateway fails the Payment stays
        pending and is picked up by the expiry sweep.

        Raises:
            ValidationError: If amount is below the minimum purchase
            ExternalServiceError: If the gateway order cannot be created
        """
        if amount is None or Decimal(amount) < self.policy.min_purchase_amount:
            raise ValidationError(self._minimum_amount_message())

        coins = calculate_coins(amount, self.policy)
        return await self._open_order(session_maker, user_id, Decimal(amount), coins, currency)

    async def create_payment_by_coins(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        user_id: uuid.UUID,
        coins: int,
        currency: str = "USD",
    ) -> PaymentOrderRead:
        """Buy an exact number of coins."""
        if coins is None or coins < self.policy.min_purchase_coins:
            raise ValidationError(
                f"Minimum purchase is {self.policy.min_purchase_coins} coins"
            )

        amount = calculate_amount(coins, self.policy)
        return await self._open_order(session_maker, user_id, amount, coins, currency)

    async def _open_order(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        user_id: uuid.UUID,
        amount: Decimal,
        coins: int,
        currency: str,
    ) -> PaymentOrderRead:
        payment_id = uuid.uuid4()
        async with session_maker() as session:
            async with session.begin():
                payment = Payment(
                    id=payment_id,
                    user_id=user_id,
                    amount=amount,
                    currency=currency,
                    coins=coins,
                    status=PaymentStatus.PENDING,
                )
                session.add(payment)

        order = await self.gateway.create_order(str(payment_id), amount, currency, coins)

        async with session_maker() as session:
            try:
                async with session.begin():
                    await session.execute(
                        update(Payment)
                        .where(Payment.id == payment_id)
                        .values(gateway_order_id=order.order_id, updated_at=utcnow())
                    )
            except IntegrityError:
                raise ConflictError(
                    f"Order {order.order_id} already exists. "
                    "Please use a different order number."
                )

        logger.info(
            "Opened order %s for payment %s: %s %s for %d coins",
            order.order_id,
            payment_id,
            amount,
            currency,
            coins,
        )
        return PaymentOrderRead(
            order_id=order.order_id,
            payment_id=payment_id,
            coins=coins,
            amount=amount,
        )

    async def capture_payment(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        order_id: str,
    ) -> CaptureResult:
        """Capture ``order_id`` with the gateway, then credit in one transaction.

        Raises:
            ExternalServiceError: If the gateway cannot be reached
            PaymentNotCompletedError: If the gateway did not complete the
                capture; neither the Payment nor the wallet changes
            NotFoundError: If no Payment for this order belongs to the user
            ConflictError: If the Payment was already completed
        """
        capture = await self.gateway.capture_order(order_id)
        if not capture.completed:
            logger.warning(
                "Capture of order %s for user %s not completed: %s",
                order_id,
                user_id,
                capture.status,
            )
            raise PaymentNotCompletedError(order_id, capture.status)

        async with session.begin():
            return await self.complete_payment(
                session,
                user_id,
                order_id,
                capture.capture_id,
                capture.payer_id,
            )

    async def complete_payment(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
        order_id: str,
        gateway_payment_id: str | None,
        gateway_payer_id: str | None,
    ) -> CaptureResult:
        """Mark the Payment completed and credit its coins.

        The Payment row is locked so two concurrent captures of the same
        order cannot both credit.

        Args:
            session: Active async database session (transaction managed by caller)
        """
        result = await session.execute(
            select(Payment)
            .where(Payment.gateway_order_id == order_id, Payment.user_id == user_id)
            .with_for_update()
        )
        payment = result.scalar_one_or_none()
        if payment is None:
            raise NotFoundError("Payment")
        if PaymentStatus(payment.status) == PaymentStatus.COMPLETED:
            raise ConflictError("Payment has already been processed")

        payment.status = PaymentStatus.COMPLETED
        payment.gateway_payment_id = gateway_payment_id
        payment.gateway_payer_id = gateway_payer_id
        await session.flush()

        await self.wallets.ensure_wallet(session, user_id)
        await self.wallets.credit(
            session,
            user_id,
            payment.coins,
            f"Coin purchase via PayPal - ${payment.amount} for {payment.coins} coins",
            transaction_type=TransactionType.PURCHASE,
            reference_kind=ReferenceKind.PAYMENT,
            reference_id=payment.id,
            payment_id=payment.id,
        )
        new_balance = await self.wallets.get_balance(session, user_id)

        logger.info(
            "Payment %s captured: %d coins credited to user %s",
            payment.id,
            payment.coins,
            user_id,
        )
        return CaptureResult(
            coins_added=payment.coins,
            new_balance=new_balance,
            payment_id=payment.id,
            amount=payment.amount,
        )

    async def get_payment_history(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
    ) -> list[Payment]:
        result = await session.execute(
            select(Payment)
            .where(Payment.user_id == user_id)
            .order_by(Payment.created_at.desc())
        )
        return list(result.scalars().all())

    def get_coin_packages(self) -> list[CoinPackage]:
        return [
            CoinPackage(
                amount=calculate_amount(coins, self.policy),
                coins=coins,
                label=f"{coins:,} Coins",
            )
            for coins in PACKAGE_COINS
        ]

    def rate_label(self) -> str:
        return (
            f"{self.policy.min_purchase_coins} coins = "
            f"${self.policy.min_purchase_amount} USD"
        )

    def get_coin_rate(self) -> CoinRate:
        return CoinRate(
            rate=self.rate_label(),
            coins_per_usd=self.policy.coins_per_usd,
            minimum_purchase=MinimumPurchase(
                amount=self.policy.min_purchase_amount,
                coins=self.policy.min_purchase_coins,
            ),
        )

    async def cancel_pending_payments(
        self,
        session: AsyncSession,
        user_id: uuid.UUID,
    ) -> int:
        """Delete the user's own pending payments older than the abandon window."""
        cutoff = utcnow() - timedelta(minutes=self.policy.pending_abandon_minutes)
        result = await session.execute(
            delete(Payment).where(
                Payment.user_id == user_id,
                Payment.status == PaymentStatus.PENDING,
                Payment.created_at < cutoff,
            )
        )
        logger.info("Deleted %d abandoned pending payments of user %s", result.rowcount, user_id)
        return result.rowcount

    async def expire_stale_payments(self, session: AsyncSession) -> int:
        """Mark every pending payment older than the expiry window as expired."""
        cutoff = utcnow() - timedelta(hours=self.policy.pending_expire_hours)
        result = await session.execute(
            update(Payment)
            .where(
                Payment.status == PaymentStatus.PENDING,
                Payment.created_at < cutoff,
            )
            .values(status=PaymentStatus.EXPIRED, updated_at=utcnow())
        )
        logger.info("Expired %d stale pending payments", result.rowcount)
        return result.rowcount
