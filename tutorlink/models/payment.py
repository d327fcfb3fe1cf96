"""Payment SQLAlchemy ORM model."""

import enum
import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import DateTime, ForeignKey, Index, Integer, Numeric, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from tutorlink.db.base import Base
from tutorlink.models.wallet import utcnow


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class Payment(Base):
    """An attempt to buy coins through the payment gateway.

    Attributes:
        id: Unique identifier (UUID), sent to the gateway as custom reference
        user_id: Buyer
        amount: Currency amount with DECIMAL(10,2) precision
        currency: ISO currency code
        coins: Coins credited once the capture is confirmed
        status: pending until captured, then completed
        gateway_order_id: Gateway order id (unique when present)
        gateway_payment_id: Gateway capture id (unique when present)
        gateway_payer_id: Gateway payer id
    """

    __tablename__ = "payments"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False
    )
    amount: Mapped[Decimal] = mapped_column(
        Numeric(10, 2),
        nullable=False
    )
    currency: Mapped[str] = mapped_column(
        String(3),
        nullable=False,
        default="USD"
    )
    coins: Mapped[int] = mapped_column(
        Integer,
        nullable=False
    )
    status: Mapped[PaymentStatus] = mapped_column(
        String(20),
        nullable=False,
        default=PaymentStatus.PENDING
    )
    payment_method: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default="paypal"
    )
    gateway_order_id: Mapped[str | None] = mapped_column(
        String(64),
        unique=True,
        nullable=True
    )
    gateway_payment_id: Mapped[str | None] = mapped_column(
        String(64),
        unique=True,
        nullable=True
    )
    gateway_payer_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow
    )

    __table_args__ = (
        Index("ix_payments_user_id_status", "user_id", "status"),
    )
