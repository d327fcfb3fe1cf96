"""User SQLAlchemy ORM model."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, String, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tutorlink.db.base import Base


class UserRole(str, enum.Enum):
    """Roles resolved by the identity layer."""

    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"


class User(Base):
    """Marketplace account: a student, a tutor or an admin.

    Attributes:
        id: Unique identifier (UUID)
        email: User email address (unique)
        name: Display name
        phone: Optional phone number revealed to tutors after contact
        role: student, teacher or admin
        is_active: Account status
        created_at: Record creation timestamp
        updated_at: Last modification timestamp
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True
    )
    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False
    )
    phone: Mapped[str | None] = mapped_column(
        String(32),
        nullable=True
    )
    role: Mapped[UserRole] = mapped_column(
        String(20),
        nullable=False,
        default=UserRole.STUDENT
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True
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

    # One-to-one relationship with Wallet
    wallet: Mapped["Wallet"] = relationship("Wallet", back_populates="user", uselist=False)
