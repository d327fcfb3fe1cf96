"""Contact SQLAlchemy ORM model."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tutorlink.db.base import Base
from tutorlink.models.wallet import utcnow


class ContactStatus(str, enum.Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CONTACTED = "contacted"


class Contact(Base):
    """A student's paid unlock of one tutor's contact details.

    At most one row exists per (student, teacher) pair; the unique
    constraint is the backstop against concurrent initiations.
    """

    __tablename__ = "contacts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    student_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id"),
        nullable=False
    )
    teacher_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("teacher_profiles.id"),
        nullable=False
    )
    status: Mapped[ContactStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ContactStatus.PENDING
    )
    contact_cost: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=50
    )
    message: Mapped[str | None] = mapped_column(
        String(500),
        nullable=True
    )
    initiated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow
    )
    contacted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    student: Mapped["User"] = relationship("User")
    teacher: Mapped["TeacherProfile"] = relationship("TeacherProfile")

    __table_args__ = (
        UniqueConstraint("student_id", "teacher_id", name="uq_contacts_student_teacher"),
    )
