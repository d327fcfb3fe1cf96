"""Tutor application SQLAlchemy ORM model."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from tutorlink.db.base import Base
from tutorlink.models.wallet import utcnow


class ApplicationStatus(str, enum.Enum):
    """Application lifecycle.

    Values:
        ACCEPTED: Initial state once the tutor has paid
        CONTACTED: The tutor has retrieved the student's contact details
        REJECTED: Terminal moderation state
    """

    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CONTACTED = "contacted"


class TeacherApplication(Base):
    """A tutor's paid application to a student's post requirement."""

    __tablename__ = "teacher_applications"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    teacher_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("teacher_profiles.id"),
        nullable=False
    )
    post_requirement_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("post_requirements.id"),
        nullable=False
    )
    status: Mapped[ApplicationStatus] = mapped_column(
        String(20),
        nullable=False,
        default=ApplicationStatus.ACCEPTED
    )
    application_cost: Mapped[int] = mapped_column(
        Integer,
        nullable=False
    )
    applied_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow
    )
    contacted_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True
    )

    teacher: Mapped["TeacherProfile"] = relationship("TeacherProfile")
    post_requirement: Mapped["PostRequirement"] = relationship("PostRequirement")

    __table_args__ = (
        UniqueConstraint(
            "teacher_id",
            "post_requirement_id",
            name="uq_teacher_applications_teacher_post",
        ),
    )
